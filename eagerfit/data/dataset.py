# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tensor-slice dataset for eager training loops.

A dataset is built from one or more tensors sharing their first dimension;
element i is the tuple (t0[i], t1[i], ...). Transformations return new
datasets and never touch the original:

    train_ds = (
        TensorSliceDataset.from_tensor_slices(features, targets)
        .shuffle(seed=42)
        .batch(8)
    )

Each `for batch in train_ds` builds a fresh one-shot iterator that ends
after a single pass. The shuffle order of a pass is drawn from a generator
seeded with (seed, pass number); `iterate(epoch)` pins the pass number so a
resumed run replays the exact order of the epoch it resumes at.
"""

import math
from typing import Iterator, Optional

import torch

# Prime stride between seeds, so distinct (seed, pass) pairs seed distinct generators.
_SEED_STRIDE = 1_000_003


class TensorSliceDataset:
    """
    Slices of aligned tensors, optionally shuffled and batched.

    Args:
        tensors: Tensors sharing their first dimension.
        shuffle_seed: Seed for per-pass shuffling; None keeps row order.
        batch_size: Rows per element once batched; None yields single rows.
        drop_remainder: Drop a trailing batch smaller than batch_size.
    """

    def __init__(
        self,
        tensors: tuple[torch.Tensor, ...],
        shuffle_seed: Optional[int] = None,
        batch_size: Optional[int] = None,
        drop_remainder: bool = False,
    ) -> None:
        if not tensors:
            raise ValueError("A dataset needs at least one tensor")
        num_rows = tensors[0].shape[0]
        for tensor in tensors[1:]:
            if tensor.shape[0] != num_rows:
                raise ValueError(
                    "All tensors must share their first dimension, got "
                    f"{[t.shape[0] for t in tensors]}"
                )
        if batch_size is not None and batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        self.tensors = tensors
        self.shuffle_seed = shuffle_seed
        self.batch_size = batch_size
        self.drop_remainder = drop_remainder
        self._passes = 0

    @classmethod
    def from_tensor_slices(cls, *tensors: torch.Tensor) -> "TensorSliceDataset":
        return cls(tuple(tensors))

    def shuffle(self, seed: int) -> "TensorSliceDataset":
        """Return a dataset that visits rows in a new seeded order on every pass."""
        return TensorSliceDataset(
            self.tensors,
            shuffle_seed=seed,
            batch_size=self.batch_size,
            drop_remainder=self.drop_remainder,
        )

    def batch(self, batch_size: int, drop_remainder: bool = False) -> "TensorSliceDataset":
        """Return a dataset yielding stacked batches of `batch_size` rows."""
        return TensorSliceDataset(
            self.tensors,
            shuffle_seed=self.shuffle_seed,
            batch_size=batch_size,
            drop_remainder=drop_remainder,
        )

    @property
    def num_rows(self) -> int:
        return int(self.tensors[0].shape[0])

    def cardinality(self) -> int:
        """Number of elements one pass yields (batches once batched)."""
        if self.batch_size is None:
            return self.num_rows
        if self.drop_remainder:
            return self.num_rows // self.batch_size
        return math.ceil(self.num_rows / self.batch_size)

    def __len__(self) -> int:
        return self.cardinality()

    def _order(self, pass_index: int) -> torch.Tensor:
        if self.shuffle_seed is None:
            return torch.arange(self.num_rows)
        generator = torch.Generator()
        generator.manual_seed((self.shuffle_seed * _SEED_STRIDE + pass_index) % 2**63)
        return torch.randperm(self.num_rows, generator=generator)

    def iterate(self, epoch: int) -> Iterator[tuple[torch.Tensor, ...]]:
        """
        One pass over the data with the shuffle order fixed by `epoch`.

        Yields:
            Tuples with one entry per source tensor. Unbatched entries drop the
            leading dimension; batched ones keep it.
        """
        order = self._order(epoch)

        if self.batch_size is None:
            for idx in order.tolist():
                yield tuple(tensor[idx] for tensor in self.tensors)
            return

        for start in range(0, self.num_rows, self.batch_size):
            batch_idx = order[start : start + self.batch_size]
            if self.drop_remainder and batch_idx.shape[0] < self.batch_size:
                return
            yield tuple(tensor[batch_idx] for tensor in self.tensors)

    def __iter__(self) -> Iterator[tuple[torch.Tensor, ...]]:
        pass_index = self._passes
        self._passes += 1
        return self.iterate(pass_index)
