# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for TensorSliceDataset: slicing, batching and per-epoch shuffling."""

import pytest
import torch

from eagerfit.data.dataset import TensorSliceDataset


def _dataset(rows: int = 10) -> TensorSliceDataset:
    features = torch.arange(rows * 2, dtype=torch.float32).reshape(rows, 2)
    targets = torch.arange(rows, dtype=torch.float32).unsqueeze(1)
    return TensorSliceDataset.from_tensor_slices(features, targets)


class TestSlicing:
    def test_unbatched_elements_drop_leading_dimension(self) -> None:
        elements = list(_dataset(3))
        assert len(elements) == 3
        x, y = elements[0]
        assert x.shape == (2,)
        assert y.shape == (1,)

    def test_mismatched_first_dimension_raises(self) -> None:
        with pytest.raises(ValueError):
            TensorSliceDataset.from_tensor_slices(torch.ones(3, 2), torch.ones(4, 1))

    def test_no_tensors_raises(self) -> None:
        with pytest.raises(ValueError):
            TensorSliceDataset.from_tensor_slices()


class TestBatching:
    def test_last_partial_batch_kept(self) -> None:
        batches = list(_dataset(10).batch(4))
        assert [b[0].shape[0] for b in batches] == [4, 4, 2]
        assert len(_dataset(10).batch(4)) == 3

    def test_drop_remainder(self) -> None:
        ds = _dataset(10).batch(4, drop_remainder=True)
        assert [b[0].shape[0] for b in ds] == [4, 4]
        assert ds.cardinality() == 2

    def test_batch_larger_than_data_with_drop_remainder_is_empty(self) -> None:
        ds = _dataset(3).batch(8, drop_remainder=True)
        assert len(ds) == 0
        assert list(ds) == []

    def test_invalid_batch_size(self) -> None:
        with pytest.raises(ValueError):
            _dataset().batch(0)

    def test_transformations_do_not_mutate(self) -> None:
        base = _dataset(10)
        base.shuffle(1).batch(4)
        assert base.batch_size is None
        assert base.shuffle_seed is None


class TestShuffling:
    def test_unshuffled_order_is_stable(self) -> None:
        ys = [y.item() for _, y in _dataset(5)]
        assert ys == [0.0, 1.0, 2.0, 3.0, 4.0]

    def test_every_row_visited_once_per_epoch(self) -> None:
        ds = _dataset(10).shuffle(3).batch(3)
        seen = torch.cat([y for _, y in ds.iterate(0)]).squeeze(1).tolist()
        assert sorted(seen) == list(range(10))

    def test_pairs_stay_aligned(self) -> None:
        for x, y in _dataset(10).shuffle(11).iterate(2):
            assert x[0].item() == 2 * y[0].item()

    def test_order_is_a_function_of_seed_and_epoch(self) -> None:
        a = _dataset(20).shuffle(7).batch(5)
        b = _dataset(20).shuffle(7).batch(5)
        for epoch in range(3):
            first = torch.cat([y for _, y in a.iterate(epoch)])
            second = torch.cat([y for _, y in b.iterate(epoch)])
            assert torch.equal(first, second)

    def test_epochs_differ(self) -> None:
        ds = _dataset(20).shuffle(7)
        epoch0 = torch.cat([y for _, y in ds.batch(20).iterate(0)])
        epoch1 = torch.cat([y for _, y in ds.batch(20).iterate(1)])
        assert not torch.equal(epoch0, epoch1)

    def test_neighbouring_seeds_do_not_share_epoch_orders(self) -> None:
        def order(seed: int, epoch: int) -> torch.Tensor:
            return next(_dataset(20).shuffle(seed).batch(20).iterate(epoch))[1]

        assert not torch.equal(order(0, 1), order(1, 0))
        assert not torch.equal(order(3, 5), order(5, 3))

    def test_repeated_iteration_advances_epoch(self) -> None:
        ds = _dataset(20).shuffle(7).batch(20)
        first_pass = next(iter(ds))[1]
        second_pass = next(iter(ds))[1]
        assert torch.equal(first_pass, next(ds.iterate(0))[1])
        assert torch.equal(second_pass, next(ds.iterate(1))[1])
