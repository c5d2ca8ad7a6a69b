# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Gradient tape over torch autograd.

Operations run eagerly inside the `with` block and autograd records them;
`tape.gradient(loss, params)` then differentiates the recorded graph:

    with GradientTape() as tape:
        preds = model(x)
        loss = loss_fn(y, preds)
    grads = tape.gradient(loss, list(model.parameters()))

A non-persistent tape releases the graph after its first gradient call, so a
second call raises. A persistent tape keeps the graph for repeated calls.
"""

from contextlib import ExitStack
from types import TracebackType
from typing import Optional, Sequence, Union

import torch

Sources = Union[torch.Tensor, Sequence[torch.Tensor]]


class GradientTape:
    """
    Records a forward pass so gradients can be computed afterwards.

    Args:
        persistent: Keep the recorded graph so `gradient` can be called more
            than once.
    """

    def __init__(self, persistent: bool = False) -> None:
        self.persistent = persistent
        self._stack: Optional[ExitStack] = None
        self._used = False

    @property
    def recording(self) -> bool:
        return self._stack is not None

    def __enter__(self) -> "GradientTape":
        if self._stack is not None:
            raise RuntimeError("GradientTape is already recording")
        stack = ExitStack()
        stack.enter_context(torch.enable_grad())
        self._stack = stack
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        stack, self._stack = self._stack, None
        if stack is not None:
            stack.close()

    def watch(self, tensor: torch.Tensor) -> torch.Tensor:
        """
        Make a plain tensor trackable so gradients can be taken with respect to it.

        Raises:
            ValueError: For integer or boolean tensors, which have no gradient.
        """
        if tensor.requires_grad:
            return tensor
        if not (tensor.is_floating_point() or tensor.is_complex()):
            raise ValueError(f"Only floating point tensors can be watched, got {tensor.dtype}")
        return tensor.requires_grad_(True)

    def gradient(
        self,
        target: torch.Tensor,
        sources: Sources,
    ) -> Union[Optional[torch.Tensor], list[Optional[torch.Tensor]]]:
        """
        Differentiate `target` with respect to `sources`.

        A non-scalar target is differentiated as the sum of its elements.
        Sources that the target does not depend on get None.

        Args:
            target: Tensor computed while the tape was recording.
            sources: One tensor or a sequence of tensors.

        Returns:
            A gradient (or None) for a single source, else a list aligned with sources.

        Raises:
            RuntimeError: If a non-persistent tape is asked for gradients twice.
        """
        if self._used and not self.persistent:
            raise RuntimeError(
                "A non-persistent GradientTape can only be used to compute one set of gradients"
            )
        self._used = True

        single = isinstance(sources, torch.Tensor)
        source_list: list[torch.Tensor] = [sources] if single else list(sources)  # type: ignore[list-item]
        grads: list[Optional[torch.Tensor]] = [None] * len(source_list)

        tracked = [i for i, src in enumerate(source_list) if src.requires_grad]
        if target.requires_grad and tracked:
            computed = torch.autograd.grad(
                target,
                [source_list[i] for i in tracked],
                grad_outputs=torch.ones_like(target),
                retain_graph=self.persistent,
                allow_unused=True,
            )
            for i, grad in zip(tracked, computed):
                grads[i] = grad

        return grads[0] if single else grads
