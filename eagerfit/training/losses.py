# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Regression loss functions.

All losses take (y_true, y_pred) and return the mean over every element as a
scalar tensor. Shapes must match exactly: a (n,) target against an (n, 1)
prediction would broadcast to (n, n) and quietly train on garbage, so it is
rejected instead.
"""

from typing import Callable

import torch
import torch.nn.functional as F

LossFn = Callable[[torch.Tensor, torch.Tensor], torch.Tensor]


def _check_shapes(y_true: torch.Tensor, y_pred: torch.Tensor) -> None:
    if y_true.shape != y_pred.shape:
        raise ValueError(
            f"Loss inputs must have identical shapes, got y_true {tuple(y_true.shape)} "
            f"and y_pred {tuple(y_pred.shape)}"
        )


def mse_loss(y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
    """Mean squared error."""
    _check_shapes(y_true, y_pred)
    return F.mse_loss(y_pred, y_true)


def mae_loss(y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
    """Mean absolute error."""
    _check_shapes(y_true, y_pred)
    return F.l1_loss(y_pred, y_true)


def huber_loss(y_true: torch.Tensor, y_pred: torch.Tensor, delta: float = 1.0) -> torch.Tensor:
    """Huber loss: quadratic within `delta`, linear beyond it."""
    _check_shapes(y_true, y_pred)
    return F.huber_loss(y_pred, y_true, delta=delta)


_LOSSES: dict[str, LossFn] = {
    "mse": mse_loss,
    "mae": mae_loss,
    "huber": huber_loss,
}


def get_loss_fn(name: str) -> LossFn:
    """Look up a loss function by its config name."""
    try:
        return _LOSSES[name]
    except KeyError:
        raise ValueError(
            f"Unknown loss '{name}'. Available: {', '.join(sorted(_LOSSES))}"
        ) from None
