# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Optimizer factory and gradient application for eagerfit.

Supported optimizers:
  - adam:  torch.optim.Adam with L2 weight decay on every parameter
  - adamw: torch.optim.AdamW, decoupled decay on weight matrices only
  - sgd:   torch.optim.SGD with optional momentum

Gradients come from a GradientTape rather than loss.backward(), so
`apply_gradients` is the bridge: it writes each gradient into `param.grad`,
optionally clips the global norm, steps the optimizer and clears the grads.
"""

from typing import Iterable, Optional

import torch
import torch.nn as nn

from eagerfit.config.schema import TrainConfig


def _separate_weight_decay_params(
    model: nn.Module,
    weight_decay: float,
) -> list[dict[str, object]]:
    """
    Split parameters into decay and no-decay groups.

    Only 2D+ tensors (weight matrices) are decayed; biases are left alone.
    """
    decay_params: list[torch.Tensor] = []
    no_decay_params: list[torch.Tensor] = []

    for _, param in model.named_parameters():
        if not param.requires_grad:
            continue
        if param.dim() >= 2:
            decay_params.append(param)
        else:
            no_decay_params.append(param)

    groups: list[dict[str, object]] = [{"params": decay_params, "weight_decay": weight_decay}]
    if no_decay_params:
        groups.append({"params": no_decay_params, "weight_decay": 0.0})
    return groups


def create_optimizer(
    model: nn.Module,
    train_config: TrainConfig,
) -> torch.optim.Optimizer:
    """
    Create the configured optimizer for the model's parameters.

    Args:
        model: The model whose parameters to optimize.
        train_config: Validated training configuration.

    Returns:
        A torch optimizer.
    """
    if train_config.optimizer == "adamw":
        return torch.optim.AdamW(
            _separate_weight_decay_params(model, train_config.weight_decay),
            lr=train_config.learning_rate,
            betas=(train_config.beta1, train_config.beta2),
        )

    if train_config.optimizer == "adam":
        return torch.optim.Adam(
            model.parameters(),
            lr=train_config.learning_rate,
            betas=(train_config.beta1, train_config.beta2),
            weight_decay=train_config.weight_decay,
        )

    if train_config.optimizer == "sgd":
        return torch.optim.SGD(
            model.parameters(),
            lr=train_config.learning_rate,
            momentum=train_config.momentum,
            weight_decay=train_config.weight_decay,
        )

    raise ValueError(f"Unknown optimizer '{train_config.optimizer}'")


def get_learning_rate(optimizer: torch.optim.Optimizer) -> float:
    """Learning rate of the first parameter group."""
    return float(optimizer.param_groups[0]["lr"])


def apply_gradients(
    optimizer: torch.optim.Optimizer,
    grads_and_vars: Iterable[tuple[Optional[torch.Tensor], torch.Tensor]],
    grad_clip: Optional[float] = None,
) -> float:
    """
    Apply tape gradients to their variables with one optimizer step.

    Variables paired with a None gradient are skipped by the optimizer,
    the same way torch skips parameters whose `.grad` is None.

    Args:
        optimizer: Optimizer owning the variables.
        grads_and_vars: (gradient, variable) pairs.
        grad_clip: Max global gradient norm; None disables clipping.

    Returns:
        Global L2 norm of the gradients before clipping.
    """
    params: list[torch.Tensor] = []
    for grad, var in grads_and_vars:
        if grad is None:
            var.grad = None
            continue
        if grad.shape != var.shape:
            raise ValueError(
                f"Gradient shape {tuple(grad.shape)} does not match variable shape {tuple(var.shape)}"
            )
        var.grad = grad.detach()
        params.append(var)

    if not params:
        return 0.0

    if grad_clip is not None:
        grad_norm = torch.nn.utils.clip_grad_norm_(params, grad_clip).item()
    else:
        grad_norm = torch.linalg.vector_norm(
            torch.stack([torch.linalg.vector_norm(p.grad) for p in params])  # type: ignore[arg-type]
        ).item()

    optimizer.step()
    optimizer.zero_grad(set_to_none=True)
    return grad_norm
