# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for optimizer creation and applying tape gradients."""

import pytest
import torch
import torch.nn as nn

from eagerfit.config.schema import TrainConfig
from eagerfit.training.optimizer.core import apply_gradients, create_optimizer, get_learning_rate


def _model() -> nn.Module:
    torch.manual_seed(0)
    return nn.Sequential(nn.Linear(3, 4), nn.ReLU(), nn.Linear(4, 1))


class TestCreateOptimizer:
    @pytest.mark.parametrize(
        "name,cls",
        [("adam", torch.optim.Adam), ("adamw", torch.optim.AdamW), ("sgd", torch.optim.SGD)],
    )
    def test_optimizer_type(self, name: str, cls: type) -> None:
        optimizer = create_optimizer(_model(), TrainConfig(optimizer=name))  # type: ignore[arg-type]
        assert isinstance(optimizer, cls)

    def test_learning_rate(self) -> None:
        optimizer = create_optimizer(_model(), TrainConfig(learning_rate=0.05))
        assert get_learning_rate(optimizer) == pytest.approx(0.05)

    def test_adamw_skips_decay_on_biases(self) -> None:
        optimizer = create_optimizer(_model(), TrainConfig(optimizer="adamw", weight_decay=0.1))
        decay, no_decay = optimizer.param_groups
        assert decay["weight_decay"] == 0.1
        assert no_decay["weight_decay"] == 0.0
        assert all(p.dim() >= 2 for p in decay["params"])
        assert all(p.dim() == 1 for p in no_decay["params"])

    def test_sgd_momentum(self) -> None:
        optimizer = create_optimizer(_model(), TrainConfig(optimizer="sgd", momentum=0.9))
        assert optimizer.param_groups[0]["momentum"] == 0.9


class TestApplyGradients:
    def test_sgd_step_moves_against_gradient(self) -> None:
        param = nn.Parameter(torch.tensor([1.0, 2.0]))
        optimizer = torch.optim.SGD([param], lr=0.5)
        apply_gradients(optimizer, [(torch.tensor([1.0, -2.0]), param)])
        assert torch.allclose(param.detach(), torch.tensor([0.5, 3.0]))

    def test_grads_cleared_after_step(self) -> None:
        param = nn.Parameter(torch.ones(2))
        optimizer = torch.optim.SGD([param], lr=0.1)
        apply_gradients(optimizer, [(torch.ones(2), param)])
        assert param.grad is None

    def test_returns_global_norm(self) -> None:
        a = nn.Parameter(torch.zeros(1))
        b = nn.Parameter(torch.zeros(1))
        optimizer = torch.optim.SGD([a, b], lr=0.1)
        norm = apply_gradients(optimizer, [(torch.tensor([3.0]), a), (torch.tensor([4.0]), b)])
        assert norm == pytest.approx(5.0)

    def test_clipping_limits_update(self) -> None:
        param = nn.Parameter(torch.zeros(2))
        optimizer = torch.optim.SGD([param], lr=1.0)
        norm = apply_gradients(optimizer, [(torch.tensor([3.0, 4.0]), param)], grad_clip=1.0)
        assert norm == pytest.approx(5.0)
        assert torch.linalg.vector_norm(param.detach()).item() == pytest.approx(1.0, rel=1e-4)

    def test_none_gradient_leaves_variable_untouched(self) -> None:
        a = nn.Parameter(torch.ones(1))
        b = nn.Parameter(torch.ones(1))
        optimizer = torch.optim.SGD([a, b], lr=1.0)
        apply_gradients(optimizer, [(torch.ones(1), a), (None, b)])
        assert a.item() == pytest.approx(0.0)
        assert b.item() == pytest.approx(1.0)

    def test_all_none_returns_zero(self) -> None:
        a = nn.Parameter(torch.ones(1))
        optimizer = torch.optim.SGD([a], lr=1.0)
        assert apply_gradients(optimizer, [(None, a)]) == 0.0
        assert a.item() == pytest.approx(1.0)

    def test_shape_mismatch_raises(self) -> None:
        param = nn.Parameter(torch.ones(2))
        optimizer = torch.optim.SGD([param], lr=1.0)
        with pytest.raises(ValueError, match="does not match"):
            apply_gradients(optimizer, [(torch.ones(3), param)])
