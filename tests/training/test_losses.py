# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for the regression losses."""

import pytest
import torch

from eagerfit.training.losses import get_loss_fn, huber_loss, mae_loss, mse_loss


class TestLossValues:
    def test_mse(self) -> None:
        y_true = torch.tensor([[1.0], [2.0]])
        y_pred = torch.tensor([[2.0], [4.0]])
        assert mse_loss(y_true, y_pred).item() == pytest.approx(2.5)

    def test_mae(self) -> None:
        y_true = torch.tensor([[1.0], [2.0]])
        y_pred = torch.tensor([[2.0], [4.0]])
        assert mae_loss(y_true, y_pred).item() == pytest.approx(1.5)

    def test_huber_is_quadratic_then_linear(self) -> None:
        y_true = torch.zeros(2, 1)
        y_pred = torch.tensor([[0.5], [3.0]])
        # 0.5 * 0.5**2 = 0.125 and 1.0 * (3.0 - 0.5) = 2.5
        assert huber_loss(y_true, y_pred).item() == pytest.approx((0.125 + 2.5) / 2)

    def test_perfect_prediction_is_zero(self) -> None:
        y = torch.randn(4, 1)
        for name in ("mse", "mae", "huber"):
            assert get_loss_fn(name)(y, y.clone()).item() == 0.0

    def test_loss_is_scalar(self) -> None:
        assert mse_loss(torch.zeros(3, 1), torch.ones(3, 1)).dim() == 0


class TestShapeChecks:
    def test_broadcastable_shapes_are_rejected(self) -> None:
        with pytest.raises(ValueError, match="identical shapes"):
            mse_loss(torch.zeros(3), torch.zeros(3, 1))


class TestLookup:
    def test_known_names(self) -> None:
        assert get_loss_fn("mse") is mse_loss
        assert get_loss_fn("mae") is mae_loss
        assert get_loss_fn("huber") is huber_loss

    def test_unknown_name_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown loss"):
            get_loss_fn("hinge")
