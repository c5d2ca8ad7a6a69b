# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for GradientTape.

Gradients from the tape must match what autograd computes by hand, and the
persistence rules must hold.
"""

import pytest
import torch
import torch.nn as nn

from eagerfit.training.tape import GradientTape


class TestGradients:
    def test_gradient_of_square(self) -> None:
        x = torch.tensor(3.0, requires_grad=True)
        with GradientTape() as tape:
            y = x * x
        assert tape.gradient(y, x).item() == pytest.approx(6.0)

    def test_list_of_sources_returns_list(self) -> None:
        a = torch.tensor(2.0, requires_grad=True)
        b = torch.tensor(5.0, requires_grad=True)
        with GradientTape() as tape:
            y = a * b
        grad_a, grad_b = tape.gradient(y, [a, b])
        assert grad_a.item() == pytest.approx(5.0)
        assert grad_b.item() == pytest.approx(2.0)

    def test_matches_backward_for_a_model(self) -> None:
        torch.manual_seed(0)
        model = nn.Linear(3, 1)
        x, y = torch.randn(4, 3), torch.randn(4, 1)
        params = list(model.parameters())

        with GradientTape() as tape:
            loss = ((model(x) - y) ** 2).mean()
        tape_grads = tape.gradient(loss, params)

        ((model(x) - y) ** 2).mean().backward()
        for grad, param in zip(tape_grads, params):
            assert torch.allclose(grad, param.grad)

    def test_non_scalar_target_is_summed(self) -> None:
        x = torch.tensor([1.0, 2.0], requires_grad=True)
        with GradientTape() as tape:
            y = x * 3
        assert torch.equal(tape.gradient(y, x), torch.tensor([3.0, 3.0]))

    def test_unconnected_source_gets_none(self) -> None:
        a = torch.tensor(1.0, requires_grad=True)
        b = torch.tensor(1.0, requires_grad=True)
        with GradientTape() as tape:
            y = a * 2
        assert tape.gradient(y, [a, b])[1] is None

    def test_untracked_source_gets_none(self) -> None:
        a = torch.tensor(1.0, requires_grad=True)
        c = torch.tensor(1.0)
        with GradientTape() as tape:
            y = a * c
        assert tape.gradient(y, [a, c])[1] is None

    def test_records_inside_no_grad(self) -> None:
        x = torch.tensor(2.0, requires_grad=True)
        with torch.no_grad():
            with GradientTape() as tape:
                y = x ** 3
        assert tape.gradient(y, x).item() == pytest.approx(12.0)


class TestWatch:
    def test_watch_makes_plain_tensor_differentiable(self) -> None:
        x = torch.tensor(4.0)
        with GradientTape() as tape:
            tape.watch(x)
            y = x * x
        assert tape.gradient(y, x).item() == pytest.approx(8.0)

    def test_watch_integer_tensor_raises(self) -> None:
        with GradientTape() as tape:
            with pytest.raises(ValueError):
                tape.watch(torch.tensor([1, 2]))


class TestPersistence:
    def test_non_persistent_tape_is_single_use(self) -> None:
        x = torch.tensor(1.0, requires_grad=True)
        with GradientTape() as tape:
            y = x * x
        tape.gradient(y, x)
        with pytest.raises(RuntimeError):
            tape.gradient(y, x)

    def test_persistent_tape_allows_repeated_calls(self) -> None:
        x = torch.tensor(3.0, requires_grad=True)
        with GradientTape(persistent=True) as tape:
            y = x * x
            z = y * x
        assert tape.gradient(y, x).item() == pytest.approx(6.0)
        assert tape.gradient(z, x).item() == pytest.approx(27.0)

    def test_recording_flag(self) -> None:
        tape = GradientTape()
        assert not tape.recording
        with tape:
            assert tape.recording
        assert not tape.recording

    def test_nested_enter_raises(self) -> None:
        tape = GradientTape()
        with tape:
            with pytest.raises(RuntimeError):
                tape.__enter__()
