# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for per-epoch metrics and the history CSV."""

import logging
from pathlib import Path

import pandas as pd
import pytest

from eagerfit.training.metrics.core import EpochMetrics, MetricsTracker


def _run_epoch(
    tracker: MetricsTracker, epoch: int, losses: list[float], batch_size: int = 4
) -> EpochMetrics:
    tracker.begin_epoch()
    for loss in losses:
        tracker.record_batch(loss, batch_size, grad_norm=0.5)
    return tracker.end_epoch(epoch, global_step=(epoch + 1) * len(losses), learning_rate=0.01)


class TestMetricsTracker:
    def test_total_and_mean_loss(self) -> None:
        tracker = MetricsTracker()
        tracker.begin_epoch()
        tracker.record_batch(2.0, 4)
        tracker.record_batch(4.0, 2)
        metrics = tracker.end_epoch(0, global_step=2, learning_rate=0.1)
        assert metrics.total_loss == pytest.approx(6.0)
        assert metrics.mean_loss == pytest.approx((2.0 * 4 + 4.0 * 2) / 6)
        assert metrics.batches == 2
        assert metrics.samples == 6
        assert metrics.global_step == 2
        assert metrics.learning_rate == 0.1

    def test_accumulators_reset_each_epoch(self) -> None:
        tracker = MetricsTracker()
        _run_epoch(tracker, 0, [1.0, 1.0])
        metrics = _run_epoch(tracker, 1, [3.0])
        assert metrics.total_loss == pytest.approx(3.0)
        assert metrics.batches == 1

    def test_empty_epoch(self) -> None:
        tracker = MetricsTracker()
        metrics = _run_epoch(tracker, 0, [])
        assert metrics.mean_loss == 0.0

    def test_history_frame(self) -> None:
        tracker = MetricsTracker()
        for epoch in range(3):
            _run_epoch(tracker, epoch, [1.0])
        frame = tracker.to_frame()
        assert list(frame["epoch"]) == [0, 1, 2]
        assert "mean_loss" in frame.columns

    def test_logs_at_interval(self, caplog: pytest.LogCaptureFixture) -> None:
        tracker = MetricsTracker(log_interval=2)
        logger = logging.getLogger("eagerfit.training.metrics.core")
        logger.addHandler(caplog.handler)
        try:
            for epoch in range(4):
                _run_epoch(tracker, epoch, [1.0])
        finally:
            logger.removeHandler(caplog.handler)
        logged = [r.epoch for r in caplog.records if r.getMessage() == "Epoch complete"]  # type: ignore[attr-defined]
        assert logged == [1, 3]


class TestWriteHistory:
    def test_writes_csv(self, tmp_path: Path) -> None:
        tracker = MetricsTracker()
        _run_epoch(tracker, 0, [1.0])
        path = tracker.write_history(tmp_path / "metrics" / "history.csv")
        assert pd.read_csv(path).shape[0] == 1

    def test_appends_and_replaces_overlapping_epochs(self, tmp_path: Path) -> None:
        path = tmp_path / "history.csv"

        first = MetricsTracker()
        for epoch in range(3):
            _run_epoch(first, epoch, [10.0])
        first.write_history(path)

        resumed = MetricsTracker()
        for epoch in range(2, 4):
            _run_epoch(resumed, epoch, [1.0])
        resumed.write_history(path)

        frame = pd.read_csv(path)
        assert list(frame["epoch"]) == [0, 1, 2, 3]
        assert frame.loc[frame["epoch"] == 2, "total_loss"].item() == pytest.approx(1.0)
