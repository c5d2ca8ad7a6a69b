# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Per-epoch training metrics for eagerfit.

The tracker accumulates batch losses during an epoch and turns them into an
EpochMetrics record at the end of it:
  - total_loss: sum of the batch losses, the number a manual loop prints
  - mean_loss:  per-sample average, comparable across batch sizes
  - samples_per_sec, learning_rate, grad_norm (last batch), global_step

Records are logged as structured JSON every `log_interval` epochs and kept
as a history that can be exported as a pandas DataFrame / CSV.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path

import pandas as pd

from eagerfit.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)


@dataclass
class EpochMetrics:
    """Metrics collected for a single epoch."""

    epoch: int = 0
    total_loss: float = 0.0
    mean_loss: float = 0.0
    batches: int = 0
    samples: int = 0
    samples_per_sec: float = 0.0
    learning_rate: float = 0.0
    grad_norm: float = 0.0
    global_step: int = 0


@dataclass
class MetricsTracker:
    """
    Accumulates batch losses and emits one record per epoch.

    Args:
        log_interval: Log every N epochs (counted from 1).
    """

    log_interval: int = 1
    history: list[EpochMetrics] = field(default_factory=list, init=False)
    _total_loss: float = field(default=0.0, init=False)
    _weighted_loss: float = field(default=0.0, init=False)
    _batches: int = field(default=0, init=False)
    _samples: int = field(default=0, init=False)
    _last_grad_norm: float = field(default=0.0, init=False)
    _epoch_start_time: float = field(default=0.0, init=False)

    def begin_epoch(self) -> None:
        """Reset accumulators and start the epoch timer."""
        self._total_loss = 0.0
        self._weighted_loss = 0.0
        self._batches = 0
        self._samples = 0
        self._last_grad_norm = 0.0
        self._epoch_start_time = time.monotonic()

    def record_batch(self, loss: float, batch_size: int, grad_norm: float = 0.0) -> None:
        """Add one batch; `loss` is the batch's mean loss."""
        self._total_loss += loss
        self._weighted_loss += loss * batch_size
        self._batches += 1
        self._samples += batch_size
        self._last_grad_norm = grad_norm

    def end_epoch(self, epoch: int, global_step: int, learning_rate: float) -> EpochMetrics:
        """
        Finalize the epoch record, append it to the history and maybe log it.

        Args:
            epoch: Zero-based epoch index.
            global_step: Optimizer steps taken so far.
            learning_rate: Current learning rate.
        """
        elapsed = time.monotonic() - self._epoch_start_time
        metrics = EpochMetrics(
            epoch=epoch,
            total_loss=self._total_loss,
            mean_loss=self._weighted_loss / self._samples if self._samples > 0 else 0.0,
            batches=self._batches,
            samples=self._samples,
            samples_per_sec=self._samples / elapsed if elapsed > 0 else 0.0,
            learning_rate=learning_rate,
            grad_norm=self._last_grad_norm,
            global_step=global_step,
        )
        self.history.append(metrics)

        if (epoch + 1) % self.log_interval == 0:
            self._log_metrics(metrics)

        return metrics

    def _log_metrics(self, metrics: EpochMetrics) -> None:
        logger.info(
            "Epoch complete",
            extra={
                "epoch": metrics.epoch,
                "total_loss": round(metrics.total_loss, 6),
                "mean_loss": round(metrics.mean_loss, 6),
                "batches": metrics.batches,
                "lr": metrics.learning_rate,
                "grad_norm": round(metrics.grad_norm, 4),
                "samples_per_sec": round(metrics.samples_per_sec, 1),
                "global_step": metrics.global_step,
            },
        )

    def to_frame(self) -> pd.DataFrame:
        """History as a DataFrame, one row per epoch."""
        columns = list(EpochMetrics.__dataclass_fields__)
        return pd.DataFrame([asdict(m) for m in self.history], columns=columns)

    def write_history(self, path: Path) -> Path:
        """Write the history as CSV, appending to an existing file from an earlier run."""
        path.parent.mkdir(parents=True, exist_ok=True)
        frame = self.to_frame()
        if path.is_file():
            frame = pd.concat([pd.read_csv(path), frame], ignore_index=True)
            frame = frame.drop_duplicates(subset="epoch", keep="last")
        frame.to_csv(path, index=False)
        return path
