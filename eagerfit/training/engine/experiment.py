# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Experiment directory setup for eagerfit.

    experiments/<run_id>/
      ├── config.json      : frozen config snapshot
      ├── metrics/
      │     └── history.csv: one row per epoch
      └── checkpoints/
            ├── checkpoint : index
            └── ckpt-N/

  run_id format: YYYYMMDD_HHMMSS_<seed>
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from eagerfit.config.schema import EagerFitConfig
from eagerfit.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)


def create_experiment_dir(
    experiments_root: Path,
    config: EagerFitConfig,
    seed: int,
) -> Path:
    """
    Create a new experiment directory and snapshot the config into it.

    Two runs started within the same second with the same seed get a
    numeric suffix instead of sharing a directory.

    Args:
        experiments_root: Root directory for experiments.
        config: The full validated config.
        seed: The training seed, part of the run_id.

    Returns:
        Path to the created experiment directory.
    """
    timestamp = datetime.now(tz=timezone.utc).strftime("%Y%m%d_%H%M%S")
    run_id = f"{timestamp}_{seed}"
    experiment_dir = experiments_root / run_id
    suffix = 1
    while experiment_dir.exists():
        experiment_dir = experiments_root / f"{run_id}_{suffix}"
        suffix += 1

    experiment_dir.mkdir(parents=True)
    (experiment_dir / "checkpoints").mkdir()
    (experiment_dir / "metrics").mkdir()

    (experiment_dir / "config.json").write_text(
        json.dumps(config.model_dump(by_alias=True), indent=2, default=str),
        encoding="utf-8",
    )

    logger.info(
        "Experiment directory created",
        extra={"run_id": experiment_dir.name, "path": str(experiment_dir)},
    )
    return experiment_dir


def find_experiment_dir(
    experiments_root: Path,
    run_id: Optional[str] = None,
) -> Optional[Path]:
    """
    Find an experiment directory by run_id, or return the most recent one.

    Returns:
        Path to the experiment directory, or None if not found.
    """
    if not experiments_root.is_dir():
        return None

    if run_id is not None:
        target = experiments_root / run_id
        return target if target.is_dir() else None

    # run_ids start with a UTC timestamp, so name order is creation order
    dirs = sorted(
        (d for d in experiments_root.iterdir() if d.is_dir()),
        reverse=True,
    )
    return dirs[0] if dirs else None
