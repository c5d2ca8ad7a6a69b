# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for eagerfit.

Runs once at the start of every CLI command that has a config:
  1. Check the interpreter version
  2. Seed every source of randomness
  3. Initialise the package logger (level and optional log file)
  4. Create the configured project directories
"""

import os
import platform
import random
import sys
from pathlib import Path
from typing import Optional

import torch

from eagerfit.config.schema import GlobalConfig
from eagerfit.logging.logger import get_logger
from eagerfit.utils.paths import ensure_directory, resolve_within_project


MINIMUM_PYTHON = (3, 10)


def check_python_version(version: Optional[tuple[int, ...]] = None) -> None:
    """
    Refuse to run on an interpreter older than MINIMUM_PYTHON.

    Args:
        version: Version tuple to check; defaults to the running interpreter.

    Raises:
        RuntimeError: If the version is too old.
    """
    current = tuple(version if version is not None else sys.version_info[:3])
    if current[:2] < MINIMUM_PYTHON:
        required = ".".join(str(part) for part in MINIMUM_PYTHON)
        found = ".".join(str(part) for part in current[:2])
        raise RuntimeError(f"eagerfit requires Python >= {required}, found {found}")


def describe_runtime() -> dict[str, object]:
    """Interpreter, torch build and compute devices, as log-ready fields."""
    return {
        "python_version": platform.python_version(),
        "torch_version": torch.__version__,
        "cuda_available": torch.cuda.is_available(),
        "cuda_devices": torch.cuda.device_count(),
        "torch_threads": torch.get_num_threads(),
        "platform": platform.system(),
        "architecture": platform.machine(),
    }


def set_deterministic_seed(seed: int) -> None:
    """
    Seed Python's `random`, PYTHONHASHSEED and torch (CPU and CUDA).

    On CUDA, cuDNN is also switched to deterministic kernels.

    Args:
        seed: Integer seed value. Must be >= 0.
    """
    random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)

    torch.manual_seed(seed)
    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(seed)
        torch.backends.cudnn.deterministic = True  # type: ignore[attr-defined]
        torch.backends.cudnn.benchmark = False  # type: ignore[attr-defined]


def _ensure_project_directories(project_root: Path, config: GlobalConfig) -> None:
    dirs = config.directories
    ensure_directory(resolve_within_project(dirs.data, project_root))
    ensure_directory(resolve_within_project(dirs.experiments, project_root))
    ensure_directory(resolve_within_project(dirs.logs, project_root))


def bootstrap(config: GlobalConfig, project_root: Path) -> None:
    """
    Put the process into a known state before any real work.

    Args:
        config: The validated global configuration.
        project_root: Directory that configured relative paths are resolved against.
    """
    check_python_version()
    set_deterministic_seed(config.seed)

    log_file = None
    if config.log_file is not None:
        log_file = resolve_within_project(config.log_file, project_root)

    logger = get_logger("eagerfit", log_level=config.log_level, log_file=log_file)

    _ensure_project_directories(project_root, config)

    logger.info(
        "eagerfit bootstrap complete",
        extra={"seed": config.seed, "project_root": str(project_root), **describe_runtime()},
    )
