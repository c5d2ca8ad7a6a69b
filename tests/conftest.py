# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for eagerfit tests.

Fixtures here are available to every test file automatically.
Kept minimal: only what several test modules need.
"""

import logging
import textwrap
from pathlib import Path
from typing import Iterator

import pytest
import torch

from eagerfit.config.schema import EagerFitConfig
from eagerfit.logging.logger import PACKAGE_LOGGER


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """
    The smallest config that passes schema validation.

    Tests that need specific config values should write their own files.
    """
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "eagerfit-test"
          seed: 42
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """Valid YAML that fails schema validation (missing config_version)."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "eagerfit-test"
          seed: 42
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file


@pytest.fixture()
def training_config_file(tmp_path: Path) -> Path:
    """A complete config for a tiny, fast CPU training run on mtcars."""
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "eagerfit-test"
          seed: 7
          log_level: "WARNING"

        data:
          source: "mtcars"
          target_column: "mpg"
          test_fraction: 0.25

        model:
          hidden_units: [8]
          activation: "tanh"

        train:
          epochs: 4
          batch_size: 8
          optimizer: "adam"
          learning_rate: 0.01
          checkpoint_interval: 2
          max_to_keep: 5
          log_interval: 2
          device: "cpu"
    """)
    config_file = tmp_path / "train_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def training_config(training_config_file: Path) -> EagerFitConfig:
    from eagerfit.config.loader import load_config

    return load_config(training_config_file)


@pytest.fixture()
def regression_tensors() -> tuple[torch.Tensor, torch.Tensor]:
    """20 rows of a noiseless linear relationship y = 2*x0 - x1 + 0.5."""
    generator = torch.Generator()
    generator.manual_seed(0)
    features = torch.randn(20, 2, generator=generator)
    targets = (2.0 * features[:, 0] - features[:, 1] + 0.5).unsqueeze(1)
    return features, targets


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Undo log files and levels that a test configured on the package logger."""
    yield
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(logging.INFO)
    for handler in list(package_logger.handlers):
        if isinstance(handler, logging.FileHandler):
            package_logger.removeHandler(handler)
            handler.close()
