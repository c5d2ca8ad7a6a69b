# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Config loader: YAML on disk in, validated and frozen EagerFitConfig out.

  1. Read the file as text
  2. Parse it with yaml.safe_load
  3. Validate the mapping against the pydantic schema
  4. Return the immutable config

Any failure stops here with a ConfigError subclass. There are no fallback
defaults for a config that cannot be read.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from eagerfit.config.exceptions import ConfigLoadError, ConfigValidationError
from eagerfit.config.schema import EagerFitConfig


def _read_yaml_file(config_path: Path) -> dict[str, Any]:
    """
    Read a YAML file and return the parsed mapping.

    Raises:
        ConfigLoadError: If the file doesn't exist, isn't readable, isn't valid
            YAML, or doesn't hold a mapping at the top level.
    """
    if not config_path.exists():
        raise ConfigLoadError(f"Config file not found: {config_path}")

    if not config_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {config_path}")

    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigLoadError(f"Cannot read config file {config_path}: {err}") from err

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err

    if not isinstance(parsed, dict):
        raise ConfigLoadError(
            f"Config file must contain a YAML mapping (dict), got {type(parsed).__name__}"
        )

    return parsed


def load_config(config_path: Path) -> EagerFitConfig:
    """
    Load, validate, and freeze a config file.

    Args:
        config_path: Path to a YAML config file.

    Returns:
        A validated, frozen EagerFitConfig.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations.
    """
    raw_data = _read_yaml_file(config_path)

    try:
        config = EagerFitConfig.model_validate(raw_data)
    except ValidationError as err:
        raise ConfigValidationError(
            f"Config validation failed for {config_path}:\n{err}"
        ) from err

    return config
