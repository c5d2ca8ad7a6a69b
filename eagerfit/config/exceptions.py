# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Configuration errors.

Kept apart from the loader so the CLI can catch config failures and map them
to CONFIG_ERROR without importing pydantic or yaml.
"""


class ConfigError(Exception):
    """Base for all configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when a config file cannot be read from disk or parsed as YAML."""


class ConfigValidationError(ConfigError):
    """
    Raised when a config file parses fine but fails schema validation:
    missing required fields, wrong types, out-of-range values, unknown keys.
    """
