# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for eagerfit.

Each config section is a frozen pydantic model:
  - frozen=True: a loaded config cannot be mutated at runtime
  - extra="forbid": unknown keys are a hard error, not a silent typo
  - validate_default=True: defaults go through the same checks as user values

A single YAML file holds `global:` plus whichever of `data:`, `model:` and
`train:` the command needs. Sections left out stay None and each command
checks for what it requires.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DirectoryConfig(BaseModel):
    """Output directories, relative to the project root (the config file's directory)."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    data: str = Field(default="data", description="Where user-provided CSV tables live")
    experiments: str = Field(default="experiments", description="Training run outputs")
    logs: str = Field(default="logs", description="Log files")


class GlobalConfig(BaseModel):
    """
    Cross-cutting settings: reproducibility, verbosity and project layout.
    Loaded first by every command.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    project_name: str = Field(
        default="eagerfit", description="Human-readable project identifier"
    )
    seed: int = Field(
        default=42,
        ge=0,
        description="Global random seed for weights, data split and shuffling",
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output, relative to project root",
    )
    directories: DirectoryConfig = Field(default_factory=DirectoryConfig)


class DataConfig(BaseModel):
    """
    Where the example table comes from and how it becomes tensors.

    `source: mtcars` uses the table bundled with the package; any other value
    is a CSV path relative to the project root.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    source: str = Field(default="mtcars", description="'mtcars' or a CSV path")
    target_column: str = Field(default="mpg", description="Column predicted by the model")
    feature_columns: Optional[list[str]] = Field(
        default=None,
        description="Input columns; None means every numeric column except the target",
    )
    test_fraction: float = Field(
        default=0.2,
        ge=0.0,
        lt=1.0,
        description="Share of rows held out for evaluation",
    )
    standardize: bool = Field(
        default=True,
        description="Scale features to zero mean and unit variance using train statistics",
    )
    shuffle: bool = Field(default=True, description="Reshuffle training rows every epoch")


class ModelConfig(BaseModel):
    """Layer stack of the feed-forward network."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    hidden_units: list[int] = Field(
        default_factory=lambda: [32, 16],
        description="Width of each hidden Linear layer, in order",
    )
    activation: Literal["relu", "tanh", "sigmoid", "gelu"] = Field(
        default="relu",
        description="Activation placed after every hidden layer",
    )
    dropout: float = Field(
        default=0.0,
        ge=0.0,
        lt=1.0,
        description="Dropout after each hidden activation; 0 disables it",
    )
    use_bias: bool = Field(default=True, description="Add bias terms to Linear layers")

    @field_validator("hidden_units")
    @classmethod
    def _check_hidden_units(cls, value: list[int]) -> list[int]:
        if any(units < 1 for units in value):
            raise ValueError("hidden_units must all be >= 1")
        return value


class TrainConfig(BaseModel):
    """Training loop, optimizer, loss and checkpoint settings."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    epochs: int = Field(default=10, ge=1, description="Full passes over the training split")
    batch_size: int = Field(default=8, ge=1, description="Rows per batch")
    drop_remainder: bool = Field(
        default=False,
        description="Drop the last batch of an epoch when it is smaller than batch_size",
    )
    optimizer: Literal["adam", "adamw", "sgd"] = Field(default="adam")
    learning_rate: float = Field(default=1e-3, gt=0.0)
    weight_decay: float = Field(default=0.0, ge=0.0)
    beta1: float = Field(default=0.9, ge=0.0, lt=1.0, description="Adam first moment decay")
    beta2: float = Field(default=0.999, ge=0.0, lt=1.0, description="Adam second moment decay")
    momentum: float = Field(default=0.0, ge=0.0, description="SGD momentum")
    loss: Literal["mse", "mae", "huber"] = Field(default="mse")
    grad_clip: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Clip the global gradient norm to this value; None disables clipping",
    )
    checkpoint_interval: int = Field(
        default=5,
        ge=1,
        description="Save a checkpoint every N epochs (a final one is always saved)",
    )
    max_to_keep: int = Field(default=5, ge=1, description="Checkpoints retained on disk")
    log_interval: int = Field(default=1, ge=1, description="Log epoch metrics every N epochs")
    device: Literal["auto", "cpu", "cuda"] = Field(default="auto")


class EagerFitConfig(BaseModel):
    """Top-level config container."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    data: Optional[DataConfig] = Field(default=None)
    model: Optional[ModelConfig] = Field(default=None)
    train: Optional[TrainConfig] = Field(default=None)
