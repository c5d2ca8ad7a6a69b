# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tabular data for the training workflow.

Turns a CSV table into the two example tensors of an eager training run: a
float32 feature matrix of shape (n, features) and a target vector shaped
(n, 1) so it lines up with a single-unit output layer.

Steps:
  1. Read the table (bundled mtcars or a user CSV) with pandas
  2. Select the target and the feature columns
  3. Split rows into train/test with a seeded permutation
  4. Optionally standardize features with statistics from the train split only
"""

import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Optional

import pandas as pd
import torch

from eagerfit.config.schema import DataConfig
from eagerfit.logging.logger import get_logger
from eagerfit.utils.paths import resolve_within_project

logger: logging.Logger = get_logger(__name__)

BUILTIN_SOURCES = {"mtcars": "mtcars.csv"}


class DataError(ValueError):
    """Raised when a table cannot be turned into training tensors."""


@dataclass(frozen=True)
class FeatureScaler:
    """Per-column standardization fitted on the training features."""

    mean: torch.Tensor
    std: torch.Tensor

    @classmethod
    def fit(cls, features: torch.Tensor) -> "FeatureScaler":
        """
        Compute column means and standard deviations.

        Columns with zero variance get std 1 so transform leaves them centred
        instead of dividing by zero.
        """
        mean = features.mean(dim=0)
        if features.shape[0] > 1:
            std = features.std(dim=0, correction=0)
        else:
            std = torch.zeros_like(mean)
        std = torch.where(std > 0, std, torch.ones_like(std))
        return cls(mean=mean, std=std)

    def transform(self, features: torch.Tensor) -> torch.Tensor:
        return (features - self.mean) / self.std

    def to_dict(self) -> dict[str, list[float]]:
        return {"mean": self.mean.tolist(), "std": self.std.tolist()}

    @classmethod
    def from_dict(cls, data: dict[str, list[float]]) -> "FeatureScaler":
        return cls(
            mean=torch.tensor(data["mean"], dtype=torch.float32),
            std=torch.tensor(data["std"], dtype=torch.float32),
        )


@dataclass(frozen=True)
class TabularData:
    """Train/test tensors plus what is needed to preprocess new rows the same way."""

    feature_columns: list[str]
    target_column: str
    train_features: torch.Tensor
    train_targets: torch.Tensor
    test_features: torch.Tensor
    test_targets: torch.Tensor
    scaler: Optional[FeatureScaler] = None

    @property
    def num_features(self) -> int:
        return len(self.feature_columns)

    @property
    def num_targets(self) -> int:
        return self.train_targets.shape[1]

    def preprocessing_state(self) -> dict[str, object]:
        """Everything predict-time code needs to rebuild the inputs, as plain JSON types."""
        return {
            "feature_columns": list(self.feature_columns),
            "target_column": self.target_column,
            "scaler": self.scaler.to_dict() if self.scaler is not None else None,
        }


def read_table(source: str, project_root: Optional[Path] = None) -> pd.DataFrame:
    """
    Read a table from the bundled resources or from a CSV file.

    Args:
        source: A builtin name ("mtcars") or a CSV path.
        project_root: Directory relative CSV paths are resolved against. When
            None, the path is used as given.

    Raises:
        DataError: If the file doesn't exist or can't be parsed.
    """
    if source in BUILTIN_SOURCES:
        resource = resources.files("eagerfit.data").joinpath("resources", BUILTIN_SOURCES[source])
        with resource.open("r", encoding="utf-8") as handle:
            return pd.read_csv(handle)

    path = resolve_within_project(source, project_root) if project_root is not None else Path(source)
    if not path.is_file():
        raise DataError(f"Data file not found: {path}")

    try:
        return pd.read_csv(path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as err:
        raise DataError(f"Cannot parse CSV file {path}: {err}") from err


def select_feature_columns(
    frame: pd.DataFrame,
    target_column: str,
    feature_columns: Optional[list[str]] = None,
) -> list[str]:
    """
    Decide which columns feed the model.

    Explicit feature columns must exist and be numeric. Without them every
    numeric column except the target is used, in table order; non-numeric
    columns (like row labels) are skipped.
    """
    if target_column not in frame.columns:
        raise DataError(f"Target column '{target_column}' not found in table")

    if feature_columns is not None:
        missing = [col for col in feature_columns if col not in frame.columns]
        if missing:
            raise DataError(f"Feature columns not found in table: {missing}")
        if target_column in feature_columns:
            raise DataError(f"Target column '{target_column}' cannot also be a feature")
        non_numeric = [
            col for col in feature_columns if not pd.api.types.is_numeric_dtype(frame[col])
        ]
        if non_numeric:
            raise DataError(f"Feature columns must be numeric: {non_numeric}")
        return list(feature_columns)

    selected = [
        str(col)
        for col in frame.columns
        if col != target_column and pd.api.types.is_numeric_dtype(frame[col])
    ]
    if not selected:
        raise DataError("Table has no numeric feature columns")
    return selected


def frame_to_features(frame: pd.DataFrame, feature_columns: list[str]) -> torch.Tensor:
    """Extract the feature matrix as float32, rejecting missing values."""
    missing = [col for col in feature_columns if col not in frame.columns]
    if missing:
        raise DataError(f"Feature columns not found in table: {missing}")

    values = frame[feature_columns]
    if values.isna().any().any():
        raise DataError("Feature columns contain missing values")
    return torch.tensor(values.to_numpy(dtype="float32"), dtype=torch.float32)


def apply_preprocessing(frame: pd.DataFrame, preprocessing: dict[str, Any]) -> torch.Tensor:
    """
    Rebuild model inputs for new rows from a stored preprocessing state.

    Args:
        frame: Table holding at least the stored feature columns.
        preprocessing: Output of TabularData.preprocessing_state(), usually
            read back from checkpoint metadata.

    Raises:
        DataError: If the state has no feature columns or the table lacks them.
    """
    feature_columns = preprocessing.get("feature_columns")
    if not feature_columns:
        raise DataError("Preprocessing state has no feature columns")

    features = frame_to_features(frame, list(feature_columns))
    scaler_state = preprocessing.get("scaler")
    if scaler_state is not None:
        features = FeatureScaler.from_dict(scaler_state).transform(features)
    return features


def split_train_test(
    features: torch.Tensor,
    targets: torch.Tensor,
    test_fraction: float,
    seed: int,
) -> tuple[torch.Tensor, torch.Tensor, torch.Tensor, torch.Tensor]:
    """
    Split rows into train and test sets with a seeded permutation.

    A positive test_fraction always holds out at least one row, and the train
    split always keeps at least one.

    Returns:
        (train_features, train_targets, test_features, test_targets)
    """
    num_rows = features.shape[0]
    if num_rows != targets.shape[0]:
        raise DataError(
            f"Features and targets disagree on row count: {num_rows} vs {targets.shape[0]}"
        )

    num_test = 0
    if test_fraction > 0:
        num_test = max(1, int(round(num_rows * test_fraction)))
    if num_rows - num_test < 1:
        raise DataError(
            f"Not enough rows ({num_rows}) for a non-empty train split "
            f"with test_fraction={test_fraction}"
        )

    generator = torch.Generator()
    generator.manual_seed(seed)
    order = torch.randperm(num_rows, generator=generator)

    test_idx = order[:num_test]
    train_idx = order[num_test:]
    return features[train_idx], targets[train_idx], features[test_idx], targets[test_idx]


def load_tabular_data(
    data_config: DataConfig,
    seed: int,
    project_root: Optional[Path] = None,
) -> TabularData:
    """
    Build train/test tensors from the configured table.

    Args:
        data_config: Validated data section.
        seed: Seed for the train/test permutation.
        project_root: Root for relative CSV paths.

    Returns:
        TabularData with float32 tensors; targets shaped (n, 1).

    Raises:
        DataError: On missing columns, non-numeric features, missing values,
            or too few rows.
    """
    frame = read_table(data_config.source, project_root)
    feature_columns = select_feature_columns(
        frame, data_config.target_column, data_config.feature_columns
    )

    target_series = frame[data_config.target_column]
    if not pd.api.types.is_numeric_dtype(target_series):
        raise DataError(f"Target column '{data_config.target_column}' must be numeric")
    if target_series.isna().any():
        raise DataError(f"Target column '{data_config.target_column}' contains missing values")

    features = frame_to_features(frame, feature_columns)
    targets = torch.tensor(
        target_series.to_numpy(dtype="float32"), dtype=torch.float32
    ).unsqueeze(1)

    train_x, train_y, test_x, test_y = split_train_test(
        features, targets, data_config.test_fraction, seed
    )

    scaler = None
    if data_config.standardize:
        scaler = FeatureScaler.fit(train_x)
        train_x = scaler.transform(train_x)
        if test_x.shape[0] > 0:
            test_x = scaler.transform(test_x)

    logger.info(
        "Tabular data loaded",
        extra={
            "source": data_config.source,
            "target": data_config.target_column,
            "features": len(feature_columns),
            "train_rows": int(train_x.shape[0]),
            "test_rows": int(test_x.shape[0]),
            "standardized": scaler is not None,
        },
    )

    return TabularData(
        feature_columns=feature_columns,
        target_column=data_config.target_column,
        train_features=train_x,
        train_targets=train_y,
        test_features=test_x,
        test_targets=test_y,
        scaler=scaler,
    )
