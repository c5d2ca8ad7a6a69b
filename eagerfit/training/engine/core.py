# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Eager training engine for eagerfit.

The loop is a plain double loop, epochs then batches, and every step of a
batch is spelled out:
  1. Forward pass inside a GradientTape
  2. Loss computation
  3. Gradients from the tape
  4. Optional global-norm clipping, optimizer step, gradient reset
  5. Global step increment and loss bookkeeping
After each epoch the metrics are logged, and every `checkpoint_interval`
epochs (and once at the end) model + optimizer state is checkpointed.

No trainer framework, no callbacks: the call sequence is the workflow.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import torch
import torch.nn as nn

from eagerfit.config.schema import EagerFitConfig, ModelConfig, TrainConfig
from eagerfit.data.dataset import TensorSliceDataset
from eagerfit.data.loader import TabularData, load_tabular_data
from eagerfit.logging.logger import get_logger
from eagerfit.model.factory import build_model, count_parameters
from eagerfit.runtime.bootstrap import set_deterministic_seed
from eagerfit.training.checkpoint.core import (
    Checkpoint,
    CheckpointMetadata,
    read_checkpoint_metadata,
)
from eagerfit.training.losses import LossFn, get_loss_fn
from eagerfit.training.metrics.core import MetricsTracker
from eagerfit.training.optimizer.core import apply_gradients, create_optimizer, get_learning_rate
from eagerfit.training.tape import GradientTape

logger: logging.Logger = get_logger(__name__)

CHECKPOINT_PREFIX = "ckpt"


@dataclass(frozen=True)
class TrainingResult:
    """Final result of a training run."""

    epochs_completed: int
    global_step: int
    final_loss: float
    test_loss: Optional[float]
    experiment_dir: str
    checkpoint_path: str


def select_device(preference: str = "auto") -> torch.device:
    """Map the configured device to a torch.device; 'auto' prefers CUDA."""
    if preference == "cuda":
        if not torch.cuda.is_available():
            raise RuntimeError("device 'cuda' requested but CUDA is not available")
        return torch.device("cuda")
    if preference == "cpu":
        return torch.device("cpu")
    return torch.device("cuda" if torch.cuda.is_available() else "cpu")


def make_train_dataset(
    data: TabularData,
    train_config: TrainConfig,
    seed: int,
    shuffle: bool = True,
) -> TensorSliceDataset:
    """Slice the train split, shuffle it per epoch and batch it."""
    dataset = TensorSliceDataset.from_tensor_slices(data.train_features, data.train_targets)
    if shuffle:
        dataset = dataset.shuffle(seed)
    return dataset.batch(train_config.batch_size, drop_remainder=train_config.drop_remainder)


def make_eval_dataset(data: TabularData, batch_size: int) -> TensorSliceDataset:
    """Slice the test split in fixed order, keeping the last partial batch."""
    return TensorSliceDataset.from_tensor_slices(data.test_features, data.test_targets).batch(
        batch_size
    )


def train_step(
    model: nn.Module,
    features: torch.Tensor,
    targets: torch.Tensor,
    loss_fn: LossFn,
    optimizer: torch.optim.Optimizer,
    grad_clip: Optional[float] = None,
) -> tuple[float, float]:
    """
    Run one optimization step on a batch.

    Returns:
        (batch loss, gradient norm before clipping)
    """
    variables = [p for p in model.parameters() if p.requires_grad]

    with GradientTape() as tape:
        predictions = model(features)
        loss = loss_fn(targets, predictions)

    gradients = tape.gradient(loss, variables)
    grad_norm = apply_gradients(optimizer, zip(gradients, variables), grad_clip=grad_clip)
    return loss.item(), grad_norm


def evaluate(
    model: nn.Module,
    dataset: TensorSliceDataset,
    loss_fn: LossFn,
    device: Optional[torch.device] = None,
) -> Optional[float]:
    """
    Mean per-sample loss over a dataset, without tracking gradients.

    Returns:
        The loss, or None when the dataset is empty.
    """
    was_training = model.training
    model.eval()
    total = 0.0
    count = 0
    try:
        with torch.no_grad():
            for features, targets in dataset:
                if device is not None:
                    features, targets = features.to(device), targets.to(device)
                batch_loss = loss_fn(targets, model(features)).item()
                total += batch_loss * features.shape[0]
                count += features.shape[0]
    finally:
        model.train(was_training)

    if count == 0:
        return None
    return total / count


def predict(
    model: nn.Module,
    features: torch.Tensor,
    device: Optional[torch.device] = None,
) -> torch.Tensor:
    """Run the model in eval mode and return predictions on the CPU."""
    was_training = model.training
    model.eval()
    try:
        with torch.no_grad():
            if device is not None:
                features = features.to(device)
            return model(features).cpu()
    finally:
        model.train(was_training)


def restore_model(
    checkpoint_dir: Path,
    model_config: Optional[ModelConfig] = None,
    device: Optional[torch.device] = None,
) -> tuple[nn.Module, CheckpointMetadata]:
    """
    Rebuild a trained model from a checkpoint.

    The architecture comes from the config snapshot stored in the checkpoint
    when there is one, otherwise from `model_config`. The input width comes
    from the stored feature columns.

    Raises:
        RuntimeError: If the checkpoint lacks what is needed to rebuild the model.
    """
    metadata = read_checkpoint_metadata(checkpoint_dir)

    feature_columns = metadata.preprocessing.get("feature_columns")
    if not feature_columns:
        raise RuntimeError(f"Checkpoint {checkpoint_dir} has no stored feature columns")

    snapshot_model = metadata.config_snapshot.get("model")
    if snapshot_model is not None:
        model_config = ModelConfig.model_validate(snapshot_model)
    if model_config is None:
        raise RuntimeError("Model config is required to rebuild the model")

    model = build_model(model_config, len(feature_columns))
    Checkpoint(model=model).restore(checkpoint_dir, map_location=device or "cpu")
    if device is not None:
        model = model.to(device)
    model.eval()
    return model, metadata


def run_training(
    config: EagerFitConfig,
    experiment_dir: Path,
    project_root: Optional[Path] = None,
    resume_from: Optional[Path] = None,
) -> TrainingResult:
    """
    Execute the full training loop.

    Args:
        config: Validated config with data, model and train sections.
        experiment_dir: Experiment output directory.
        project_root: Root for relative data paths.
        resume_from: Optional checkpoint directory to continue from.

    Returns:
        TrainingResult with final metrics and paths.

    Raises:
        RuntimeError: If a required config section is missing, or the train
            split yields no batches.
    """
    if config.data is None or config.model is None or config.train is None:
        raise RuntimeError("Data, model and train config sections are required for training")

    train_cfg = config.train
    seed = config.global_config.seed
    if resume_from is not None:
        # A resumed run keeps the split and shuffle order it started with.
        checkpoint_seed = read_checkpoint_metadata(resume_from).seed
        if checkpoint_seed != seed:
            logger.warning(
                "Ignoring configured seed on resume, using the checkpoint's seed",
                extra={"configured_seed": seed, "checkpoint_seed": checkpoint_seed},
            )
        seed = checkpoint_seed
    set_deterministic_seed(seed)
    device = select_device(train_cfg.device)

    data = load_tabular_data(config.data, seed, project_root)

    model = build_model(config.model, data.num_features, data.num_targets).to(device)
    optimizer = create_optimizer(model, train_cfg)
    loss_fn = get_loss_fn(train_cfg.loss)

    logger.info(
        "Training setup",
        extra={
            "device": str(device),
            "parameters": count_parameters(model),
            "epochs": train_cfg.epochs,
            "batch_size": train_cfg.batch_size,
            "optimizer": train_cfg.optimizer,
            "loss": train_cfg.loss,
        },
    )

    checkpoint = Checkpoint(max_to_keep=train_cfg.max_to_keep, model=model, optimizer=optimizer)
    checkpoint_prefix = experiment_dir / "checkpoints" / CHECKPOINT_PREFIX

    global_step = 0
    start_epoch = 0
    latest_loss = 0.0
    checkpoint_path = ""

    if resume_from is not None:
        metadata = checkpoint.restore(resume_from, map_location=device)
        global_step = metadata.global_step
        start_epoch = metadata.epochs_completed
        latest_loss = metadata.loss
        checkpoint_path = str(resume_from)
        logger.info(
            "Resumed from checkpoint",
            extra={"step": global_step, "epochs_completed": start_epoch},
        )

    train_dataset = make_train_dataset(data, train_cfg, seed, shuffle=config.data.shuffle)
    if len(train_dataset) == 0:
        raise RuntimeError(
            f"Train split of {train_dataset.num_rows} rows yields no batches with "
            f"batch_size={train_cfg.batch_size} and drop_remainder=True"
        )

    config_snapshot = config.model_dump(by_alias=True)
    preprocessing = data.preprocessing_state()

    def _save(epochs_completed: int) -> str:
        metadata = CheckpointMetadata(
            global_step=global_step,
            epochs_completed=epochs_completed,
            seed=seed,
            loss=latest_loss,
            config_snapshot=config_snapshot,
            preprocessing=preprocessing,
        )
        return str(checkpoint.save(checkpoint_prefix, metadata))

    tracker = MetricsTracker(log_interval=train_cfg.log_interval)
    model.train()

    if start_epoch >= train_cfg.epochs:
        logger.info(
            "Nothing to train, all epochs already completed",
            extra={"epochs_completed": start_epoch, "epochs": train_cfg.epochs},
        )

    for epoch in range(start_epoch, train_cfg.epochs):
        tracker.begin_epoch()

        for features, targets in train_dataset.iterate(epoch):
            features = features.to(device)
            targets = targets.to(device)

            loss, grad_norm = train_step(
                model, features, targets, loss_fn, optimizer, grad_clip=train_cfg.grad_clip
            )
            global_step += 1
            tracker.record_batch(loss, features.shape[0], grad_norm)

        epoch_metrics = tracker.end_epoch(epoch, global_step, get_learning_rate(optimizer))
        latest_loss = epoch_metrics.mean_loss

        epochs_completed = epoch + 1
        if epochs_completed == train_cfg.epochs or epochs_completed % train_cfg.checkpoint_interval == 0:
            checkpoint_path = _save(epochs_completed)

    test_loss = evaluate(model, make_eval_dataset(data, train_cfg.batch_size), loss_fn, device)

    if tracker.history:
        tracker.write_history(experiment_dir / "metrics" / "history.csv")

    epochs_completed = max(start_epoch, train_cfg.epochs)
    logger.info(
        "Training complete",
        extra={
            "epochs_completed": epochs_completed,
            "global_step": global_step,
            "final_loss": latest_loss,
            "test_loss": test_loss,
        },
    )

    return TrainingResult(
        epochs_completed=epochs_completed,
        global_step=global_step,
        final_loss=latest_loss,
        test_loss=test_loss,
        experiment_dir=str(experiment_dir),
        checkpoint_path=checkpoint_path,
    )
