# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Checkpoint objects for eagerfit.

A Checkpoint tracks named stateful objects (anything with state_dict /
load_state_dict, in practice the model and the optimizer):

    checkpoint = Checkpoint(model=model, optimizer=optimizer)
    path = checkpoint.save(checkpoint_dir / "ckpt", metadata)   # .../ckpt-1
    checkpoint.restore(latest_checkpoint(checkpoint_dir))

Layout on disk:
    checkpoints/
      ├── checkpoint          (JSON index:: latest + retained checkpoints)
      ├── ckpt-1/
      │     ├── model.pt
      │     ├── optimizer.pt
      │     ├── rng_state.pt
      │     └── metadata.json
      └── ckpt-2/ ...

Every save writes into a temp directory and renames it into place, so a
checkpoint directory is either complete or absent. The index is replaced
atomically as well. Restoring also restores the save counter, so the next
save after a resume gets a fresh number instead of overwriting.
"""

import json
import logging
import os
import random
import re
import shutil
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

import torch

from eagerfit.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)

CHECKPOINT_INDEX = "checkpoint"

_CHECKPOINT_NAME = re.compile(r"^(?P<prefix>.+)-(?P<number>\d+)$")


@dataclass(frozen=True)
class CheckpointMetadata:
    """Training position and provenance stored alongside the weights."""

    global_step: int
    epochs_completed: int
    seed: int
    loss: float
    config_snapshot: dict[str, Any] = field(default_factory=dict)
    preprocessing: dict[str, Any] = field(default_factory=dict)


def _read_index(directory: Path) -> dict[str, Any]:
    index_path = directory / CHECKPOINT_INDEX
    if not index_path.is_file():
        return {"latest": None, "all": []}
    try:
        index = json.loads(index_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        logger.warning("Checkpoint index is corrupt, ignoring it", extra={"path": str(index_path)})
        return {"latest": None, "all": []}
    index.setdefault("latest", None)
    index.setdefault("all", [])
    return index


def _write_index(directory: Path, index: dict[str, Any]) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".index_tmp_")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(index, handle, indent=2)
        os.replace(tmp_name, directory / CHECKPOINT_INDEX)
    except Exception:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def _metadata_from_dict(meta_dict: dict[str, Any]) -> CheckpointMetadata:
    return CheckpointMetadata(
        global_step=meta_dict["global_step"],
        epochs_completed=meta_dict.get("epochs_completed", 0),
        seed=meta_dict.get("seed", 0),
        loss=meta_dict.get("loss", 0.0),
        config_snapshot=meta_dict.get("config_snapshot", {}),
        preprocessing=meta_dict.get("preprocessing", {}),
    )


def _checkpoint_number(path: Path) -> Optional[int]:
    match = _CHECKPOINT_NAME.match(path.name)
    return int(match.group("number")) if match else None


class Checkpoint:
    """
    Saves and restores the state of a fixed set of named objects.

    Args:
        max_to_keep: Number of checkpoints retained in the directory; older
            ones are deleted after each save. None keeps everything.
        **trackables: Objects exposing state_dict() and load_state_dict().
    """

    def __init__(self, max_to_keep: Optional[int] = None, **trackables: Any) -> None:
        if not trackables:
            raise ValueError("Checkpoint needs at least one object to track")
        for name, obj in trackables.items():
            if not (hasattr(obj, "state_dict") and hasattr(obj, "load_state_dict")):
                raise TypeError(
                    f"Tracked object '{name}' must provide state_dict() and load_state_dict()"
                )
        if max_to_keep is not None and max_to_keep < 1:
            raise ValueError(f"max_to_keep must be >= 1, got {max_to_keep}")

        self._trackables = trackables
        self.max_to_keep = max_to_keep
        self.save_counter = 0

    @property
    def tracked_names(self) -> list[str]:
        return sorted(self._trackables)

    def save(self, file_prefix: Path, metadata: CheckpointMetadata) -> Path:
        """
        Write a new numbered checkpoint atomically.

        Args:
            file_prefix: Directory plus name prefix, e.g. checkpoints/ckpt.
            metadata: Training position and provenance.

        Returns:
            Path of the new checkpoint directory, e.g. checkpoints/ckpt-3.
        """
        directory = file_prefix.parent
        directory.mkdir(parents=True, exist_ok=True)

        save_number = self.save_counter + 1
        checkpoint_dir = directory / f"{file_prefix.name}-{save_number}"

        tmp_dir = Path(tempfile.mkdtemp(dir=directory, prefix=".ckpt_tmp_"))
        try:
            for name, obj in self._trackables.items():
                torch.save(obj.state_dict(), tmp_dir / f"{name}.pt")

            rng_state = {
                "python": random.getstate(),
                "torch_cpu": torch.random.get_rng_state(),
            }
            if torch.cuda.is_available():
                rng_state["torch_cuda"] = torch.cuda.get_rng_state_all()
            torch.save(rng_state, tmp_dir / "rng_state.pt")

            meta_dict: dict[str, Any] = {"save_counter": save_number, "objects": self.tracked_names}
            meta_dict.update(asdict(metadata))
            (tmp_dir / "metadata.json").write_text(
                json.dumps(meta_dict, indent=2, default=str),
                encoding="utf-8",
            )

            if checkpoint_dir.exists():
                shutil.rmtree(checkpoint_dir)
            tmp_dir.rename(checkpoint_dir)
        except Exception:
            if tmp_dir.exists():
                shutil.rmtree(tmp_dir)
            raise

        self.save_counter = save_number
        self._record_in_index(directory, checkpoint_dir.name)

        logger.info(
            "Checkpoint saved",
            extra={
                "path": str(checkpoint_dir),
                "save_counter": save_number,
                "step": metadata.global_step,
                "epochs_completed": metadata.epochs_completed,
                "loss": metadata.loss,
            },
        )
        return checkpoint_dir

    def _record_in_index(self, directory: Path, name: str) -> None:
        index = _read_index(directory)
        retained = [entry for entry in index["all"] if entry != name and (directory / entry).is_dir()]
        retained.append(name)

        if self.max_to_keep is not None:
            while len(retained) > self.max_to_keep:
                stale = retained.pop(0)
                shutil.rmtree(directory / stale, ignore_errors=True)
                logger.debug("Old checkpoint removed", extra={"path": str(directory / stale)})

        _write_index(directory, {"latest": name, "all": retained})

    def restore(
        self,
        checkpoint_dir: Path,
        map_location: str | torch.device = "cpu",
    ) -> CheckpointMetadata:
        """
        Load every tracked object's state from a checkpoint directory.

        Also restores the RNG states and the save counter.

        Raises:
            FileNotFoundError: If checkpoint_dir doesn't exist.
            RuntimeError: If metadata or a tracked object's file is missing.
        """
        if not checkpoint_dir.is_dir():
            raise FileNotFoundError(f"Checkpoint directory not found: {checkpoint_dir}")

        meta_path = checkpoint_dir / "metadata.json"
        if not meta_path.is_file():
            raise RuntimeError(f"metadata.json not found in {checkpoint_dir}")

        for name, obj in self._trackables.items():
            state_path = checkpoint_dir / f"{name}.pt"
            if not state_path.is_file():
                raise RuntimeError(f"{name}.pt not found in {checkpoint_dir}")
            obj.load_state_dict(torch.load(state_path, map_location=map_location, weights_only=True))

        rng_path = checkpoint_dir / "rng_state.pt"
        if rng_path.is_file():
            rng_state = torch.load(rng_path, map_location="cpu", weights_only=False)
            random.setstate(rng_state["python"])
            torch.random.set_rng_state(rng_state["torch_cpu"])
            if torch.cuda.is_available() and "torch_cuda" in rng_state:
                torch.cuda.set_rng_state_all(rng_state["torch_cuda"])

        meta_dict = json.loads(meta_path.read_text(encoding="utf-8"))
        self.save_counter = int(
            meta_dict.get("save_counter", _checkpoint_number(checkpoint_dir) or 0)
        )
        metadata = _metadata_from_dict(meta_dict)

        logger.info(
            "Checkpoint restored",
            extra={
                "path": str(checkpoint_dir),
                "save_counter": self.save_counter,
                "step": metadata.global_step,
                "epochs_completed": metadata.epochs_completed,
            },
        )
        return metadata


def read_checkpoint_metadata(checkpoint_dir: Path) -> CheckpointMetadata:
    """Read only the metadata of a checkpoint, without loading any tensors."""
    meta_path = checkpoint_dir / "metadata.json"
    if not meta_path.is_file():
        raise RuntimeError(f"metadata.json not found in {checkpoint_dir}")
    return _metadata_from_dict(json.loads(meta_path.read_text(encoding="utf-8")))


def latest_checkpoint(directory: Path) -> Optional[Path]:
    """
    Find the most recent checkpoint in a directory.

    The index file is authoritative. Without a usable index, the
    highest-numbered `<prefix>-<n>` directory wins.

    Returns:
        Path to the latest checkpoint directory, or None if there is none.
    """
    if not directory.is_dir():
        return None

    latest = _read_index(directory).get("latest")
    if latest and (directory / latest).is_dir():
        return directory / latest

    numbered = [
        (number, path)
        for path in directory.iterdir()
        if path.is_dir() and (number := _checkpoint_number(path)) is not None
    ]
    if not numbered:
        return None
    return max(numbered, key=lambda item: item[0])[1]
