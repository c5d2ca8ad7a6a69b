# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Path helpers.

Configured paths are relative to the project root, which is the directory
holding the config file. They must not escape it.
"""

from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Create a directory (and parents) if it doesn't exist. Returns the path for chaining."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolve_within_project(relative: str | Path, project_root: Path) -> Path:
    """
    Resolve a configured path against the project root.

    Absolute paths and `..` tricks are accepted only if they still land
    inside the project root.

    Args:
        relative: Path as written in the config.
        project_root: The project root directory.

    Returns:
        The resolved absolute path.

    Raises:
        ValueError: If the path resolves outside the project root.
    """
    resolved_root = project_root.resolve()
    resolved_target = (resolved_root / relative).resolve()

    if resolved_target != resolved_root and resolved_root not in resolved_target.parents:
        raise ValueError(
            f"Path '{relative}' resolves to '{resolved_target}' which is outside "
            f"the project root '{resolved_root}'. This is not allowed."
        )

    return resolved_target
