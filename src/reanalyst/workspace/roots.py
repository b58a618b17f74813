"""Project root discovery."""

from __future__ import annotations

import os
from pathlib import Path

from reanalyst.config.constants import PROJECT_MARKERS


def normalize_path(path: str | os.PathLike[str]) -> Path:
    """Absolute, lexically normalized path. Symlinks are left alone."""
    return Path(os.path.normpath(os.path.abspath(path)))


def is_project_root(directory: Path) -> bool:
    return any((directory / marker).exists() for marker in PROJECT_MARKERS)


def find_project_root(file_path: str | os.PathLike[str]) -> Path | None:
    """Find the nearest ancestor of file_path holding rescript.json or bsconfig.json.

    Starts at the file's containing directory and walks up. Returns None once
    the filesystem root has been checked. Nothing is cached: the tree may
    change between triggers.
    """
    current = normalize_path(file_path).parent

    while True:
        if is_project_root(current):
            return current
        parent = current.parent
        if parent == current:
            return None
        current = parent
