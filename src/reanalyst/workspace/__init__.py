"""Workspace discovery - project roots, binaries and monorepo roots."""

from reanalyst.workspace.binaries import (
    find_binary,
    monorepo_root_from_binary,
    rescript_version,
    supports_reanalyze_server,
)
from reanalyst.workspace.models import Resolution
from reanalyst.workspace.roots import find_project_root, normalize_path

__all__ = [
    "Resolution",
    "find_binary",
    "find_project_root",
    "monorepo_root_from_binary",
    "normalize_path",
    "rescript_version",
    "supports_reanalyze_server",
]
