"""ReScript binary discovery.

Resolution order for a binary under a project root:

1. An explicit platform directory (configuration) wins outright.
2. ``lib/bs/compiler-info.json`` names the bsc used for the last build; other
   binaries sit next to it.
3. Walk up to the nearest ``node_modules/rescript`` and branch on its version:
   - before 12.0.0-alpha.13 the binaries live in ``<platform-dir>/`` inside
     the package
   - later releases ship them in a companion ``@rescript/<os>-<arch>`` package,
     described by a ``bin-paths.json`` manifest (falling back to ``bin/``)

The monorepo root is the directory owning the ``node_modules`` that holds the
binary, which can sit above the project root of the triggering file.
"""

from __future__ import annotations

import json
import os
import platform
import re
import sys
from pathlib import Path
from typing import Any, Literal

import structlog
from packaging.version import InvalidVersion, Version

from reanalyst.config.constants import (
    COMPILER_INFO_PATH,
    NODE_MODULES,
    PLATFORM_BIN_MANIFEST,
    PLATFORM_PACKAGE_SCOPE,
    PLATFORM_PACKAGES_MIN_VERSION,
    REANALYZE_SERVER_MIN_VERSION,
    RESCRIPT_PACKAGE,
)
from reanalyst.workspace.models import Resolution
from reanalyst.workspace.roots import normalize_path

logger = structlog.get_logger()

BinaryName = Literal[
    "bsc.exe",
    "rescript-editor-analysis.exe",
    "rescript-tools.exe",
    "rescript",
    "rewatch.exe",
    "rescript.exe",
]

_NODE_MODULES_SEGMENT = re.compile(r"[\\/]" + NODE_MODULES + r"(?:[\\/]|$)")

_ARCH_ALIASES: dict[str, str] = {
    "x86_64": "x64",
    "amd64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "ia32",
    "i686": "ia32",
}


def node_platform() -> str:
    """Host OS in npm's naming (linux, darwin, win32)."""
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def node_arch() -> str:
    """Host CPU architecture in npm's naming (x64, arm64, ...)."""
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


def legacy_platform_dir() -> str:
    """Binary directory inside pre-12 rescript packages (linux, darwinarm64, win32)."""
    arch = node_arch()
    return node_platform() + arch if arch == "arm64" else node_platform()


def platform_target() -> str:
    """Companion package name suffix, e.g. ``darwin-arm64``."""
    return f"{node_platform()}-{node_arch()}"


def binary_kind_key(binary: str) -> str:
    """Manifest key for a binary name: ``rescript-tools.exe`` -> ``rescript_tools_exe``."""
    return binary.replace("-", "_").replace(".", "_")


def find_upward(directory: Path | None, partial_path: str | Path) -> Path | None:
    """Return the first ``<ancestor>/partial_path`` that exists, starting at directory."""
    if directory is None:
        return None
    current = normalize_path(directory)
    while True:
        candidate = current / partial_path
        if candidate.exists():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def _read_json(path: Path) -> Any:
    with path.open(encoding="utf-8") as f:
        return json.load(f)


def _from_compiler_info(project_root: Path, binary: str) -> Path | None:
    """Derive a binary from the bsc path recorded by the last build."""
    info_path = project_root.joinpath(*COMPILER_INFO_PATH)
    try:
        info = _read_json(info_path)
    except (OSError, ValueError):
        return None
    if not isinstance(info, dict) or not info.get("bsc_path"):
        return None

    bsc_path = Path(str(info["bsc_path"]))
    if binary == "bsc.exe":
        return normalize_path(bsc_path)
    return normalize_path(bsc_path.parent / binary)


def parse_version(raw: Any) -> Version | None:
    """Parse an npm semver string (``12.0.0-alpha.13``) into a comparable Version."""
    if not isinstance(raw, str):
        return None
    try:
        return Version(raw)
    except InvalidVersion:
        return None


def _read_package(rescript_dir: Path) -> dict[str, Any] | None:
    try:
        data = _read_json(rescript_dir / "package.json")
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def rescript_version(monorepo_root: Path) -> Version | None:
    """Version of ``node_modules/rescript`` installed directly under monorepo_root."""
    package = _read_package(monorepo_root / NODE_MODULES / RESCRIPT_PACKAGE)
    if package is None:
        return None
    return parse_version(package.get("version"))


def supports_reanalyze_server(
    monorepo_root: Path | None,
    min_version: str = REANALYZE_SERVER_MIN_VERSION,
) -> bool:
    """Whether the toolchain under monorepo_root ships the reanalyze-server subcommand."""
    if monorepo_root is None:
        return False
    version = rescript_version(monorepo_root)
    return version is not None and version >= Version(min_version)


def _from_platform_package(rescript_dir: Path, binary: str) -> Path | None:
    """Look a binary up in the ``@rescript/<os>-<arch>`` companion package."""
    package_dir = rescript_dir.resolve().parent / PLATFORM_PACKAGE_SCOPE / platform_target()
    manifest_path = package_dir / PLATFORM_BIN_MANIFEST

    if manifest_path.exists():
        try:
            manifest = _read_json(manifest_path)
        except (OSError, ValueError) as e:
            logger.warning("platform_manifest_unreadable", path=str(manifest_path), error=str(e))
            return None
        relative = manifest.get(binary_kind_key(binary)) if isinstance(manifest, dict) else None
        if not isinstance(relative, str):
            return None
        return package_dir / relative

    return package_dir / "bin" / binary


def find_binary(
    project_root: Path | None,
    binary: BinaryName | str,
    *,
    platform_path: str | Path | None = None,
) -> Resolution[Path]:
    """Locate a ReScript binary for project_root.

    Returns a found Resolution only when the candidate exists on disk.
    """
    if platform_path is not None:
        return Resolution.found(normalize_path(Path(platform_path) / binary))

    if project_root is not None:
        from_info = _from_compiler_info(project_root, binary)
        if from_info is not None and from_info.exists():
            logger.debug("binary_from_compiler_info", binary=binary, path=str(from_info))
            return Resolution.found(from_info)

    rescript_dir = find_upward(project_root, Path(NODE_MODULES) / RESCRIPT_PACKAGE)
    if rescript_dir is None:
        return Resolution.not_found(f"no {NODE_MODULES}/{RESCRIPT_PACKAGE} above {project_root}")

    package = _read_package(rescript_dir)
    if package is None:
        return Resolution.error(f"unreadable package.json in {rescript_dir}")
    version = parse_version(package.get("version"))

    candidate: Path | None
    if binary == "rescript":
        wrapper = (package.get("bin") or {}).get("rescript")
        candidate = rescript_dir / wrapper if isinstance(wrapper, str) else None
    elif version is None:
        return Resolution.error(f"invalid version {package.get('version')!r} in {rescript_dir}")
    elif version >= Version(PLATFORM_PACKAGES_MIN_VERSION):
        candidate = _from_platform_package(rescript_dir, binary)
    else:
        candidate = rescript_dir / legacy_platform_dir() / binary

    if candidate is not None and candidate.exists():
        return Resolution.found(normalize_path(candidate))

    return Resolution.not_found(f"{binary} not installed for rescript {version} in {rescript_dir}")


def monorepo_root_from_binary(binary_path: str | os.PathLike[str]) -> Path | None:
    """Directory owning the node_modules that contains binary_path.

    Splits on the first ``node_modules`` segment with either separator style, so
    ``C:\\work\\root\\node_modules\\...`` and ``/work/root/node_modules/...``
    both resolve. Returns None when the path has no node_modules segment.
    """
    text = os.fspath(binary_path)
    match = _NODE_MODULES_SEGMENT.search(text)
    if match is None:
        return None
    prefix = text[: match.start()]
    if not prefix:
        # node_modules directly under the filesystem root
        return Path(text[0])
    return Path(prefix)
