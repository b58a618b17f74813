"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages, and
provides fake ReScript workspaces whose rescript-tools.exe is a small Python
script standing in for reanalyze and reanalyze-server.
"""

import json
import stat
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local reanalyst package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of reanalyst modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("reanalyst"):
        del sys.modules[module_name]

from reanalyst.config.models import ServerConfig  # noqa: E402
from reanalyst.workspace.binaries import legacy_platform_dir, platform_target  # noqa: E402

# Behavior is driven by marker files in the working directory (the monorepo root):
#   .fake-server-creates-socket   reanalyze-server writes the socket file
#   .fake-server-spawns           one pid per reanalyze-server start
#   .fake-reanalyze-output        stdout of "reanalyze -json" (default "[]")
#   .fake-reanalyze-stderr        stderr of "reanalyze -json"
#   .fake-reanalyze-stderr-parts  JSON list of stderr pieces, flushed 0.2 s apart
FAKE_TOOLS_SCRIPT = """\
#!{python}
import json
import os
import pathlib
import sys
import time

cwd = pathlib.Path.cwd()
args = sys.argv[1:]

if args == ["reanalyze-server"]:
    with open(cwd / ".fake-server-spawns", "a") as f:
        f.write(f"{{os.getpid()}}\\n")
    if (cwd / ".fake-server-creates-socket").exists():
        (cwd / ".rescript-reanalyze.sock").write_text("")
    print("reanalyze-server listening", flush=True)
    while True:
        time.sleep(0.1)
elif args[:2] == ["reanalyze", "-json"]:
    err = cwd / ".fake-reanalyze-stderr"
    if err.exists():
        sys.stderr.write(err.read_text())
        sys.stderr.flush()
    parts = cwd / ".fake-reanalyze-stderr-parts"
    if parts.exists():
        for part in json.loads(parts.read_text()):
            sys.stderr.write(part)
            sys.stderr.flush()
            time.sleep(0.2)
    out = cwd / ".fake-reanalyze-output"
    sys.stdout.write(out.read_text() if out.exists() else "[]")
else:
    sys.exit(2)
"""


def write_executable(path: Path, content: str) -> Path:
    """Write content to path and mark it executable."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def write_fake_tools(path: Path) -> Path:
    return write_executable(path, FAKE_TOOLS_SCRIPT.format(python=sys.executable))


@dataclass
class FakeWorkspace:
    """A monorepo with one ReScript project under packages/app."""

    root: Path
    project: Path
    binary: Path
    source: Path

    def set_output(self, items: list[dict] | str) -> None:
        text = items if isinstance(items, str) else json.dumps(items)
        (self.root / ".fake-reanalyze-output").write_text(text)

    def set_stderr(self, text: str) -> None:
        (self.root / ".fake-reanalyze-stderr").write_text(text)

    def set_stderr_parts(self, parts: list[str]) -> None:
        (self.root / ".fake-reanalyze-stderr-parts").write_text(json.dumps(parts))

    def server_creates_socket(self) -> None:
        (self.root / ".fake-server-creates-socket").write_text("")

    @property
    def socket(self) -> Path:
        return self.root / ".rescript-reanalyze.sock"

    def spawn_count(self) -> int:
        spawns = self.root / ".fake-server-spawns"
        if not spawns.exists():
            return 0
        return len(spawns.read_text().split())


def install_rescript(root: Path, version: str) -> Path:
    """Install a fake node_modules/rescript of the given version; return the tools binary."""
    rescript_dir = root / "node_modules" / "rescript"
    rescript_dir.mkdir(parents=True, exist_ok=True)
    (rescript_dir / "package.json").write_text(
        json.dumps({"name": "rescript", "version": version, "bin": {"rescript": "cli/rescript.js"}})
    )
    if version.startswith(("9.", "10.", "11.")):
        return write_fake_tools(rescript_dir / legacy_platform_dir() / "rescript-tools.exe")
    package_dir = root / "node_modules" / "@rescript" / platform_target()
    return write_fake_tools(package_dir / "bin" / "rescript-tools.exe")


@pytest.fixture
def make_workspace(tmp_path: Path) -> Callable[..., FakeWorkspace]:
    """Factory for fake workspaces. 12.1.0 and later support reanalyze-server."""

    def _make(version: str = "12.1.0", name: str = "repo") -> FakeWorkspace:
        root = tmp_path / name
        project = root / "packages" / "app"
        (project / "src").mkdir(parents=True)
        (root / "rescript.json").write_text(json.dumps({"name": name}))
        (project / "rescript.json").write_text(json.dumps({"name": "app"}))
        source = project / "src" / "App.res"
        source.write_text("let fooVar = 1\nlet main = () => ()\n")
        binary = install_rescript(root, version)
        return FakeWorkspace(root=root, project=project, binary=binary, source=source)

    return _make


@pytest.fixture
def workspace(make_workspace: Callable[..., FakeWorkspace]) -> FakeWorkspace:
    return make_workspace()


@pytest.fixture
def fast_server_config() -> ServerConfig:
    """Short timeouts so socket waits do not slow the suite down."""
    return ServerConfig(
        poll_interval_sec=0.05,
        startup_timeout_sec=1.0,
        stop_timeout_sec=2.0,
    )
