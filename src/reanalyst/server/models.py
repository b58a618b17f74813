"""Server models - handles, log sinks and registry messages."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

import structlog

logger = structlog.get_logger()


class ServerLog:
    """Output sink for one reanalyze-server.

    Keeps the most recent lines in memory for ``rea`` to show on request and
    mirrors every line to structlog, bound to the monorepo root.
    """

    def __init__(self, root: Path, max_lines: int = 2000) -> None:
        self.root = root
        self.name = f"reanalyze-server ({root.name})"
        self._lines: deque[str] = deque(maxlen=max_lines)
        self._log = logger.bind(server_root=str(root))

    def append(self, line: str) -> None:
        self._lines.append(line)
        self._log.debug("server_output", line=line)

    def info(self, message: str) -> None:
        self._lines.append(f"[info] {message}")
        self._log.info("server_event", message=message)

    def warning(self, message: str) -> None:
        self._lines.append(f"[warn] {message}")
        self._log.warning("server_event", message=message)

    def error(self, message: str) -> None:
        self._lines.append(f"[error] {message}")
        self._log.error("server_event", message=message)

    def lines(self) -> list[str]:
        return list(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._lines))

    def __len__(self) -> int:
        return len(self._lines)


@dataclass
class ServerHandle:
    """One reanalyze-server known to the registry, keyed by monorepo root.

    ``process`` is only set when this registry spawned the server
    (``owned_by_us``). Adopted servers have neither a process nor a log.
    """

    root: Path
    socket_path: Path
    owned_by_us: bool
    process: asyncio.subprocess.Process | None = None
    log: ServerLog | None = None
    tasks: list[asyncio.Task[None]] = field(default_factory=list, repr=False)

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process is not None else None

    @property
    def alive(self) -> bool:
        """True while an owned process has not exited. Adopted servers count as alive."""
        if self.process is None:
            return not self.owned_by_us
        return self.process.returncode is None

    @property
    def socket_present(self) -> bool:
        return self.socket_path.exists()


@dataclass(frozen=True)
class ServerExited:
    """Posted by a handle's exit watcher; consumed by the registry reaper."""

    handle: ServerHandle
    returncode: int | None
