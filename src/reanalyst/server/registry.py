"""Registry of long-lived reanalyze-server processes, one per monorepo root.

Design:
- One registry instance per service, created at service start and closed at
  service stop. Nothing lives at module level.
- ``ensure_started`` holds a per-root asyncio.Lock across lookup, spawn and
  socket wait, so concurrent callers for one root never both spawn.
- Process exits are not applied by the watcher that observes them. Each
  watcher posts a ServerExited message to a queue drained by a single reaper
  task, which removes the entry only if it still refers to the exited handle.
- The control socket file is the only liveness signal shared with servers
  started elsewhere. Adopted servers are never stopped and their socket file is
  never touched.
"""

from __future__ import annotations

import asyncio
import contextlib
import contextvars
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from reanalyst.config.constants import SERVER_SUBCOMMAND, STREAM_LINE_LIMIT
from reanalyst.config.models import ServerConfig
from reanalyst.core.errors import ServerError
from reanalyst.server.models import ServerExited, ServerHandle, ServerLog
from reanalyst.workspace.roots import normalize_path

logger = structlog.get_logger()


def remove_socket_file(socket_path: Path) -> None:
    """Delete a control socket file. Missing files and OS errors are ignored."""
    with contextlib.suppress(OSError):
        socket_path.unlink(missing_ok=True)


async def _pump_stream(stream: asyncio.StreamReader | None, log: ServerLog, label: str) -> None:
    """Copy a server output stream into its log, one line at a time, until EOF."""
    if stream is None:
        return
    while True:
        try:
            raw = await stream.readline()
        except ValueError:
            log.append(f"[{label}] <line longer than {STREAM_LINE_LIMIT} bytes dropped>")
            continue
        if not raw:
            return
        line = raw.decode(errors="replace").rstrip()
        if line.strip():
            log.append(f"[{label}] {line}")


@dataclass
class ServerRegistry:
    """Owns every reanalyze-server started or adopted by this process."""

    config: ServerConfig = field(default_factory=ServerConfig)

    _servers: dict[Path, ServerHandle] = field(default_factory=dict, init=False)
    _locks: dict[Path, asyncio.Lock] = field(default_factory=dict, init=False)
    _lock_users: dict[Path, int] = field(default_factory=dict, init=False)
    _exits: asyncio.Queue[ServerExited] | None = field(default=None, init=False)
    _reaper_task: asyncio.Task[None] | None = field(default=None, init=False)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def socket_path(self, root: Path) -> Path:
        return normalize_path(root) / self.config.socket_filename

    def get(self, root: Path) -> ServerHandle | None:
        """Registered server for root. An adopted server whose socket is gone is forgotten."""
        root = normalize_path(root)
        handle = self._servers.get(root)
        if handle is not None and not handle.owned_by_us and not handle.socket_present:
            logger.info("server_entry_dropped", root=str(root), owned=False)
            del self._servers[root]
            self._prune_lock(root)
            return None
        return handle

    def find_log(self, root: Path) -> ServerLog | None:
        """Log sink of the server registered for root, if it has one."""
        handle = self.get(root)
        return handle.log if handle is not None else None

    def first_log(self) -> ServerLog | None:
        """Log sink of any registered server that has one."""
        for handle in self._servers.values():
            if handle.log is not None:
                return handle.log
        return None

    def roots(self) -> list[Path]:
        return list(self._servers)

    def handles(self) -> list[ServerHandle]:
        return list(self._servers.values())

    def __contains__(self, root: object) -> bool:
        return isinstance(root, Path) and self.get(root) is not None

    def __len__(self) -> int:
        return len(self._servers)

    # -------------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _root_lock(self, root: Path) -> AsyncIterator[None]:
        """Hold the per-root lock. Unused locks of unregistered roots are pruned."""
        lock = self._locks.get(root)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[root] = lock
        self._lock_users[root] = self._lock_users.get(root, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[root] -= 1
            if self._lock_users[root] == 0:
                del self._lock_users[root]
            self._prune_lock(root)

    def _prune_lock(self, root: Path) -> None:
        if root not in self._lock_users and root not in self._servers:
            self._locks.pop(root, None)

    def _ensure_reaper(self) -> asyncio.Queue[ServerExited]:
        if self._exits is None:
            self._exits = asyncio.Queue()
        if self._reaper_task is None or self._reaper_task.done():
            self._reaper_task = asyncio.create_task(
                self._reap(self._exits), context=contextvars.Context()
            )
        return self._exits

    async def ensure_started(self, root: Path, binary_path: Path) -> ServerHandle:
        """Return the server for root, adopting or spawning one if needed.

        Raises:
            ServerError: The server process could not be spawned.
        """
        root = normalize_path(root)
        async with self._root_lock(root):
            socket_path = self.socket_path(root)
            existing = self._servers.get(root)

            if socket_path.exists():
                if existing is not None:
                    if existing.log is not None:
                        existing.log.info("Server already running (started by us)")
                    return existing
                return self._adopt(root, socket_path)

            if existing is not None:
                if existing.owned_by_us and existing.alive:
                    # Spawned earlier but the socket has not shown up (yet)
                    return existing
                # Adopted server whose socket vanished, or an owned process
                # whose exit has not been reaped yet
                logger.info("server_entry_dropped", root=str(root), owned=existing.owned_by_us)
                del self._servers[root]

            handle = await self._spawn(root, binary_path, socket_path)
            await self._wait_for_socket(handle)
            return handle

    def _adopt(self, root: Path, socket_path: Path) -> ServerHandle:
        handle = ServerHandle(root=root, socket_path=socket_path, owned_by_us=False)
        self._servers[root] = handle
        logger.info(
            "server_adopted",
            root=str(root),
            message=f"Found existing reanalyze-server for {root.name} (not started by reanalyst)",
        )
        return handle

    async def _spawn(self, root: Path, binary_path: Path, socket_path: Path) -> ServerHandle:
        log = ServerLog(root, max_lines=self.config.log_buffer_lines)
        log.info(f"Starting reanalyze-server in {root}")

        try:
            process = await asyncio.create_subprocess_exec(
                str(binary_path),
                SERVER_SUBCOMMAND,
                cwd=root,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LINE_LIMIT,
            )
        except OSError as e:
            log.error(f"Failed to start reanalyze-server: {e}")
            raise ServerError.spawn_failed(str(root), str(binary_path), str(e)) from e

        if process.pid is None:
            log.error("Failed to start reanalyze-server")
            raise ServerError.spawn_failed(str(root), str(binary_path), "no process id")

        handle = ServerHandle(
            root=root,
            socket_path=socket_path,
            owned_by_us=True,
            process=process,
            log=log,
        )
        self._servers[root] = handle

        exits = self._ensure_reaper()
        # Server lines outlive the run that started the server; keep its run id off them
        handle.tasks = [
            asyncio.create_task(coro, context=contextvars.Context())
            for coro in (
                _pump_stream(process.stdout, log, "stdout"),
                _pump_stream(process.stderr, log, "stderr"),
                self._watch_exit(handle, exits),
            )
        ]
        logger.info("server_started", root=str(root), pid=process.pid, binary=str(binary_path))
        return handle

    async def _wait_for_socket(self, handle: ServerHandle) -> bool:
        """Poll for the control socket. A timeout is a warning, not a failure."""
        interval = self.config.poll_interval_sec
        attempts = max(1, round(self.config.startup_timeout_sec / interval))

        for _ in range(attempts):
            if handle.socket_present:
                if handle.log is not None:
                    handle.log.info("Server socket ready")
                return True
            if not handle.alive:
                break
            await asyncio.sleep(interval)

        if handle.log is not None:
            timeout = self.config.startup_timeout_sec
            handle.log.warning(f"Server started but socket not found after {timeout:g} seconds")
        logger.warning(
            "socket_timeout",
            root=str(handle.root),
            socket=str(handle.socket_path),
            timeout_sec=self.config.startup_timeout_sec,
        )
        return False

    # -------------------------------------------------------------------------
    # Exit handling
    # -------------------------------------------------------------------------

    async def _watch_exit(self, handle: ServerHandle, exits: asyncio.Queue[ServerExited]) -> None:
        assert handle.process is not None
        returncode = await handle.process.wait()
        exits.put_nowait(ServerExited(handle=handle, returncode=returncode))

    async def _reap(self, exits: asyncio.Queue[ServerExited]) -> None:
        """Single consumer of exit messages; the only place exits mutate the registry."""
        while True:
            message = await exits.get()
            try:
                self._on_exit(message)
            finally:
                exits.task_done()

    def _on_exit(self, message: ServerExited) -> None:
        handle = message.handle
        if handle.log is not None:
            handle.log.info(f"Server exited with code {message.returncode}")

        if self._servers.get(handle.root) is handle:
            del self._servers[handle.root]
            self._prune_lock(handle.root)
            logger.warning(
                "server_exited",
                root=str(handle.root),
                pid=handle.pid,
                returncode=message.returncode,
            )

    async def drain_exits(self) -> None:
        """Wait until every posted exit message has been applied."""
        if self._exits is not None and self._reaper_task is not None:
            await self._exits.join()

    # -------------------------------------------------------------------------
    # Stop
    # -------------------------------------------------------------------------

    async def _terminate(self, handle: ServerHandle) -> None:
        process = handle.process
        if process is None or process.returncode is not None:
            return

        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        try:
            async with asyncio.timeout(self.config.stop_timeout_sec):
                await process.wait()
        except TimeoutError:
            logger.warning("server_kill", root=str(handle.root), pid=process.pid)
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()

    async def _finish_tasks(self, handle: ServerHandle) -> None:
        """Let output pumps reach EOF; cancel any still held open by a grandchild."""
        if not handle.tasks:
            return
        _done, still_running = await asyncio.wait(handle.tasks, timeout=1.0)
        for task in still_running:
            task.cancel()

    async def stop(self, root: Path) -> None:
        """Stop the server for root if we own it; forget it either way."""
        root = normalize_path(root)
        async with self._root_lock(root):
            handle = self._servers.pop(root, None)
            if handle is None:
                return

            if handle.owned_by_us and handle.process is not None:
                await self._terminate(handle)
                await self._finish_tasks(handle)
                if handle.log is not None:
                    handle.log.info("Server stopped by reanalyst")
                remove_socket_file(handle.socket_path)
                logger.info("server_stopped", root=str(root), pid=handle.pid)
            elif not handle.owned_by_us:
                logger.info(
                    "server_left_running",
                    root=str(root),
                    message=f"Leaving external reanalyze-server running for {root.name}",
                )

    async def stop_all(self) -> None:
        """Stop every owned server. Adopted servers are forgotten, never touched.

        Roots with a start in progress are included; their stop waits for the
        start to finish. Errors from individual stops are logged, not raised.
        """
        pending = list(set(self._servers) | set(self._lock_users))
        results = await asyncio.gather(
            *(self.stop(root) for root in pending),
            return_exceptions=True,
        )
        for root, result in zip(pending, results, strict=True):
            if isinstance(result, BaseException):
                logger.error("server_stop_failed", root=str(root), error=str(result))

    async def close(self) -> None:
        """Stop owned servers and shut down the reaper."""
        await self.stop_all()

        if self._reaper_task is not None:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None
        self._exits = None
