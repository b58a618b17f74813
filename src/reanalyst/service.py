"""Analysis service - the trigger-to-diagnostics pipeline.

A trigger (file save, explicit command) supplies a file path:

    project root -> rescript-tools.exe -> monorepo root
        -> reanalyze-server (when the toolchain supports it)
        -> reanalyze -json -> reconcile -> published diagnostics

The service owns the server registry, the published diagnostics and the
quick-fix index. Construct it once, ``await stop()`` it at shutdown.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal

import structlog

from reanalyst.analysis.models import DiagnosticRecord, ResultItem, RunResult
from reanalyst.analysis.runner import AnalysisRunner
from reanalyst.config.models import ReanalystConfig
from reanalyst.core.errors import AnalysisError, ReanalystError, ServerError, WorkspaceError
from reanalyst.core.logging import bind_monorepo_root, bind_run, clear_run
from reanalyst.diagnostics.actions import ActionsIndex
from reanalyst.diagnostics.reconciler import Reconciliation, reconcile
from reanalyst.diagnostics.state import DiagnosticsState
from reanalyst.server.models import ServerHandle, ServerLog
from reanalyst.server.registry import ServerRegistry
from reanalyst.workspace.binaries import (
    find_binary,
    monorepo_root_from_binary,
    supports_reanalyze_server,
)
from reanalyst.workspace.roots import find_project_root, normalize_path

logger = structlog.get_logger()


class AnalysisStatus(Enum):
    """Status indicator shown by front ends."""

    IDLE = "idle"
    RUNNING = "running"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class Target:
    """Where an analysis for one file runs."""

    project_root: Path
    binary_path: Path
    monorepo_root: Path


@dataclass
class AnalysisOutcome:
    """Everything a front end needs to report one trigger."""

    file_path: str
    status: Literal["ok", "failed", "stale"]
    request_id: int
    target: Target | None = None
    server: ServerHandle | None = None
    run: RunResult | None = None
    reconciliation: Reconciliation | None = None
    error: ReanalystError | None = None
    hint: ReanalystError | None = None  # Actionable advice that does not fail the run
    stderr_messages: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == "ok"


def _is_under(path: str, root: Path) -> bool:
    return normalize_path(path).is_relative_to(root)


class AnalysisService:
    """Coordinates resolution, the server registry, analysis runs and diagnostics."""

    def __init__(
        self,
        config: ReanalystConfig | None = None,
        *,
        registry: ServerRegistry | None = None,
        runner: AnalysisRunner | None = None,
    ) -> None:
        self.config = config or ReanalystConfig()
        self.registry = registry or ServerRegistry(config=self.config.server)
        self.runner = runner or AnalysisRunner(self.config.analysis)
        self.state = DiagnosticsState()
        self.actions = ActionsIndex()
        self.status = AnalysisStatus.IDLE
        self._last_request = 0
        self._last_applied = 0

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(self, file_path: str | Path) -> Target:
        """Resolve project root, tools binary and monorepo root for a file.

        Raises:
            WorkspaceError: When any of the three cannot be determined.
        """
        project_root = find_project_root(file_path)
        if project_root is None:
            raise WorkspaceError.project_root_not_found(str(file_path))

        binary = self.config.analysis.binary
        platform_path = self.config.binaries.platform_path
        found = find_binary(project_root, binary, platform_path=platform_path)
        if not found.ok:
            logger.error(
                "binary_not_found",
                project_root=str(project_root),
                binary=binary,
                status=found.status,
                reason=found.reason,
            )
            raise WorkspaceError.binary_not_found(str(project_root), binary)
        binary_path = found.unwrap()

        monorepo_root = monorepo_root_from_binary(binary_path)
        if monorepo_root is None and platform_path is not None:
            # Binaries outside node_modules: the project root is the workspace
            monorepo_root = project_root
        if monorepo_root is None:
            raise WorkspaceError.monorepo_root_unknown(str(binary_path))

        return Target(
            project_root=project_root,
            binary_path=binary_path,
            monorepo_root=normalize_path(monorepo_root),
        )

    # -------------------------------------------------------------------------
    # Analysis
    # -------------------------------------------------------------------------

    async def analyze(self, file_path: str | Path) -> AnalysisOutcome:
        """Run one analysis for the project containing file_path and publish it."""
        self._last_request += 1
        request_id = self._last_request
        bind_run(str(file_path))
        try:
            return await self._analyze(str(file_path), request_id)
        finally:
            clear_run()

    async def _analyze(self, file_path: str, request_id: int) -> AnalysisOutcome:
        outcome = AnalysisOutcome(file_path=file_path, status="failed", request_id=request_id)

        try:
            target = self.resolve(file_path)
        except WorkspaceError as e:
            return self._fail(outcome, e)
        outcome.target = target
        bind_monorepo_root(target.monorepo_root)

        if self.config.server.enabled and supports_reanalyze_server(
            target.monorepo_root, self.config.server.min_server_version
        ):
            try:
                outcome.server = await self.registry.ensure_started(
                    target.monorepo_root, target.binary_path
                )
            except ServerError as e:
                return self._fail(outcome, e)
            logger.info("using_reanalyze_server", root=str(target.monorepo_root))

        self.status = AnalysisStatus.RUNNING

        def collect_stderr(text: str, is_distress: bool) -> None:
            if not is_distress:
                outcome.stderr_messages.append(text.strip())

        run = await self.runner.run(
            target.monorepo_root, target.binary_path, on_stderr=collect_stderr
        )
        outcome.run = run

        if run.distress:
            outcome.hint = AnalysisError.process_distress(run.command, run.cwd)

        if request_id < self._last_applied:
            logger.info(
                "stale_result_dropped",
                request_id=request_id,
                last_applied=self._last_applied,
            )
            outcome.status = "stale"
            return outcome
        self._last_applied = request_id

        if run.status == "spawn_failed":
            return self._fail(
                outcome,
                AnalysisError.spawn_failed(run.command, run.cwd, run.error_detail or "unknown"),
            )

        if run.status == "malformed":
            # Stale diagnostics are worse than none
            self.state.clear()
            self.actions = ActionsIndex()
            return self._fail(
                outcome,
                AnalysisError.malformed_output(run.command, run.cwd, run.error_detail or ""),
            )

        outcome.reconciliation = self._publish(run.items, target.monorepo_root)
        outcome.status = "ok"
        self.status = AnalysisStatus.READY
        return outcome

    def _fail(self, outcome: AnalysisOutcome, error: ReanalystError) -> AnalysisOutcome:
        self.status = AnalysisStatus.FAILED
        outcome.status = "failed"
        outcome.error = error
        logger.error(
            "analysis_failed", error=error.error_name, message=error.message, **error.details
        )
        return outcome

    def _publish(self, items: list[ResultItem], root: Path) -> Reconciliation:
        """Reconcile items for one monorepo root; other roots' files are untouched."""
        scoped_items: list[ResultItem] = []
        for item in items:
            path = Path(item.file)
            absolute = str(path if path.is_absolute() else normalize_path(root / path))
            if not _is_under(absolute, root):
                logger.debug("result_outside_root", file=item.file, root=str(root))
                continue
            scoped_items.append(dataclasses.replace(item, file=absolute))

        under_root = {p: r for p, r in self.state.snapshot().items() if _is_under(p, root)}
        elsewhere = {p: r for p, r in self.state.snapshot().items() if p not in under_root}

        result = reconcile(
            scoped_items,
            DiagnosticsState(under_root),
            suppress_unused_arguments=self.config.analysis.suppress_unused_arguments,
        )

        merged = DiagnosticsState(elsewhere)
        for path, records in result.state:
            merged.set(path, records)
        self.state.replace(merged)

        actions = ActionsIndex()
        for fix in self.actions:
            if fix.file in elsewhere:
                actions.add(fix)
        for fix in result.actions:
            actions.add(fix)
        self.actions = actions

        logger.info(
            "diagnostics_published",
            files=len(result.state),
            diagnostics=result.state.total,
            cleared=len(result.cleared),
            suppressed=result.suppressed,
            quick_fixes=len(result.actions),
        )
        return result

    # -------------------------------------------------------------------------
    # Diagnostics and logs
    # -------------------------------------------------------------------------

    def clear_diagnostic(self, record: DiagnosticRecord) -> bool:
        """Side effect of a "Remove unused" fix: drop that diagnostic."""
        removed = self.state.remove(record.file, record)
        if removed:
            logger.debug("diagnostic_cleared", file=record.file, range=record.range.as_tuple())
        return removed

    def server_log(self, root: Path | None = None) -> ServerLog | None:
        """Find a server log by monorepo root, falling back to a sub-package root.

        Servers are registered under the monorepo root. If root is a project
        root below it, the monorepo root is derived from the located binary
        and looked up once more. With no root, any server's log is returned.
        """
        if root is None:
            return self.registry.first_log()

        log = self.registry.find_log(root)
        if log is not None:
            return log

        found = find_binary(
            root, self.config.analysis.binary, platform_path=self.config.binaries.platform_path
        )
        if found.ok:
            derived = monorepo_root_from_binary(found.unwrap())
            if derived is not None and normalize_path(derived) != normalize_path(root):
                return self.registry.find_log(derived)
        return None

    async def stop(self) -> None:
        """Stop every server this service started. Safe to call at any time."""
        await self.registry.close()
        self.status = AnalysisStatus.IDLE
