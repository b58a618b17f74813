"""Tests for the analysis service pipeline.

Runs against fake workspaces from conftest.py: ReScript 11.1.0 installs have no
reanalyze-server, 12.1.0 installs do.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from reanalyst.analysis.models import RunResult
from reanalyst.analysis.parsers import parse_reanalyze_json
from reanalyst.analysis.runner import AnalysisRunner, StderrCallback
from reanalyst.config.models import BinariesConfig, ReanalystConfig, ServerConfig
from reanalyst.core.errors import ErrorCode
from reanalyst.service import AnalysisService, AnalysisStatus

if TYPE_CHECKING:
    from tests.conftest import FakeWorkspace


def _item(file: str, message: str, name: str = "Warning Dead Value") -> dict[str, object]:
    return {
        "name": name,
        "kind": "warning",
        "file": file,
        "range": [0, 4, 0, 10],
        "message": message,
    }


@pytest.fixture
def config(fast_server_config: ServerConfig) -> ReanalystConfig:
    return ReanalystConfig(server=fast_server_config)


class TestResolve:
    """Target resolution for a triggering file."""

    def test_resolves_project_binary_and_monorepo_root(
        self, workspace: FakeWorkspace, config: ReanalystConfig
    ) -> None:
        target = AnalysisService(config).resolve(workspace.source)

        assert target.project_root == workspace.project
        assert target.monorepo_root == workspace.root
        assert target.binary_path.resolve() == workspace.binary.resolve()

    def test_platform_path_outside_node_modules_uses_project_root(
        self, workspace: FakeWorkspace, tmp_path: Path
    ) -> None:
        config = ReanalystConfig(binaries=BinariesConfig(platform_path=str(tmp_path / "bin")))

        target = AnalysisService(config).resolve(workspace.source)

        assert target.binary_path == tmp_path / "bin" / "rescript-tools.exe"
        assert target.monorepo_root == workspace.project


class TestAnalyze:
    """Full pipeline runs."""

    @pytest.mark.asyncio
    async def test_given_legacy_install_when_analyzed_then_one_shot_and_published(
        self, make_workspace: Callable[..., FakeWorkspace], config: ReanalystConfig
    ) -> None:
        """Pre-12.1 toolchains run the analysis without a server."""
        # Given
        ws = make_workspace(version="11.1.0")
        ws.set_output([_item("packages/app/src/App.res", "fooVar is never used")])
        service = AnalysisService(config)

        # When
        outcome = await service.analyze(ws.source)
        await service.stop()

        # Then
        assert outcome.success
        assert outcome.server is None
        assert ws.spawn_count() == 0
        assert service.status is AnalysisStatus.IDLE
        records = service.state.get(str(ws.source))
        assert [r.message for r in records] == ["fooVar is never used"]
        assert [f.title for f in service.actions.for_file(str(ws.source))] == ["Remove unused"]

    @pytest.mark.asyncio
    async def test_given_server_support_when_analyzed_then_server_started_and_stopped(
        self, workspace: FakeWorkspace, config: ReanalystConfig
    ) -> None:
        # Given
        workspace.server_creates_socket()
        service = AnalysisService(config)

        # When
        outcome = await service.analyze(workspace.source)

        # Then
        assert outcome.success
        assert outcome.server is not None
        assert outcome.server.owned_by_us
        assert workspace.socket.exists()
        assert service.status is AnalysisStatus.READY

        await service.stop()
        assert not workspace.socket.exists()

    @pytest.mark.asyncio
    async def test_given_server_disabled_when_analyzed_then_no_spawn(
        self, workspace: FakeWorkspace
    ) -> None:
        service = AnalysisService(ReanalystConfig(server=ServerConfig(enabled=False)))

        outcome = await service.analyze(workspace.source)
        await service.stop()

        assert outcome.success
        assert outcome.server is None
        assert workspace.spawn_count() == 0

    @pytest.mark.asyncio
    async def test_given_fixed_file_when_reanalyzed_then_cleared(
        self, make_workspace: Callable[..., FakeWorkspace], config: ReanalystConfig
    ) -> None:
        """Files that drop out of the results are published as empty."""
        ws = make_workspace(version="11.1.0")
        other = ws.project / "src" / "Other.res"
        ws.set_output(
            [
                _item("packages/app/src/App.res", "a is dead"),
                _item("packages/app/src/Other.res", "b is dead"),
            ]
        )
        service = AnalysisService(config)
        await service.analyze(ws.source)

        ws.set_output([_item("packages/app/src/App.res", "a is still dead")])
        outcome = await service.analyze(ws.source)
        await service.stop()

        assert outcome.reconciliation is not None
        assert outcome.reconciliation.cleared == [str(other)]
        assert service.state.get(str(other)) == []
        assert service.state.has_diagnostics(str(ws.source))

    @pytest.mark.asyncio
    async def test_given_malformed_output_when_analyzed_then_state_emptied_and_failure(
        self, make_workspace: Callable[..., FakeWorkspace], config: ReanalystConfig
    ) -> None:
        # Given
        ws = make_workspace(version="11.1.0")
        ws.set_output([_item("packages/app/src/App.res", "a is dead")])
        service = AnalysisService(config)
        await service.analyze(ws.source)
        ws.set_output("Fatal error: not json")

        # When
        outcome = await service.analyze(ws.source)
        await service.stop()

        # Then
        assert not outcome.success
        assert outcome.error is not None
        assert outcome.error.code == ErrorCode.ANALYSIS_MALFORMED_OUTPUT
        assert str(ws.root) in outcome.error.message
        assert len(service.state) == 0
        assert len(service.actions) == 0

    @pytest.mark.asyncio
    async def test_given_distress_when_analyzed_then_rebuild_hint(
        self, make_workspace: Callable[..., FakeWorkspace], config: ReanalystConfig
    ) -> None:
        ws = make_workspace(version="11.1.0")
        ws.set_stderr("Fatal error: exception End_of_file\n")
        service = AnalysisService(config)

        outcome = await service.analyze(ws.source)
        await service.stop()

        assert outcome.success
        assert outcome.hint is not None
        assert outcome.hint.code == ErrorCode.ANALYSIS_PROCESS_DISTRESS
        assert outcome.stderr_messages == []

    @pytest.mark.asyncio
    async def test_given_unused_arguments_when_analyzed_then_hidden(
        self, make_workspace: Callable[..., FakeWorkspace], config: ReanalystConfig
    ) -> None:
        ws = make_workspace(version="11.1.0")
        ws.set_output(
            [
                _item("packages/app/src/App.res", "x is unused", name="Warning Unused Argument"),
                _item("packages/app/src/App.res", "a is dead"),
            ]
        )
        service = AnalysisService(config)

        outcome = await service.analyze(ws.source)
        await service.stop()

        assert outcome.reconciliation is not None
        assert outcome.reconciliation.suppressed == 1
        assert [r.message for r in service.state.get(str(ws.source))] == ["a is dead"]

    @pytest.mark.asyncio
    async def test_given_two_monorepos_when_analyzed_then_both_kept(
        self, make_workspace: Callable[..., FakeWorkspace], config: ReanalystConfig
    ) -> None:
        """Publishing for one root leaves other roots' diagnostics alone."""
        first = make_workspace(version="11.1.0", name="one")
        second = make_workspace(version="11.1.0", name="two")
        first.set_output([_item("packages/app/src/App.res", "one is dead")])
        second.set_output([_item("packages/app/src/App.res", "two is dead")])
        service = AnalysisService(config)

        await service.analyze(first.source)
        await service.analyze(second.source)
        await service.stop()

        assert service.state.has_diagnostics(str(first.source))
        assert service.state.has_diagnostics(str(second.source))

    @pytest.mark.asyncio
    async def test_given_two_monorepos_when_analyzed_then_both_keep_quick_fixes(
        self, make_workspace: Callable[..., FakeWorkspace], config: ReanalystConfig
    ) -> None:
        # Given
        first = make_workspace(version="11.1.0", name="one")
        second = make_workspace(version="11.1.0", name="two")
        first.set_output([_item("packages/app/src/App.res", "fooVar is never used")])
        second.set_output([_item("packages/app/src/App.res", "fooVar is never used")])
        service = AnalysisService(config)

        # When
        await service.analyze(first.source)
        [first_record] = service.state.get(str(first.source))
        fixes_before = service.actions.for_range(str(first.source), first_record.range)
        await service.analyze(second.source)
        await service.stop()

        # Then
        assert len(fixes_before) == 1
        assert service.actions.for_range(str(first.source), first_record.range) == fixes_before
        [second_record] = service.state.get(str(second.source))
        assert len(service.actions.for_range(str(second.source), second_record.range)) == 1

    @pytest.mark.asyncio
    async def test_given_reanalysis_of_same_root_when_fixed_then_old_fixes_dropped(
        self, workspace: FakeWorkspace, config: ReanalystConfig
    ) -> None:
        workspace.set_output([_item("packages/app/src/App.res", "fooVar is never used")])
        service = AnalysisService(config)
        await service.analyze(workspace.source)

        workspace.set_output([])
        await service.analyze(workspace.source)
        await service.stop()

        assert len(service.actions) == 0

    @pytest.mark.asyncio
    async def test_given_no_project_when_analyzed_then_root_not_found(
        self, tmp_path: Path, config: ReanalystConfig
    ) -> None:
        service = AnalysisService(config)

        outcome = await service.analyze(tmp_path / "loose" / "File.res")

        assert outcome.error is not None
        assert outcome.error.code in (
            ErrorCode.PROJECT_ROOT_NOT_FOUND,
            ErrorCode.BINARY_NOT_FOUND,
        )
        assert service.status is AnalysisStatus.FAILED

    @pytest.mark.asyncio
    async def test_given_no_toolchain_when_analyzed_then_binary_not_found(
        self, tmp_path: Path, config: ReanalystConfig
    ) -> None:
        project = tmp_path / "bare"
        (project / "src").mkdir(parents=True)
        (project / "rescript.json").write_text(json.dumps({"name": "bare"}))
        service = AnalysisService(config)

        outcome = await service.analyze(project / "src" / "App.res")

        assert outcome.error is not None
        assert outcome.error.code == ErrorCode.BINARY_NOT_FOUND
        assert "ReScript 12 or later" in outcome.error.message


class _GatedRunner(AnalysisRunner):
    """Runner whose first call blocks until released."""

    def __init__(self, items_by_call: list[list[dict[str, object]]]) -> None:
        super().__init__()
        self._items_by_call = items_by_call
        self.release_first = asyncio.Event()
        self.calls = 0

    async def run(
        self,
        root: Path,
        binary_path: Path,
        *,
        on_stderr: StderrCallback | None = None,
    ) -> RunResult:
        call = self.calls
        self.calls += 1
        if call == 0:
            await self.release_first.wait()
        items = parse_reanalyze_json(json.dumps(self._items_by_call[call]), "").items
        return RunResult(status="ok", command=["tools"], cwd=str(root), items=items)


class TestOrdering:
    """Overlapping triggers."""

    @pytest.mark.asyncio
    async def test_given_older_run_finishes_last_when_published_then_dropped(
        self, make_workspace: Callable[..., FakeWorkspace], config: ReanalystConfig
    ) -> None:
        # Given
        ws = make_workspace(version="11.1.0")
        runner = _GatedRunner(
            [
                [_item(str(ws.source), "old result")],
                [_item(str(ws.source), "new result")],
            ]
        )
        service = AnalysisService(config, runner=runner)

        # When
        older = asyncio.create_task(service.analyze(ws.source))
        await asyncio.sleep(0)
        newer = await service.analyze(ws.source)
        runner.release_first.set()
        stale = await older
        await service.stop()

        # Then
        assert newer.success
        assert stale.status == "stale"
        assert [r.message for r in service.state.get(str(ws.source))] == ["new result"]


class TestDiagnosticsAndLogs:
    """Quick-fix side effects and log lookup."""

    @pytest.mark.asyncio
    async def test_remove_unused_clears_its_diagnostic(
        self, make_workspace: Callable[..., FakeWorkspace], config: ReanalystConfig
    ) -> None:
        ws = make_workspace(version="11.1.0")
        ws.set_output([_item("packages/app/src/App.res", "fooVar is never used")])
        service = AnalysisService(config)
        await service.analyze(ws.source)
        await service.stop()

        (fix,) = service.actions.at(str(ws.source), 0, 5)
        assert fix.clears is not None
        assert service.clear_diagnostic(fix.clears)
        assert service.state.get(str(ws.source)) == []

    @pytest.mark.asyncio
    async def test_server_log_found_from_sub_package_root(
        self, workspace: FakeWorkspace, config: ReanalystConfig
    ) -> None:
        """Servers are keyed by monorepo root; a project root below it still finds the log."""
        workspace.server_creates_socket()
        service = AnalysisService(config)

        try:
            await service.analyze(workspace.source)

            direct = service.server_log(workspace.root)
            assert direct is not None
            assert service.server_log(workspace.project) is direct
            assert service.server_log() is direct
        finally:
            await service.stop()

    def test_server_log_absent_without_servers(
        self, workspace: FakeWorkspace, config: ReanalystConfig
    ) -> None:
        service = AnalysisService(config)
        assert service.server_log() is None
        assert service.server_log(workspace.project) is None
