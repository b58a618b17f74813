"""Tests for the rea check, status and fix commands."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from click.testing import CliRunner

from reanalyst.cli.main import cli

if TYPE_CHECKING:
    from tests.conftest import FakeWorkspace

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Commands attach handlers to CliRunner's streams; drop them afterwards."""
    yield
    logging.getLogger().handlers.clear()


@pytest.fixture
def legacy(make_workspace: Callable[..., FakeWorkspace]) -> FakeWorkspace:
    ws = make_workspace(version="11.1.0")
    ws.set_output(
        [
            {
                "name": "Warning Dead Value",
                "kind": "warning",
                "file": "packages/app/src/App.res",
                "range": [0, 0, 0, 14],
                "message": "fooVar is never used",
            }
        ]
    )
    return ws


class TestCheckCommand:
    """rea check tests."""

    def test_given_dead_code_when_check_json_then_reports_diagnostics(
        self, legacy: FakeWorkspace
    ) -> None:
        # When
        result = runner.invoke(cli, ["check", str(legacy.source), "--json"])

        # Then
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["status"] == "ok"
        assert data["monorepo_root"] == str(legacy.root)
        (diagnostic,) = data["diagnostics"][str(legacy.source)]
        assert diagnostic["message"] == "fooVar is never used"
        assert diagnostic["range"] == [0, 0, 0, 14]
        assert [f["title"] for f in diagnostic["quick_fixes"]] == ["Remove unused"]
        assert diagnostic["quick_fixes"][0]["clears_diagnostic"] is True

    def test_given_dead_code_when_check_then_prints_summary(self, legacy: FakeWorkspace) -> None:
        result = runner.invoke(cli, ["check", str(legacy.source)])

        assert result.exit_code == 0, result.output
        assert "fooVar is never used" in result.output
        assert "1 diagnostic" in result.output

    def test_given_malformed_output_when_check_then_fails(self, legacy: FakeWorkspace) -> None:
        legacy.set_output("garbage")

        result = runner.invoke(cli, ["check", str(legacy.source), "--json"])

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["error"]["code"] == 5002
        assert data["diagnostics"] == {}

    def test_given_project_directory_when_check_then_analyzes(
        self, legacy: FakeWorkspace
    ) -> None:
        result = runner.invoke(cli, ["check", str(legacy.project), "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["project_root"] == str(legacy.project)

    def test_given_server_support_when_check_with_log_then_server_log_printed(
        self, workspace: FakeWorkspace, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("REANALYST__SERVER__STARTUP_TIMEOUT_SEC", "1")
        workspace.server_creates_socket()

        result = runner.invoke(cli, ["check", str(workspace.source), "--server-log"])

        assert result.exit_code == 0, result.output
        assert "Server stopped by reanalyst" in result.output
        assert not workspace.socket.exists()


class TestStatusCommand:
    """rea status tests."""

    def test_given_workspace_when_status_json_then_reports_resolution(
        self, workspace: FakeWorkspace
    ) -> None:
        result = runner.invoke(cli, ["status", str(workspace.source), "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["resolved"] is True
        assert data["project_root"] == str(workspace.project)
        assert data["monorepo_root"] == str(workspace.root)
        assert data["server_supported"] is True
        assert data["socket_present"] is False

    def test_given_legacy_workspace_when_status_then_one_shot(
        self, legacy: FakeWorkspace
    ) -> None:
        result = runner.invoke(cli, ["status", str(legacy.project)])

        assert result.exit_code == 0, result.output
        assert "not supported (one-shot analysis)" in result.output
        assert "ReScript: 11.1.0" in result.output

    def test_given_no_toolchain_when_status_then_error(self, tmp_path: Path) -> None:
        (tmp_path / "rescript.json").write_text("{}")

        result = runner.invoke(cli, ["status", str(tmp_path)])

        assert result.exit_code != 0
        assert "ReScript 12 or later" in result.output


class TestFixCommand:
    """rea fix tests."""

    def test_given_diagnostic_when_fix_listed_then_shows_titles(
        self, legacy: FakeWorkspace
    ) -> None:
        result = runner.invoke(cli, ["fix", str(legacy.source), "1", "5"])

        assert result.exit_code == 0, result.output
        assert "1. Remove unused" in result.stdout

    def test_given_diagnostic_when_fix_applied_then_file_edited(
        self, legacy: FakeWorkspace
    ) -> None:
        result = runner.invoke(cli, ["fix", str(legacy.source), "1", "5", "--apply", "1"])

        assert result.exit_code == 0, result.output
        assert legacy.source.read_text() == "\nlet main = () => ()\n"

    def test_given_out_of_range_index_when_fix_applied_then_error(
        self, legacy: FakeWorkspace
    ) -> None:
        result = runner.invoke(cli, ["fix", str(legacy.source), "1", "5", "--apply", "2"])

        assert result.exit_code != 0
        assert "No fix #2" in result.output
        assert legacy.source.read_text().startswith("let fooVar")

    def test_given_position_without_diagnostic_when_fix_listed_then_none(
        self, legacy: FakeWorkspace
    ) -> None:
        result = runner.invoke(cli, ["fix", str(legacy.source), "2", "1", "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == []
