"""CLI utilities - config loading and outcome rendering."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
from rich.markup import escape

from reanalyst.analysis.models import DiagnosticRecord, QuickFix
from reanalyst.config.loader import load_config
from reanalyst.config.models import ReanalystConfig
from reanalyst.core.errors import ReanalystError
from reanalyst.core.logging import configure_logging, get_log_file_path
from reanalyst.core.progress import get_console, pluralize, status
from reanalyst.server.models import ServerLog
from reanalyst.service import AnalysisOutcome, AnalysisService
from reanalyst.workspace.roots import find_project_root, is_project_root, normalize_path


def project_root_for(path: Path) -> Path | None:
    """Project root for a file, or for a directory that is itself a project root."""
    path = normalize_path(path)
    if path.is_dir() and is_project_root(path):
        return path
    return find_project_root(path if path.is_file() else path / "_")


def load_cli_config(path: Path) -> ReanalystConfig:
    try:
        return load_config(project_root_for(path))
    except ReanalystError as e:
        raise click.ClickException(str(e)) from e


def trigger_file(path: Path) -> Path:
    """File path handed to the pipeline; directories stand in with a child path."""
    path = normalize_path(path)
    return path if path.is_file() else path / "_"


def _position(record: DiagnosticRecord) -> str:
    rng = record.range
    return f"{rng.start_line + 1}:{rng.start_col + 1}"


def _fix_to_dict(fix: QuickFix) -> dict[str, Any]:
    return {
        "title": fix.title,
        "kind": fix.kind,
        "range": list(fix.range.as_tuple()),
        "edit": {
            "kind": fix.edit.edit_kind.value,
            "range": list(fix.edit.span().as_tuple()),
            "text": fix.edit.replacement_text,
        },
        "clears_diagnostic": fix.clears is not None,
    }


def outcome_to_dict(outcome: AnalysisOutcome, service: AnalysisService) -> dict[str, Any]:
    data: dict[str, Any] = {
        "file": outcome.file_path,
        "status": outcome.status,
        "error": outcome.error.to_dict() if outcome.error else None,
        "hint": outcome.hint.message if outcome.hint else None,
    }
    if outcome.target is not None:
        data["project_root"] = str(outcome.target.project_root)
        data["monorepo_root"] = str(outcome.target.monorepo_root)
        data["binary"] = str(outcome.target.binary_path)
    if outcome.server is not None:
        data["server"] = {
            "owned": outcome.server.owned_by_us,
            "pid": outcome.server.pid,
            "socket": str(outcome.server.socket_path),
        }
    data["diagnostics"] = {
        path: [
            {
                "range": list(record.range.as_tuple()),
                "severity": record.severity.value,
                "category": record.category,
                "message": record.message,
                "quick_fixes": [
                    _fix_to_dict(fix) for fix in service.actions.for_range(path, record.range)
                ],
            }
            for record in records
        ]
        for path, records in service.state
    }
    return data


def print_outcome(outcome: AnalysisOutcome, service: AnalysisService, *, as_json: bool) -> None:
    """Render one analysis outcome to stdout (JSON) or the console."""
    if as_json:
        click.echo(json.dumps(outcome_to_dict(outcome, service), indent=2))
        return

    if outcome.hint is not None:
        status(outcome.hint.message, style="warning")
    for message in outcome.stderr_messages:
        status(f"Something went wrong trying to run reanalyze: '{message}'", style="warning")

    if outcome.error is not None:
        status(outcome.error.message, style="error")
        log_path = get_log_file_path()
        if log_path is not None:
            status(f"See details in {log_path}", style="info")
        return

    if outcome.status == "stale":
        status("Newer results already published; this run was discarded", style="info")
        return

    console = get_console()
    for path, records in service.state:
        if not records:
            console.print(f"[green]{escape(path)}[/green]: cleared", highlight=False)
            continue
        console.print(f"[bold]{escape(path)}[/bold]", highlight=False)
        for record in records:
            fixes = service.actions.for_range(path, record.range)
            suffix = f" [dim]({pluralize(len(fixes), 'fix', 'fixes')})[/dim]" if fixes else ""
            message = escape(record.message)
            console.print(
                f"  {_position(record)}  [yellow]warning[/yellow]  {message}{suffix}",
                highlight=False,
            )

    total = service.state.total
    run_time = outcome.run.duration_seconds if outcome.run else 0.0
    style = "success" if total == 0 else "warning"
    status(f"{pluralize(total, 'diagnostic')} ({run_time:.1f}s)", style=style)


def configure_cli_logging(ctx: click.Context, config: ReanalystConfig) -> None:
    """Switch to the configured log outputs; -v still forces DEBUG."""
    logging_config = config.logging
    if ctx.find_root().obj and ctx.find_root().obj.get("verbose"):
        logging_config = logging_config.model_copy(update={"level": "DEBUG"})
    configure_logging(config=logging_config)


def print_server_log(log: ServerLog | None) -> None:
    if log is None:
        status("No reanalyze-server log available", style="info")
        return
    console = get_console()
    console.rule(log.name)
    for line in log:
        console.print(line, highlight=False, markup=False)
