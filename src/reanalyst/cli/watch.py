"""rea watch command - re-analyze on every save of a ReScript source file."""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path

import click
import structlog
from watchfiles import Change, awatch

from reanalyst.cli.utils import (
    configure_cli_logging,
    load_cli_config,
    print_outcome,
    trigger_file,
)
from reanalyst.config.constants import SOURCE_EXTENSIONS
from reanalyst.core.progress import status
from reanalyst.service import AnalysisService
from reanalyst.workspace.roots import find_project_root

logger = structlog.get_logger()


def is_source_file(_change: Change, path: str) -> bool:
    return path.endswith(SOURCE_EXTENSIONS)


def triggers_for(changes: set[tuple[Change, str]]) -> list[Path]:
    """One trigger file per project root touched by a batch of changes."""
    by_root: dict[Path, Path] = {}
    for _change, raw in sorted(changes, key=lambda c: c[1]):
        root = find_project_root(raw)
        if root is None:
            logger.debug("change_outside_project", path=raw)
            continue
        by_root.setdefault(root, Path(raw))
    return list(by_root.values())


async def _analyze_and_print(service: AnalysisService, file_path: Path, as_json: bool) -> None:
    outcome = await service.analyze(file_path)
    print_outcome(outcome, service, as_json=as_json)


async def run_watch(service: AnalysisService, path: Path, *, as_json: bool) -> None:
    """Analyze once, then on every batch of source changes until stopped."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGTERM, stop_event.set)

    pending: set[asyncio.Task[None]] = set()

    def schedule(file_path: Path) -> None:
        task = asyncio.create_task(_analyze_and_print(service, file_path, as_json))
        pending.add(task)
        task.add_done_callback(pending.discard)

    try:
        schedule(trigger_file(path))
        async for changes in awatch(
            path,
            watch_filter=is_source_file,
            stop_event=stop_event,
            ignore_permission_denied=True,
        ):
            triggers = triggers_for(changes)
            logger.debug("changes_detected", changes=len(changes), triggers=len(triggers))
            for file_path in triggers:
                schedule(file_path)
    finally:
        loop.remove_signal_handler(signal.SIGTERM)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await service.stop()


@click.command()
@click.argument("path", default=".", type=click.Path(exists=True, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output each run as JSON")
@click.pass_context
def watch_command(ctx: click.Context, path: Path, as_json: bool) -> None:
    """Watch PATH and re-run the analysis whenever a .res/.resi file changes.

    Servers started by this command are stopped on exit (Ctrl-C or SIGTERM).
    """
    config = load_cli_config(path)
    configure_cli_logging(ctx, config)

    service = AnalysisService(config)
    status(f"Watching {path.resolve()}", style="info")
    try:
        asyncio.run(run_watch(service, path.resolve(), as_json=as_json))
    except KeyboardInterrupt:
        pass
    status("Stopped watching", style="success")
