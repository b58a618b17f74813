"""rea check command - analyze the project containing a file once."""

import asyncio
from pathlib import Path

import click

from reanalyst.cli.utils import (
    configure_cli_logging,
    load_cli_config,
    print_outcome,
    print_server_log,
    trigger_file,
)
from reanalyst.core.progress import spinner
from reanalyst.server.models import ServerLog
from reanalyst.service import AnalysisOutcome, AnalysisService


async def _run_check(
    service: AnalysisService, file_path: Path
) -> tuple[AnalysisOutcome, ServerLog | None]:
    try:
        with spinner("Running code analysis"):
            outcome = await service.analyze(file_path)
        root = outcome.target.monorepo_root if outcome.target else None
        return outcome, service.server_log(root)
    finally:
        # Servers started here must not outlive the command
        await service.stop()


@click.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--server-log", is_flag=True, help="Print the reanalyze-server log afterwards")
@click.pass_context
def check_command(ctx: click.Context, path: Path, as_json: bool, server_log: bool) -> None:
    """Run reanalyze for the project containing PATH and print its diagnostics.

    PATH is a .res/.resi file or a project directory.
    """
    config = load_cli_config(path)
    configure_cli_logging(ctx, config)

    service = AnalysisService(config)
    outcome, log = asyncio.run(_run_check(service, trigger_file(path)))

    print_outcome(outcome, service, as_json=as_json)
    if server_log:
        print_server_log(log)

    if not outcome.success:
        ctx.exit(1)
