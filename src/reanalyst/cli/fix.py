"""rea fix command - list or apply quick fixes at a position."""

import asyncio
import json
from pathlib import Path

import click

from reanalyst.cli.utils import configure_cli_logging, load_cli_config, print_outcome
from reanalyst.core.progress import spinner, status
from reanalyst.diagnostics.actions import apply_fix
from reanalyst.service import AnalysisOutcome, AnalysisService
from reanalyst.workspace.roots import normalize_path


async def _analyze_once(service: AnalysisService, file_path: Path) -> AnalysisOutcome:
    try:
        with spinner("Running code analysis"):
            return await service.analyze(file_path)
    finally:
        await service.stop()


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("line", type=click.IntRange(min=1))
@click.argument("column", type=click.IntRange(min=1))
@click.option(
    "--apply",
    "apply_index",
    type=click.IntRange(min=1),
    default=None,
    help="Apply the Nth listed fix to FILE",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def fix_command(
    ctx: click.Context,
    file: Path,
    line: int,
    column: int,
    apply_index: int | None,
    as_json: bool,
) -> None:
    """List quick fixes for the diagnostic under LINE:COLUMN in FILE (1-based)."""
    config = load_cli_config(file)
    configure_cli_logging(ctx, config)

    file_path = normalize_path(file)
    service = AnalysisService(config)
    outcome = asyncio.run(_analyze_once(service, file_path))
    if not outcome.success:
        print_outcome(outcome, service, as_json=as_json)
        ctx.exit(1)

    fixes = service.actions.at(str(file_path), line - 1, column - 1)

    if apply_index is None:
        if as_json:
            click.echo(
                json.dumps(
                    [
                        {"index": i, "title": fix.title, "kind": fix.kind}
                        for i, fix in enumerate(fixes, start=1)
                    ],
                    indent=2,
                )
            )
        elif not fixes:
            status(f"No quick fixes at {line}:{column}", style="info")
        else:
            for i, fix in enumerate(fixes, start=1):
                click.echo(f"{i}. {fix.title}")
        return

    if apply_index > len(fixes):
        raise click.ClickException(
            f"No fix #{apply_index} at {line}:{column} ({len(fixes)} available)"
        )

    fix = fixes[apply_index - 1]
    text = file_path.read_text(encoding="utf-8")
    file_path.write_text(apply_fix(text, fix.edit), encoding="utf-8")
    if fix.clears is not None:
        service.clear_diagnostic(fix.clears)

    if as_json:
        click.echo(json.dumps({"applied": fix.title, "file": str(file_path)}))
    else:
        status(f"Applied '{fix.title}' to {file_path.name}", style="success")
