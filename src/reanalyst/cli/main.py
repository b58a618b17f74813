"""reanalyst CLI - rea command."""

import click

from reanalyst.cli.check import check_command
from reanalyst.cli.fix import fix_command
from reanalyst.cli.status import status_command
from reanalyst.cli.watch import watch_command
from reanalyst.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="rea")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """reanalyst - ReScript dead code and exception analysis from the terminal."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(check_command, name="check")
cli.add_command(watch_command, name="watch")
cli.add_command(status_command, name="status")
cli.add_command(fix_command, name="fix")


if __name__ == "__main__":
    cli()
