"""rea status command - show how a path resolves, without running anything."""

import json
from pathlib import Path
from typing import Any

import click

from reanalyst.cli.utils import load_cli_config, trigger_file
from reanalyst.core.errors import WorkspaceError
from reanalyst.service import AnalysisService
from reanalyst.workspace.binaries import rescript_version, supports_reanalyze_server


def _collect(service: AnalysisService, path: Path) -> dict[str, Any]:
    try:
        target = service.resolve(trigger_file(path))
    except WorkspaceError as e:
        return {"path": str(path), "resolved": False, "error": e.to_dict()}

    config = service.config.server
    version = rescript_version(target.monorepo_root)
    socket_path = service.registry.socket_path(target.monorepo_root)
    return {
        "path": str(path),
        "resolved": True,
        "project_root": str(target.project_root),
        "binary": str(target.binary_path),
        "monorepo_root": str(target.monorepo_root),
        "rescript_version": str(version) if version else None,
        "server_supported": supports_reanalyze_server(
            target.monorepo_root, config.min_server_version
        ),
        "server_enabled": config.enabled,
        "socket": str(socket_path),
        "socket_present": socket_path.exists(),
    }


@click.command()
@click.argument("path", default=".", type=click.Path(exists=True, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status_command(path: Path, as_json: bool) -> None:
    """Show project root, binary and server state for PATH.

    PATH is a file or project directory (default: current directory).
    """
    service = AnalysisService(load_cli_config(path))
    info = _collect(service, path)

    if as_json:
        click.echo(json.dumps(info, indent=2))
        return

    if not info["resolved"]:
        raise click.ClickException(info["error"]["message"])

    click.echo(f"Project root: {info['project_root']}")
    click.echo(f"Monorepo root: {info['monorepo_root']}")
    click.echo(f"Binary: {info['binary']}")
    click.echo(f"ReScript: {info['rescript_version'] or 'unknown'}")
    if not info["server_enabled"]:
        server = "disabled by config"
    elif info["server_supported"]:
        server = "supported"
    else:
        server = "not supported (one-shot analysis)"
    click.echo(f"Server: {server}")
    socket_state = "present" if info["socket_present"] else "absent"
    click.echo(f"Socket: {info['socket']} ({socket_state})")
