# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Main CLI entry point for EcoSort telemetry.
"""

import logging
import os
import sys
from pathlib import Path

import click
from rich.console import Console

from . import __version__
from .commands import fleet, robot, serve
from .utils.config import CLIState

console = Console()


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit"
)
@click.option(
    "--config-dir",
    envvar="ECOSORT_CONFIG_DIR",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding config.yaml"
)
@click.option(
    "--format",
    envvar="ECOSORT_FORMAT",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Default output format"
)
@click.option(
    "--debug",
    envvar="ECOSORT_DEBUG",
    is_flag=True,
    help="Enable debug mode"
)
@click.option(
    "--no-color",
    envvar="NO_COLOR",
    is_flag=True,
    help="Disable colored output"
)
@click.pass_context
def cli(ctx, version: bool, config_dir: Path, format: str, debug: bool, no_color: bool):
    """
    EcoSort Telemetry CLI - fleet analytics and robot commands.

    Examples:
        ecosort serve
        ecosort overview --from 2025-01-01T00:00:00Z
        ecosort series r1
        ecosort command r1 '{"action": "pause"}'
    """
    if version:
        click.echo(f"EcoSort CLI version {__version__}")
        ctx.exit()

    if debug:
        logging.basicConfig(level=logging.DEBUG)

    state = CLIState(
        config_dir=config_dir,
        default_format=format,
        no_color=no_color,
        debug=debug
    )
    ctx.obj = state
    ctx.call_on_close(state.close)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(serve.serve)
cli.add_command(serve.doctor)
cli.add_command(fleet.overview)
cli.add_command(fleet.recent)
cli.add_command(robot.series)
cli.add_command(robot.robot)
cli.add_command(robot.command)


def main():
    """Main entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        if os.environ.get("ECOSORT_DEBUG"):
            console.print_exception()
        else:
            console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
