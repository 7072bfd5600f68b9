# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Serve and doctor commands.
"""

import asyncio
import sys

import click
from rich.console import Console
from rich.panel import Panel

from ...processing.server import serve as serve_forever
from ...shared.config import ConfigurationError
from ..utils.config import CLIState
from ..formatters import get_formatter

console = Console()


@click.command()
@click.pass_obj
def serve(state: CLIState):
    """Run the ingestion server until interrupted."""
    config = state.config
    if state.debug:
        config.set("logging.level", "DEBUG")

    try:
        asyncio.run(serve_forever(config))
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        console.print("\n[yellow]Server interrupted[/yellow]")


@click.command()
@click.option(
    "--format", "-f",
    type=click.Choice(["table", "json"]),
    help="Output format"
)
@click.pass_obj
def doctor(state: CLIState, format: str):
    """Check configuration, broker and store reachability."""
    output_format = format or state.default_format
    formatter = get_formatter(output_format, state.no_color)

    if output_format == "table":
        console.print(Panel("[bold cyan]EcoSort Diagnostics[/bold cyan]", border_style="blue"))
        console.print(f"Config file: {state.config.config_path}")

    try:
        health = state.context.health()
    except ConfigurationError as e:
        formatter.format_error(f"Configuration error: {e}")
        sys.exit(1)

    formatter.format_health(health)
    if not all(health.values()):
        sys.exit(1)
