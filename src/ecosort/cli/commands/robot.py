# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Single-robot commands: series, robot status and command publishing.
"""

import json

import click
import redis
from rich.console import Console

from ...analytics.queries import QueryError
from ...shared.topics import is_valid_robot_id
from ..utils.config import CLIState
from ..formatters import get_formatter

console = Console()


@click.command()
@click.argument("robot_id")
@click.option(
    "--from", "from_",
    help="Window start (ISO-8601, default: 24h before --to)"
)
@click.option(
    "--to",
    help="Window end (ISO-8601, default: now)"
)
@click.option(
    "--format", "-f",
    type=click.Choice(["table", "json"]),
    help="Output format"
)
@click.pass_obj
def series(state: CLIState, robot_id: str, from_: str, to: str, format: str):
    """
    Show the per-minute series of one robot.

    Examples:
        ecosort series r1
        ecosort series r1 --from 2025-01-01T00:00:00Z
    """
    formatter = get_formatter(format or state.default_format, state.no_color)

    try:
        result = state.context.queries.robot_series(robot_id, from_, to)
    except QueryError as e:
        formatter.format_error(str(e))
        raise click.Abort()

    formatter.format_series(result)


@click.command()
@click.argument("robot_id")
@click.option(
    "--format", "-f",
    type=click.Choice(["table", "json"]),
    help="Output format"
)
@click.pass_obj
def robot(state: CLIState, robot_id: str, format: str):
    """Show the latest raw record of one robot."""
    formatter = get_formatter(format or state.default_format, state.no_color)

    status = state.context.queries.robot_status(robot_id)
    if status is None:
        formatter.format_error(f"No telemetry for robot {robot_id}")
        raise click.Abort()

    formatter.format_records([status], title=f"Robot {robot_id}")


@click.command()
@click.argument("robot_id")
@click.argument("payload")
@click.pass_obj
def command(state: CLIState, robot_id: str, payload: str):
    """
    Send a JSON command to one robot.

    Delivery is best-effort: the command is always accepted, and a warning
    is shown when the broker could not take it.

    Examples:
        ecosort command r1 '{"action": "pause"}'
    """
    formatter = get_formatter(state.default_format, state.no_color)

    if not is_valid_robot_id(robot_id):
        formatter.format_error(f"Invalid robot id: {robot_id!r}")
        raise click.Abort()

    try:
        body = json.loads(payload)
    except json.JSONDecodeError as e:
        formatter.format_error(f"Command is not valid JSON: {e}")
        raise click.Abort()

    context = state.context
    try:
        context.channel.connect()
    except redis.RedisError as e:
        console.print(f"[dim]Broker unreachable: {e}[/dim]")

    sent = context.publisher.publish(robot_id, body)
    formatter.format_success(f"Command accepted for {robot_id}")
    if not sent:
        formatter.format_warning("Command was not delivered to the broker")
