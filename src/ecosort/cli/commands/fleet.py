# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Fleet-wide query commands: overview and recent.
"""

import click

from ...analytics.queries import QueryError
from ..utils.config import CLIState
from ..formatters import get_formatter


@click.command()
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
def overview(state: CLIState, from_: str, to: str, format: str):
    """
    Show fleet totals, per-robot rollups and latest snapshots.

    Examples:
        ecosort overview
        ecosort overview --from 2025-01-01T00:00:00Z --to 2025-01-02T00:00:00Z
    """
    formatter = get_formatter(format or state.default_format, state.no_color)

    try:
        result = state.context.queries.overview(from_, to)
    except QueryError as e:
        formatter.format_error(str(e))
        raise click.Abort()

    formatter.format_overview(result)


@click.command()
@click.option(
    "--limit", "-n",
    type=int,
    help="Number of records to show"
)
@click.option(
    "--format", "-f",
    type=click.Choice(["table", "json"]),
    help="Output format"
)
@click.pass_obj
def recent(state: CLIState, limit: int, format: str):
    """
    List the newest raw telemetry records across all robots.

    Examples:
        ecosort recent
        ecosort recent -n 50
    """
    formatter = get_formatter(format or state.default_format, state.no_color)

    if limit is not None and limit <= 0:
        formatter.format_error("limit must be positive")
        raise click.Abort()

    records = state.context.queries.recent_telemetry(limit)
    formatter.format_records(records, title="Recent Telemetry")
