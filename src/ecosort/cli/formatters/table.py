# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Table formatter using Rich for terminal output.
"""

import json
from typing import Any, Dict, List

from rich.table import Table
from rich.panel import Panel
from rich.console import Console

from .base import BaseFormatter

console = Console()


class TableFormatter(BaseFormatter):
    """Format output as tables using Rich."""

    def format_overview(self, overview: Dict[str, Any]):
        """Format fleet overview as a summary panel plus tables."""
        window = overview.get("window", {})
        summary = Panel(
            f"[bold cyan]Fleet Overview[/bold cyan]\n"
            f"Window: {window.get('from', '-')} → {window.get('to', '-')}\n"
            f"Items sorted: {self._format_number(overview.get('total_items_sorted', 0))}\n"
            f"Average battery: {self._format_battery(overview.get('avg_battery_overall', 0))}",
            title="Overview",
            border_style="blue"
        )
        console.print(summary)

        per_robot = overview.get("per_robot", [])
        if not per_robot:
            console.print("[yellow]No rollup data in this window[/yellow]")
        else:
            table = Table(title="Per Robot", show_header=True, header_style="bold magenta")
            table.add_column("Robot", style="cyan", no_wrap=True)
            table.add_column("Items Sorted", justify="right")
            table.add_column("Avg Battery", justify="right")
            for robot in per_robot:
                table.add_row(
                    robot.get("robot_id", "unknown"),
                    self._format_number(robot.get("items_sorted", 0)),
                    self._format_battery(robot.get("avg_battery")),
                )
            console.print(table)

        latest = overview.get("latest", [])
        if latest:
            self.format_records(latest, title="Latest Snapshots")

    def format_series(self, series: Dict[str, Any]):
        """Format a robot's per-minute series."""
        robot_id = series.get("robot_id", "unknown")
        window = series.get("window", {})
        summary = series.get("summary", {})
        points = series.get("points", [])

        header = Panel(
            f"[bold cyan]{robot_id}[/bold cyan]\n"
            f"Window: {window.get('from', '-')} → {window.get('to', '-')}\n"
            f"Items sorted: {self._format_number(summary.get('items_sorted', 0))}\n"
            f"Average battery: {self._format_battery(summary.get('avg_battery', 0))}",
            title="Robot Series",
            border_style="blue"
        )
        console.print(header)

        if not points:
            console.print("[yellow]No rollup data in this window[/yellow]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Minute", style="dim", no_wrap=True)
        table.add_column("Battery", justify="right")
        table.add_column("Sorted Count", justify="right")
        table.add_column("Items/min", justify="right")
        for point in points:
            table.add_row(
                point.get("ts", ""),
                self._format_battery(point.get("battery")),
                self._format_number(point.get("sorted_count")),
                self._format_number(point.get("items_per_minute")),
            )
        console.print(table)

    def format_records(self, records: List[Dict[str, Any]], title: str = "Telemetry"):
        """Format raw telemetry records."""
        if not records:
            console.print("[yellow]No telemetry found[/yellow]")
            return

        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("Robot", style="cyan", no_wrap=True)
        table.add_column("Time", style="dim")
        table.add_column("Battery", justify="right")
        table.add_column("Bins")
        for record in records:
            bins = record.get("bin_status") or {}
            table.add_row(
                record.get("robot_id", "unknown"),
                record.get("ts", ""),
                self._format_battery(record.get("battery")),
                json.dumps(bins, default=str) if bins else "-",
            )
        console.print(table)

    def format_health(self, health: Dict[str, bool]):
        """Format dependency checks."""
        table = Table(title="System Health", show_header=True, header_style="bold magenta")
        table.add_column("Component", style="cyan")
        table.add_column("Status", justify="center")
        for name, ok in health.items():
            status = "[green]✓ reachable[/green]" if ok else "[red]✗ unreachable[/red]"
            table.add_row(name.replace("_", " ").title(), status)
        console.print(table)

    def format_error(self, error: str):
        """Format error message."""
        console.print(f"[bold red]Error:[/bold red] {error}")
