# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Base formatter class for output formatting.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List
from rich.console import Console

console = Console()


class BaseFormatter(ABC):
    """Abstract base class for output formatters."""

    @abstractmethod
    def format_overview(self, overview: Dict[str, Any]):
        """Format a fleet overview for output."""
        pass

    @abstractmethod
    def format_series(self, series: Dict[str, Any]):
        """Format a per-minute robot series for output."""
        pass

    @abstractmethod
    def format_records(self, records: List[Dict[str, Any]], title: str = "Telemetry"):
        """Format raw telemetry records for output."""
        pass

    @abstractmethod
    def format_health(self, health: Dict[str, bool]):
        """Format dependency health for output."""
        pass

    @abstractmethod
    def format_error(self, error: str):
        """Format error message for output."""
        pass

    def format_success(self, message: str):
        """Format success message for output."""
        console.print(f"[green]✓[/green] {message}")

    def format_warning(self, message: str):
        """Format warning message for output."""
        console.print(f"[yellow]⚠[/yellow] {message}")

    def format_info(self, message: str):
        """Format info message for output."""
        console.print(f"[blue]ℹ[/blue] {message}")

    def _format_number(self, value: float, decimals: int = 0) -> str:
        """Format a number with optional decimal places."""
        if value is None:
            return "-"
        if decimals == 0:
            return f"{int(value):,}"
        else:
            return f"{value:,.{decimals}f}"

    def _format_battery(self, value: int) -> str:
        """Color a battery percentage by level."""
        if value is None:
            return "-"
        if value < 20:
            color = "red"
        elif value < 50:
            color = "yellow"
        else:
            color = "green"
        return f"[{color}]{value}%[/{color}]"
