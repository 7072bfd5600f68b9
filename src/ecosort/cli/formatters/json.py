# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
JSON formatter for structured output.
"""

import json
from typing import Any, Dict, List
from rich.console import Console
from rich.syntax import Syntax

from .base import BaseFormatter

console = Console()


class JSONFormatter(BaseFormatter):
    """Format output as JSON for scripting and automation."""

    def __init__(self, pretty: bool = True, colored: bool = True):
        """Initialize JSON formatter.

        Args:
            pretty: Whether to pretty-print JSON
            colored: Whether to use syntax highlighting
        """
        self.pretty = pretty
        self.colored = colored

    def format_overview(self, overview: Dict[str, Any]):
        """Format overview as JSON."""
        self._print_json(overview)

    def format_series(self, series: Dict[str, Any]):
        """Format robot series as JSON."""
        self._print_json(series)

    def format_records(self, records: List[Dict[str, Any]], title: str = "Telemetry"):
        """Format telemetry records as JSON."""
        output = {
            "records": records,
            "count": len(records)
        }
        self._print_json(output)

    def format_health(self, health: Dict[str, bool]):
        """Format health checks as JSON."""
        output = {
            "checks": health,
            "healthy": all(health.values())
        }
        self._print_json(output)

    def format_error(self, error: str):
        """Format error message as JSON."""
        output = {
            "error": error,
            "success": False
        }
        self._print_json(output)

    def format_success(self, message: str):
        self._print_json({"message": message, "success": True})

    def format_warning(self, message: str):
        self._print_json({"warning": message})

    def _print_json(self, data: Any):
        """Print JSON with optional formatting and coloring."""
        if self.pretty:
            json_str = json.dumps(data, indent=2, sort_keys=False, default=str)
        else:
            json_str = json.dumps(data, default=str)

        if self.colored:
            syntax = Syntax(json_str, "json", theme="monokai")
            console.print(syntax)
        else:
            print(json_str)
