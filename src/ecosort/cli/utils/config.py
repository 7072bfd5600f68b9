# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Per-invocation CLI state.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ...context import TelemetryContext
from ...shared.config import Config


@dataclass
class CLIState:
    """CLI settings plus the lazily built telemetry context."""

    config_dir: Optional[Path] = None
    default_format: str = "table"
    no_color: bool = False
    debug: bool = False

    _config: Optional[Config] = field(default=None, repr=False)
    _context: Optional[TelemetryContext] = field(default=None, repr=False)

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = Config(self.config_dir)
        return self._config

    @property
    def context(self) -> TelemetryContext:
        """Open the stores on first use."""
        if self._context is None:
            self._context = TelemetryContext.from_config(self.config)
        return self._context

    def close(self) -> None:
        if self._context is not None:
            self._context.close()
            self._context = None
