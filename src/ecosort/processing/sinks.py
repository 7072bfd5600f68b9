# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Sink interface for normalized telemetry.

The raw log and the minute rollup are separate sinks with separate failure
domains. Nothing coordinates them: one may accept a record the other lost.
"""

from abc import ABC, abstractmethod

from .normalizer import RawTelemetryRecord


class TelemetrySink(ABC):
    """A store that accepts normalized telemetry records."""

    name: str = "sink"

    @abstractmethod
    def write(self, record: RawTelemetryRecord) -> None:
        """
        Persist one record.

        Raises on failure; the caller decides what a failure means.
        """
        pass

    @abstractmethod
    def ping(self) -> bool:
        """Return True if the store is reachable."""
        pass
