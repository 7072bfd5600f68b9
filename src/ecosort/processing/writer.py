# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Dual-store writer.

Writes each normalized record to the raw log, then to the minute rollup.
The writes are independent: a failure on one side is logged and the other
side is still attempted. Nothing is retried or rolled back, so a store
outage loses that side's copy of the record.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from .normalizer import RawTelemetryRecord, TelemetryNormalizer
from .sinks import TelemetrySink

logger = logging.getLogger(__name__)


@dataclass
class WriteOutcome:
    """Per-sink result of writing one record."""
    record: RawTelemetryRecord
    results: Dict[str, bool] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        """True if every sink accepted the record."""
        return bool(self.results) and all(self.results.values())

    @property
    def failed_sinks(self):
        return [name for name, ok in self.results.items() if not ok]


class DualStoreWriter:
    """
    Writes records to the raw sink and the rollup sink in sequence.

    Holds no mutable state; concurrent calls only share the sinks.
    """

    def __init__(self, raw_sink: TelemetrySink, rollup_sink: TelemetrySink):
        """
        Initialize writer.

        Args:
            raw_sink: Append-only raw log
            rollup_sink: Minute rollup table
        """
        self.raw_sink = raw_sink
        self.rollup_sink = rollup_sink

    def write(self, record: RawTelemetryRecord) -> WriteOutcome:
        """
        Write one record to both sinks.

        Args:
            record: Normalized record

        Returns:
            WriteOutcome naming which sinks accepted the record
        """
        outcome = WriteOutcome(record=record)
        for sink in (self.raw_sink, self.rollup_sink):
            try:
                sink.write(record)
                outcome.results[sink.name] = True
            except Exception as e:
                logger.error(
                    f"Failed to write telemetry for {record.robot_id} to {sink.name} store: {e}",
                    exc_info=True,
                )
                outcome.results[sink.name] = False

        if not outcome.complete:
            logger.warning(
                f"Telemetry for {record.robot_id} at {record.event_time.isoformat()} "
                f"missing from: {', '.join(outcome.failed_sinks)}"
            )
        return outcome


class IngestionPipeline:
    """Normalize then write; the per-message unit of work."""

    def __init__(self, normalizer: TelemetryNormalizer, writer: DualStoreWriter):
        self.normalizer = normalizer
        self.writer = writer

    def handle(self, topic: str, payload: Union[bytes, str]) -> Optional[WriteOutcome]:
        """
        Process one channel message.

        Returns:
            WriteOutcome, or None if the message was discarded
        """
        record = self.normalizer.normalize(topic, payload)
        if record is None:
            return None
        return self.writer.write(record)

    __call__ = handle
