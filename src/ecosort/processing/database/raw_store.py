# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Raw telemetry log in SQLite.

Append-only: one row per inbound message, never updated or deleted here.
Timestamps are stored as fixed-width UTC strings so text comparison
matches time order.
"""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..normalizer import RawTelemetryRecord
from ..sinks import TelemetrySink
from ...shared.timestamps import format_timestamp
from .sqlite_client import SQLiteClient

logger = logging.getLogger(__name__)

RAW_TELEMETRY_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS robot_telemetry (
        sequence INTEGER PRIMARY KEY AUTOINCREMENT,
        robot_id TEXT NOT NULL,
        battery INTEGER NOT NULL,
        bin_status TEXT NOT NULL DEFAULT '{}',
        sorted_count INTEGER NOT NULL DEFAULT 0,
        low_confidence INTEGER NOT NULL DEFAULT 0,
        event_time TEXT NOT NULL,
        ingested_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_robot_telemetry_robot_time
        ON robot_telemetry (robot_id, event_time)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_robot_telemetry_event_time
        ON robot_telemetry (event_time)
    """,
]


class RawTelemetryStore(TelemetrySink):
    """
    Raw telemetry sink and snapshot reader.

    Writes:
    - write(): insert one RawTelemetryRecord (always an insert)

    Reads:
    - latest_per_robot(): newest record per robot inside a window
    - latest_for_robot(): newest record of one robot
    - recent(): newest records across all robots
    """

    name = "raw"

    def __init__(self, client: SQLiteClient):
        """
        Initialize raw store.

        Args:
            client: SQLiteClient for the telemetry database
        """
        self.client = client

    @property
    def db_path(self):
        return self.client.db_path

    def initialize(self) -> None:
        """Initialize the database and create the schema."""
        self.client.initialize_database()
        with self.client.get_connection() as conn:
            for statement in RAW_TELEMETRY_SCHEMA:
                conn.execute(statement)
        logger.info("Raw telemetry schema created/verified")

    def write(self, record: RawTelemetryRecord) -> None:
        self.insert(record)

    def insert(self, record: RawTelemetryRecord) -> int:
        """
        Append a record to the log.

        Args:
            record: Normalized record

        Returns:
            Sequence number of the new row
        """
        with self.client.get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO robot_telemetry
                    (robot_id, battery, bin_status, sorted_count, low_confidence, event_time, ingested_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.robot_id,
                    record.battery,
                    json.dumps(record.bin_status, separators=(',', ':'), default=str),
                    record.sorted_count,
                    record.low_confidence,
                    format_timestamp(record.event_time),
                    format_timestamp(record.ingested_at),
                ),
            )
            sequence = cursor.lastrowid
        logger.debug(f"Raw telemetry stored: robot={record.robot_id} sequence={sequence}")
        return sequence

    def latest_per_robot(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """
        Get the most recent record per robot with event_time in [start, end].

        Args:
            start: Window start (inclusive)
            end: Window end (inclusive)

        Returns:
            Snapshots ordered by robot_id, each with robot_id, battery,
            bin_status and ts
        """
        with self.client.get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT robot_id, battery, bin_status, event_time
                FROM (
                    SELECT
                        robot_id,
                        battery,
                        bin_status,
                        event_time,
                        ROW_NUMBER() OVER (
                            PARTITION BY robot_id
                            ORDER BY event_time DESC, sequence DESC
                        ) AS rn
                    FROM robot_telemetry
                    WHERE event_time BETWEEN ? AND ?
                )
                WHERE rn = 1
                ORDER BY robot_id ASC
                """,
                (format_timestamp(start), format_timestamp(end)),
            )
            return [self._snapshot(row) for row in cursor.fetchall()]

    def latest_for_robot(self, robot_id: str) -> Optional[Dict[str, Any]]:
        """Get the newest record for one robot, or None if it never reported."""
        with self.client.get_connection() as conn:
            row = conn.execute(
                """
                SELECT robot_id, battery, bin_status, event_time,
                       sorted_count, low_confidence, ingested_at
                FROM robot_telemetry
                WHERE robot_id = ?
                ORDER BY event_time DESC, sequence DESC
                LIMIT 1
                """,
                (robot_id,),
            ).fetchone()
        if row is None:
            return None
        return self._full(row)

    def recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Get the newest records across all robots.

        Args:
            limit: Maximum number of records

        Returns:
            Records ordered newest first
        """
        with self.client.get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT robot_id, battery, bin_status, event_time,
                       sorted_count, low_confidence, ingested_at
                FROM robot_telemetry
                ORDER BY event_time DESC, sequence DESC
                LIMIT ?
                """,
                (max(0, int(limit)),),
            )
            return [self._full(row) for row in cursor.fetchall()]

    def count(self, robot_id: Optional[str] = None) -> int:
        """Count stored records, optionally for one robot."""
        with self.client.get_connection() as conn:
            if robot_id is None:
                row = conn.execute("SELECT COUNT(*) FROM robot_telemetry").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM robot_telemetry WHERE robot_id = ?",
                    (robot_id,),
                ).fetchone()
        return row[0]

    def ping(self) -> bool:
        try:
            with self.client.get_connection() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error as e:
            logger.warning(f"Raw store unreachable: {e}")
            return False

    @staticmethod
    def _decode_bin_status(value: Optional[str]) -> Dict[str, Any]:
        if not value:
            return {}
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            return {}
        return decoded if isinstance(decoded, dict) else {}

    def _snapshot(self, row) -> Dict[str, Any]:
        return {
            'robot_id': row[0],
            'battery': row[1],
            'bin_status': self._decode_bin_status(row[2]),
            'ts': row[3],
        }

    def _full(self, row) -> Dict[str, Any]:
        snapshot = self._snapshot(row)
        snapshot.update({
            'sorted_count': row[4],
            'low_confidence': row[5],
            'ingested_at': row[6],
        })
        return snapshot
