# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Minute rollup store in DuckDB.

Keeps one row per (robot_id, bucket_ts) holding the last counters seen in
that minute. Every write overwrites the counters of its bucket; buckets
never affect each other.

DuckDB allows a single process to hold the database file, so every
operation opens its own connection and closes it afterwards. Within a
process, operations are serialized by one lock; across processes, a
locked file is retried until `lock_timeout` runs out.

Schema:
- robot_stats_minute: per-robot per-minute last-known counters
"""

import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import duckdb

from ..processing.normalizer import RawTelemetryRecord
from ..processing.sinks import TelemetrySink
from ..shared.timestamps import to_naive_utc, to_utc, truncate_to_minute

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 5.0
LOCK_RETRY_INTERVAL = 0.05


class StoreNotConnectedError(RuntimeError):
    """Raised when the rollup store is used before connect()."""
    pass


class RollupStore(TelemetrySink):
    """
    DuckDB-backed minute rollups.

    connect() creates the schema and marks the store ready. Each operation
    then runs on a short-lived connection under the store lock, so
    ingestion threads never upsert in parallel and other processes can
    read the file between operations.
    """

    name = "rollup"

    def __init__(
        self,
        database_path: Optional[Path] = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ):
        """
        Initialize rollup store.

        Args:
            database_path: Path to DuckDB database file
                          (default: ~/.ecosort/rollups.duckdb)
            lock_timeout: Seconds to keep retrying a file locked by
                          another process
        """
        if database_path is None:
            database_path = Path.home() / ".ecosort" / "rollups.duckdb"

        self.database_path = Path(database_path).expanduser()
        self.lock_timeout = lock_timeout
        self._lock = threading.Lock()
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        """Create the database file and schema; idempotent."""
        if self._connected:
            return

        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Opening DuckDB: {self.database_path}")
        self._connected = True
        try:
            self._create_schema()
        except Exception:
            self._connected = False
            raise
        logger.info("DuckDB schema initialized")

    def _create_schema(self) -> None:
        """Create the rollup table."""
        with self._cursor() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS robot_stats_minute (
                    robot_id VARCHAR NOT NULL,
                    bucket_ts TIMESTAMP NOT NULL,
                    last_battery INTEGER NOT NULL,
                    last_sorted_count BIGINT NOT NULL,
                    last_low_confidence BIGINT NOT NULL,
                    updated_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (robot_id, bucket_ts)
                )
            """)
        logger.info("DuckDB rollup schema created/verified")

    def _open(self) -> duckdb.DuckDBPyConnection:
        """Open a connection, waiting out another process's file lock."""
        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                return duckdb.connect(str(self.database_path))
            except duckdb.IOException as e:
                if time.monotonic() >= deadline:
                    raise
                logger.debug(f"DuckDB file busy, retrying: {e}")
                time.sleep(LOCK_RETRY_INTERVAL)

    @contextmanager
    def _cursor(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Run one operation on its own connection under the store lock."""
        if not self._connected:
            raise StoreNotConnectedError("Not connected to DuckDB")
        with self._lock:
            conn = self._open()
            try:
                yield conn
            finally:
                conn.close()

    def write(self, record: RawTelemetryRecord) -> None:
        self.upsert_bucket(
            robot_id=record.robot_id,
            bucket_ts=record.bucket_ts,
            battery=record.battery,
            sorted_count=record.sorted_count,
            low_confidence=record.low_confidence,
            updated_at=record.ingested_at,
        )

    def upsert_bucket(
        self,
        robot_id: str,
        bucket_ts: datetime,
        battery: int,
        sorted_count: int,
        low_confidence: int,
        updated_at: Optional[datetime] = None,
    ) -> None:
        """
        Insert or overwrite the counters of one minute bucket.

        Args:
            robot_id: Robot identifier
            bucket_ts: Any time inside the minute (truncated here)
            battery: Battery level to store as last_battery
            sorted_count: Counter to store as last_sorted_count
            low_confidence: Counter to store as last_low_confidence
            updated_at: Write time (default: bucket_ts)
        """
        bucket = to_naive_utc(truncate_to_minute(bucket_ts))
        written = to_naive_utc(updated_at) if updated_at else bucket
        with self._cursor() as conn:
            conn.execute("""
                INSERT INTO robot_stats_minute
                    (robot_id, bucket_ts, last_battery, last_sorted_count, last_low_confidence, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (robot_id, bucket_ts) DO UPDATE SET
                    last_battery = EXCLUDED.last_battery,
                    last_sorted_count = EXCLUDED.last_sorted_count,
                    last_low_confidence = EXCLUDED.last_low_confidence,
                    updated_at = EXCLUDED.updated_at
            """, (robot_id, bucket, battery, sorted_count, low_confidence, written))
        logger.debug(f"Rollup upserted: robot={robot_id} bucket={bucket.isoformat()}")

    def get_bucket(self, robot_id: str, bucket_ts: datetime) -> Optional[Dict[str, Any]]:
        """Get one bucket row, or None."""
        bucket = to_naive_utc(truncate_to_minute(bucket_ts))
        with self._cursor() as conn:
            row = conn.execute("""
                SELECT robot_id, bucket_ts, last_battery, last_sorted_count, last_low_confidence
                FROM robot_stats_minute
                WHERE robot_id = ? AND bucket_ts = ?
            """, (robot_id, bucket)).fetchone()
        if row is None:
            return None
        return self._row_to_dict(row)

    def rows_in_window(
        self,
        start: datetime,
        end: datetime,
        robot_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Get bucket rows with start <= bucket_ts <= end.

        Args:
            start: Window start (inclusive)
            end: Window end (inclusive)
            robot_id: Restrict to one robot

        Returns:
            Rows ordered by robot_id, then bucket_ts
        """
        query = """
            SELECT robot_id, bucket_ts, last_battery, last_sorted_count, last_low_confidence
            FROM robot_stats_minute
            WHERE bucket_ts BETWEEN ? AND ?
        """
        params: List[Any] = [to_naive_utc(start), to_naive_utc(end)]
        if robot_id is not None:
            query += " AND robot_id = ?"
            params.append(robot_id)
        query += " ORDER BY robot_id ASC, bucket_ts ASC"

        with self._cursor() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_dict(row) for row in rows]

    def summarize_window(
        self,
        start: datetime,
        end: datetime,
        robot_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Per-robot counter spread and battery mean over a window.

        Returns:
            One dict per robot with rows in range, ordered by robot_id:
            robot_id, items_sorted (max - min of last_sorted_count),
            avg_battery (float mean of last_battery), buckets
        """
        query = """
            SELECT
                robot_id,
                MAX(last_sorted_count) - MIN(last_sorted_count) AS items_sorted,
                AVG(last_battery) AS avg_battery,
                COUNT(*) AS buckets
            FROM robot_stats_minute
            WHERE bucket_ts BETWEEN ? AND ?
        """
        params: List[Any] = [to_naive_utc(start), to_naive_utc(end)]
        if robot_id is not None:
            query += " AND robot_id = ?"
            params.append(robot_id)
        query += " GROUP BY robot_id ORDER BY robot_id ASC"

        with self._cursor() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            {
                'robot_id': row[0],
                'items_sorted': int(row[1]),
                'avg_battery': float(row[2]),
                'buckets': int(row[3]),
            }
            for row in rows
        ]

    def count(self) -> int:
        """Count bucket rows."""
        with self._cursor() as conn:
            return conn.execute("SELECT COUNT(*) FROM robot_stats_minute").fetchone()[0]

    def ping(self) -> bool:
        try:
            with self._cursor() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except (StoreNotConnectedError, duckdb.Error) as e:
            logger.warning(f"Rollup store unreachable: {e}")
            return False

    @staticmethod
    def _row_to_dict(row) -> Dict[str, Any]:
        return {
            'robot_id': row[0],
            'bucket_ts': to_utc(row[1]),
            'last_battery': row[2],
            'last_sorted_count': row[3],
            'last_low_confidence': row[4],
        }

    def close(self) -> None:
        """Mark the store closed; later operations raise StoreNotConnectedError."""
        if self._connected:
            with self._lock:
                self._connected = False
            logger.info("DuckDB rollup store closed")

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
