# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
SQLite client with connection-per-operation access.

Each `get_connection()` opens its own connection, so callers on different
threads never share one. WAL mode lets readers run alongside the writer.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

logger = logging.getLogger(__name__)


class SQLiteClient:
    """Thin wrapper around sqlite3 for the raw telemetry database."""

    def __init__(self, db_path: str, timeout: float = 10.0):
        """
        Initialize SQLite client.

        Args:
            db_path: Path to the database file
            timeout: Seconds to wait on a locked database
        """
        self.db_path = Path(db_path).expanduser()
        self.timeout = timeout

    def initialize_database(self) -> None:
        """Create the parent directory and apply database PRAGMAs."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self.get_connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
        logger.info(f"SQLite database ready: {self.db_path}")

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """
        Open a connection, commit on success, roll back on error.

        Yields:
            sqlite3.Connection
        """
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        """Execute a single statement in its own transaction."""
        with self.get_connection() as conn:
            conn.execute(sql, params)

    def exists(self) -> bool:
        """Check whether the database file exists."""
        return self.db_path.exists()
