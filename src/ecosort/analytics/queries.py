# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Windowed analytics over the rollup and raw stores.

Both stores are read independently of ingestion, so a window may reflect a
bucket mid-update or a record present in only one store.

Counter resets: items_sorted is max - min of the bucket counters, so a
reboot inside the window can overstate it but never make it negative.
Per-minute deltas clamp at zero.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from ..processing.database.raw_store import RawTelemetryStore
from ..shared.timestamps import format_timestamp, parse_timestamp, utcnow
from ..shared.topics import is_valid_robot_id
from .rollup_store import RollupStore

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_HOURS = 24

TimeInput = Optional[Union[str, datetime]]


class QueryError(ValueError):
    """Raised for unusable query input (bad window, missing robot id)."""
    pass


def round_half_up(value: float) -> int:
    """Round to the nearest int, halves away from zero."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class QueryWindow:
    """Inclusive time range [start, end] in UTC."""
    start: datetime
    end: datetime

    @classmethod
    def parse(
        cls,
        from_value: TimeInput = None,
        to_value: TimeInput = None,
        now: Optional[datetime] = None,
        default_hours: float = DEFAULT_WINDOW_HOURS,
    ) -> "QueryWindow":
        """
        Build a window from optional ISO-8601 bounds.

        `to` defaults to now and `from` to `default_hours` before `to`.
        Empty strings count as omitted.

        Raises:
            QueryError: If a bound does not parse or from is after to
        """
        end = cls._parse_bound("to", to_value)
        if end is None:
            end = parse_timestamp(now) if now is not None else utcnow()

        start = cls._parse_bound("from", from_value)
        if start is None:
            start = end - timedelta(hours=default_hours)

        if start > end:
            raise QueryError(
                f"Invalid window: 'from' ({format_timestamp(start)}) "
                f"is after 'to' ({format_timestamp(end)})."
            )
        return cls(start=start, end=end)

    @staticmethod
    def _parse_bound(name: str, value: TimeInput) -> Optional[datetime]:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        parsed = parse_timestamp(value)
        if parsed is None:
            raise QueryError(
                f"Invalid '{name}' timestamp {value!r}. Use ISO-8601, e.g. 2024-01-01T00:00:00Z."
            )
        return parsed

    def to_dict(self) -> Dict[str, str]:
        return {'from': format_timestamp(self.start), 'to': format_timestamp(self.end)}


class WindowedQueryEngine:
    """
    Read-only analytics queries.

    - overview(): fleet totals, per-robot figures and live snapshots
    - robot_series(): per-minute series for one robot
    - recent_telemetry() / robot_status(): raw-log lookups
    """

    def __init__(
        self,
        rollup_store: RollupStore,
        raw_store: RawTelemetryStore,
        default_window_hours: float = DEFAULT_WINDOW_HOURS,
        recent_limit: int = 20,
    ):
        """
        Initialize query engine.

        Args:
            rollup_store: Minute rollup store
            raw_store: Raw telemetry log
            default_window_hours: Window length when `from` is omitted
            recent_limit: Default size of recent_telemetry()
        """
        self.rollup_store = rollup_store
        self.raw_store = raw_store
        self.default_window_hours = default_window_hours
        self.recent_limit = recent_limit

    def window(self, from_value: TimeInput = None, to_value: TimeInput = None) -> QueryWindow:
        return QueryWindow.parse(from_value, to_value, default_hours=self.default_window_hours)

    def overview(self, from_value: TimeInput = None, to_value: TimeInput = None) -> Dict[str, Any]:
        """
        Fleet overview for a window.

        Args:
            from_value: Window start (default: `to` minus the default window)
            to_value: Window end (default: now)

        Returns:
            Dict with window, total_items_sorted, avg_battery_overall,
            per_robot and latest

        Raises:
            QueryError: If the window is invalid (no store is read)
        """
        window = self.window(from_value, to_value)

        per_robot = [
            {
                'robot_id': row['robot_id'],
                'items_sorted': row['items_sorted'],
                'avg_battery': round_half_up(row['avg_battery']),
            }
            for row in self.rollup_store.summarize_window(window.start, window.end)
        ]

        total_items_sorted = sum(robot['items_sorted'] for robot in per_robot)
        if per_robot:
            avg_battery_overall = round_half_up(
                sum(robot['avg_battery'] for robot in per_robot) / len(per_robot)
            )
        else:
            avg_battery_overall = 0

        latest = self.raw_store.latest_per_robot(window.start, window.end)

        logger.debug(f"Overview {window.to_dict()}: {len(per_robot)} robots, {len(latest)} snapshots")
        return {
            'window': window.to_dict(),
            'total_items_sorted': total_items_sorted,
            'avg_battery_overall': avg_battery_overall,
            'per_robot': per_robot,
            'latest': latest,
        }

    def robot_series(
        self,
        robot_id: str,
        from_value: TimeInput = None,
        to_value: TimeInput = None,
    ) -> Dict[str, Any]:
        """
        Per-minute series for one robot.

        Each point carries items_per_minute, the counter increase since the
        previous point clamped at 0 (None for the first point).

        Raises:
            QueryError: If robot_id is missing or the window is invalid
        """
        if not is_valid_robot_id(robot_id):
            raise QueryError("Missing or invalid robot id.")
        window = self.window(from_value, to_value)

        rows = self.rollup_store.rows_in_window(window.start, window.end, robot_id=robot_id)

        points: List[Dict[str, Any]] = []
        previous: Optional[int] = None
        for row in rows:
            sorted_count = row['last_sorted_count']
            items_per_minute = None
            if previous is not None and sorted_count is not None:
                items_per_minute = max(0, sorted_count - previous)
            points.append({
                'ts': format_timestamp(row['bucket_ts']),
                'battery': row['last_battery'],
                'sorted_count': sorted_count,
                'items_per_minute': items_per_minute,
            })
            previous = sorted_count

        if rows:
            counts = [row['last_sorted_count'] for row in rows]
            batteries = [row['last_battery'] for row in rows]
            summary = {
                'items_sorted': max(counts) - min(counts),
                'avg_battery': round_half_up(sum(batteries) / len(batteries)),
            }
        else:
            summary = {'items_sorted': 0, 'avg_battery': 0}

        return {
            'robot_id': robot_id,
            'window': window.to_dict(),
            'summary': summary,
            'points': points,
        }

    def recent_telemetry(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Newest raw records across all robots."""
        if limit is None:
            limit = self.recent_limit
        if limit < 0:
            raise QueryError("limit must not be negative.")
        return self.raw_store.recent(limit)

    def robot_status(self, robot_id: str) -> Optional[Dict[str, Any]]:
        """Latest raw record of one robot, or None if it never reported."""
        if not is_valid_robot_id(robot_id):
            raise QueryError("Missing or invalid robot id.")
        return self.raw_store.latest_for_robot(robot_id)
