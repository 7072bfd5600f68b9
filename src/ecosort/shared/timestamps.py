# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Timestamp helpers shared by ingestion and queries.

All timestamps are handled as timezone-aware UTC datetimes inside the
pipeline. Stores receive either canonical ISO strings (SQLite) or naive UTC
datetimes (DuckDB TIMESTAMP columns).
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

# Device timestamps must at least look like "YYYY-MM-DDT..."
ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}T")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into an aware UTC datetime.

    Naive values are taken to be UTC. Returns None when the value
    cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_device_timestamp(value: Any) -> Optional[datetime]:
    """Parse a device-reported `ts`, requiring a full date-time shape."""
    if not isinstance(value, str) or not ISO_PREFIX.match(value):
        return None
    return parse_timestamp(value)


def format_timestamp(value: datetime) -> str:
    """Format as `YYYY-MM-DDTHH:MM:SS.mmmZ` (fixed width, sorts as text)."""
    value = to_utc(value)
    return value.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def to_utc(value: datetime) -> datetime:
    """Attach or convert to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_naive_utc(value: datetime) -> datetime:
    """UTC wall-clock time without tzinfo, as stored in DuckDB."""
    return to_utc(value).replace(tzinfo=None)


def truncate_to_minute(value: datetime) -> datetime:
    """Start of the minute bucket containing `value`."""
    return to_utc(value).replace(second=0, microsecond=0)
