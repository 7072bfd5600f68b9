# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Telemetry normalization.

Decodes raw channel payloads through a strict schema into a canonical
RawTelemetryRecord, or decides to discard them. Discards are logged and
never raised.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..shared.timestamps import (
    format_timestamp,
    parse_device_timestamp,
    truncate_to_minute,
    utcnow,
)
from ..shared.topics import DEFAULT_NAMESPACE, is_valid_robot_id, parse_telemetry_topic

logger = logging.getLogger(__name__)

BATTERY_MIN = 0
BATTERY_MAX = 100

# Counters are stored as 64-bit integers in both stores
COUNTER_MIN = -(2 ** 63)
COUNTER_MAX = 2 ** 63 - 1

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def coerce_int(value: Any, default: int = 0) -> int:
    """
    Coerce a loosely-typed device value to int.

    Ints pass through, floats truncate toward zero, strings yield their
    leading integer ("42abc" -> 42). Anything else is the default.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return default
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    return default


class TelemetryPayload(BaseModel):
    """Schema of a robot telemetry message as published on the channel."""

    model_config = ConfigDict(extra="ignore")

    robot_id: Optional[str] = None
    battery: int = 0
    bin_status: Dict[str, Any] = Field(default_factory=dict)
    sorted_count: int = 0
    low_confidence: int = 0
    ts: Optional[datetime] = None

    @field_validator("robot_id", mode="before")
    @classmethod
    def _robot_id(cls, value: Any) -> Optional[str]:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            value = str(value)
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    @field_validator("battery", "sorted_count", "low_confidence", mode="before")
    @classmethod
    def _counter(cls, value: Any) -> int:
        return min(COUNTER_MAX, max(COUNTER_MIN, coerce_int(value, 0)))

    @field_validator("battery")
    @classmethod
    def _clamp_battery(cls, value: int) -> int:
        return min(BATTERY_MAX, max(BATTERY_MIN, value))

    @field_validator("bin_status", mode="before")
    @classmethod
    def _bin_status(cls, value: Any) -> Dict[str, Any]:
        if isinstance(value, dict):
            return value
        return {}

    @field_validator("ts", mode="before")
    @classmethod
    def _ts(cls, value: Any) -> Optional[datetime]:
        return parse_device_timestamp(value)


@dataclass(frozen=True)
class RawTelemetryRecord:
    """One normalized telemetry message. Immutable once created."""

    robot_id: str
    battery: int
    sorted_count: int
    low_confidence: int
    event_time: datetime
    ingested_at: datetime
    bin_status: Dict[str, Any] = field(default_factory=dict)

    @property
    def bucket_ts(self) -> datetime:
        """Start of the minute this record rolls up into."""
        return truncate_to_minute(self.event_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'robot_id': self.robot_id,
            'battery': self.battery,
            'bin_status': self.bin_status,
            'sorted_count': self.sorted_count,
            'low_confidence': self.low_confidence,
            'event_time': format_timestamp(self.event_time),
            'ingested_at': format_timestamp(self.ingested_at),
        }


class TelemetryNormalizer:
    """
    Turns (topic, payload) pairs into RawTelemetryRecords.

    Stateless; safe to call from many threads at once.
    """

    def __init__(self, namespace: str = DEFAULT_NAMESPACE):
        """
        Initialize normalizer.

        Args:
            namespace: First topic segment of telemetry topics
        """
        self.namespace = namespace

    def normalize(
        self,
        topic: str,
        payload: Union[bytes, str],
        received_at: Optional[datetime] = None,
    ) -> Optional[RawTelemetryRecord]:
        """
        Normalize one channel message.

        Args:
            topic: Topic the message arrived on
            payload: Raw message body (JSON object)
            received_at: Ingestion time (default: now)

        Returns:
            RawTelemetryRecord, or None if the message is discarded
        """
        topic_robot_id = parse_telemetry_topic(topic, self.namespace)
        if topic_robot_id is None:
            logger.debug(f"Ignoring message on non-telemetry topic {topic!r}")
            return None

        try:
            if isinstance(payload, (bytes, bytearray)):
                payload = payload.decode('utf-8')
            data = json.loads(payload)
        except (ValueError, TypeError) as e:
            logger.warning(f"Discarding telemetry on {topic}: invalid JSON ({e})")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Discarding telemetry on {topic}: payload is {type(data).__name__}, not an object")
            return None

        try:
            message = TelemetryPayload.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Discarding telemetry on {topic}: {e.error_count()} invalid field(s)")
            return None

        robot_id = topic_robot_id
        if message.robot_id is not None:
            if is_valid_robot_id(message.robot_id):
                robot_id = message.robot_id
            else:
                logger.debug(
                    f"Payload robot_id {message.robot_id!r} on {topic} is not a single "
                    f"topic segment, using {topic_robot_id!r}"
                )

        ingested_at = received_at or utcnow()
        return RawTelemetryRecord(
            robot_id=robot_id,
            battery=message.battery,
            bin_status=message.bin_status,
            sorted_count=message.sorted_count,
            low_confidence=message.low_confidence,
            event_time=message.ts or ingested_at,
            ingested_at=ingested_at,
        )
