# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for TelemetryNormalizer.

Covers coercion, clamping, topic fallback and discards.
"""

import json
from datetime import datetime, timezone

import pytest

from ecosort.processing.normalizer import TelemetryNormalizer, coerce_int

RECEIVED = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def normalizer():
    return TelemetryNormalizer()


def normalize(normalizer, payload, topic="ecosort/r1/telemetry"):
    if not isinstance(payload, (str, bytes)):
        payload = json.dumps(payload)
    return normalizer.normalize(topic, payload, received_at=RECEIVED)


class TestCoerceInt:

    @pytest.mark.parametrize("value,expected", [
        (5, 5),
        (5.9, 5),
        (-2.5, -2),
        ("42abc", 42),
        ("  -7", -7),
        ("abc", 0),
        (None, 0),
        (True, 0),
        (float("nan"), 0),
        ([1], 0),
    ])
    def test_coercion(self, value, expected):
        assert coerce_int(value) == expected


class TestNormalize:

    def test_full_payload(self, normalizer):
        record = normalize(normalizer, {
            "robot_id": "r1",
            "battery": 77,
            "bin_status": {"plastic": 40},
            "sorted_count": 12,
            "low_confidence": 1,
            "ts": "2024-01-01T00:00:30Z",
        })
        assert record.robot_id == "r1"
        assert record.battery == 77
        assert record.bin_status == {"plastic": 40}
        assert record.sorted_count == 12
        assert record.low_confidence == 1
        assert record.event_time == datetime(2024, 1, 1, 0, 0, 30, tzinfo=timezone.utc)
        assert record.ingested_at == RECEIVED

    def test_bytes_payload(self, normalizer):
        record = normalize(normalizer, b'{"battery": 50}')
        assert record.battery == 50

    @pytest.mark.parametrize("battery,expected", [(150, 100), (-10, 0), (100, 100), (0, 0)])
    def test_battery_is_clamped(self, normalizer, battery, expected):
        assert normalize(normalizer, {"battery": battery}).battery == expected

    def test_robot_id_falls_back_to_topic(self, normalizer):
        record = normalize(normalizer, {"battery": 50}, topic="ecosort/r9/telemetry")
        assert record.robot_id == "r9"

    def test_blank_robot_id_falls_back_to_topic(self, normalizer):
        record = normalize(normalizer, {"robot_id": "  ", "battery": 50}, topic="ecosort/r9/telemetry")
        assert record.robot_id == "r9"

    def test_payload_robot_id_wins(self, normalizer):
        record = normalize(normalizer, {"robot_id": "r2"}, topic="ecosort/r9/telemetry")
        assert record.robot_id == "r2"

    def test_missing_fields_default(self, normalizer):
        record = normalize(normalizer, {})
        assert record.battery == 0
        assert record.sorted_count == 0
        assert record.low_confidence == 0
        assert record.bin_status == {}
        assert record.event_time == RECEIVED

    def test_leading_integer_strings(self, normalizer):
        record = normalize(normalizer, {"battery": "88%", "sorted_count": "12 items", "low_confidence": "x"})
        assert record.battery == 88
        assert record.sorted_count == 12
        assert record.low_confidence == 0

    def test_non_object_bin_status_becomes_empty(self, normalizer):
        assert normalize(normalizer, {"bin_status": [1, 2]}).bin_status == {}

    @pytest.mark.parametrize("ts", ["yesterday", "2024-01-01", 1704067200, "2024-13-45T00:00:00Z"])
    def test_unusable_ts_uses_ingestion_time(self, normalizer, ts):
        assert normalize(normalizer, {"ts": ts}).event_time == RECEIVED

    def test_unknown_fields_ignored(self, normalizer):
        assert normalize(normalizer, {"battery": 5, "firmware": "1.2"}).battery == 5


class TestDiscards:

    @pytest.mark.parametrize("payload", ["{not json", b"\xff\xfe", "[1, 2]", "42", "null", '"text"'])
    def test_malformed_payload_is_discarded(self, normalizer, payload):
        assert normalize(normalizer, payload) is None

    @pytest.mark.parametrize("topic", ["ecosort/r1/commands", "ecosort/a/b/telemetry", "other/r1/telemetry"])
    def test_foreign_topic_is_discarded(self, normalizer, topic):
        assert normalize(normalizer, {"battery": 50}, topic=topic) is None

    def test_custom_namespace(self):
        normalizer = TelemetryNormalizer(namespace="plant7")
        assert normalize(normalizer, {}, topic="plant7/r1/telemetry").robot_id == "r1"
        assert normalize(normalizer, {}, topic="ecosort/r1/telemetry") is None


class TestOversizedValues:

    def test_huge_integer_literal_is_discarded(self, normalizer):
        payload = '{"battery": ' + "9" * 5000 + "}"
        assert normalize(normalizer, payload) is None

    @pytest.mark.parametrize("value,expected", [
        (2 ** 63, 2 ** 63 - 1),
        (10 ** 30, 2 ** 63 - 1),
        (-(2 ** 64), -(2 ** 63)),
        (1e30, 2 ** 63 - 1),
    ])
    def test_counters_fit_in_64_bits(self, normalizer, value, expected):
        record = normalize(normalizer, {"sorted_count": value, "low_confidence": value})
        assert record.sorted_count == expected
        assert record.low_confidence == expected

    def test_huge_battery_still_clamped(self, normalizer):
        assert normalize(normalizer, {"battery": 10 ** 30}).battery == 100


class TestRobotIdRule:

    @pytest.mark.parametrize("robot_id", ["line/7", "/", "a/b/c"])
    def test_multi_segment_payload_id_uses_topic(self, normalizer, robot_id):
        record = normalize(normalizer, {"robot_id": robot_id}, topic="ecosort/r3/telemetry")
        assert record.robot_id == "r3"
