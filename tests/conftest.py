# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""Shared fixtures for EcoSort tests."""

from datetime import datetime, timezone

import pytest

from ecosort.analytics.rollup_store import RollupStore
from ecosort.processing.database.raw_store import RawTelemetryStore
from ecosort.processing.database.sqlite_client import SQLiteClient
from ecosort.processing.normalizer import RawTelemetryRecord
from ecosort.shared.config import ENV_OVERRIDES


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host ECOSORT_* variables out of the tests."""
    for name in list(ENV_OVERRIDES) + ["ECOSORT_CONFIG_DIR", "ECOSORT_FORMAT", "ECOSORT_DEBUG"]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def raw_store(tmp_path):
    store = RawTelemetryStore(SQLiteClient(str(tmp_path / "telemetry.db")))
    store.initialize()
    return store


@pytest.fixture
def rollup_store(tmp_path):
    store = RollupStore(tmp_path / "rollups.duckdb")
    store.connect()
    yield store
    store.close()


@pytest.fixture
def config_dir(tmp_path):
    """Config directory whose databases live under tmp_path."""
    directory = tmp_path / "config"
    directory.mkdir()
    (directory / "config.yaml").write_text(
        "paths:\n"
        "  database:\n"
        f"    telemetry_db: \"{tmp_path / 'telemetry.db'}\"\n"
        f"    rollup_db: \"{tmp_path / 'rollups.duckdb'}\"\n"
    )
    return directory


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_record(robot_id="r1", battery=80, sorted_count=0, low_confidence=0,
                event_time=None, bin_status=None) -> RawTelemetryRecord:
    event_time = event_time or utc(2024, 1, 1, 0, 0, 30)
    return RawTelemetryRecord(
        robot_id=robot_id,
        battery=battery,
        sorted_count=sorted_count,
        low_confidence=low_confidence,
        event_time=event_time,
        ingested_at=event_time,
        bin_status=bin_status or {},
    )
