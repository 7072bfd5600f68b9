# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for the ecosort CLI using click's CliRunner.

Stores are real files under tmp_path; Redis is mocked.
"""

import json
from unittest.mock import Mock

import pytest
import redis
from click.testing import CliRunner

from conftest import make_record, utc
from ecosort.analytics.rollup_store import RollupStore
from ecosort.cli.main import cli
from ecosort.processing.database.raw_store import RawTelemetryStore
from ecosort.processing.database.sqlite_client import SQLiteClient

WINDOW = ["--from", "2024-01-01T00:00:00Z", "--to", "2024-01-01T01:00:00Z"]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def seeded(tmp_path, config_dir):
    raw = RawTelemetryStore(SQLiteClient(str(tmp_path / "telemetry.db")))
    raw.initialize()
    raw.write(make_record("r1", battery=85, sorted_count=25, event_time=utc(2024, 1, 1, 0, 1, 10)))

    with RollupStore(tmp_path / "rollups.duckdb") as rollup:
        rollup.upsert_bucket("r1", utc(2024, 1, 1, 0, 0), 90, 10, 0)
        rollup.upsert_bucket("r1", utc(2024, 1, 1, 0, 1), 85, 25, 0)
    return config_dir


@pytest.fixture
def redis_client(monkeypatch):
    client = Mock()
    client.publish.return_value = 1
    monkeypatch.setattr(redis, "Redis", Mock(return_value=client))
    return client


def invoke_json(runner, config_dir, *args):
    return runner.invoke(cli, ["--config-dir", str(config_dir), "--format", "json", "--no-color", *args])


class TestCLIBasics:

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "EcoSort CLI version" in result.output

    def test_help_without_command(self, runner, config_dir):
        result = runner.invoke(cli, ["--config-dir", str(config_dir)])
        assert result.exit_code == 0
        assert "overview" in result.output


class TestQueryCommands:

    def test_overview_json(self, runner, seeded):
        result = invoke_json(runner, seeded, "overview", *WINDOW)

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data['total_items_sorted'] == 15
        assert data['per_robot'] == [{'robot_id': 'r1', 'items_sorted': 15, 'avg_battery': 88}]
        assert data['latest'][0]['battery'] == 85

    def test_overview_table(self, runner, seeded):
        result = runner.invoke(cli, ["--config-dir", str(seeded), "overview", *WINDOW])
        assert result.exit_code == 0, result.output
        assert "r1" in result.output
        assert "Fleet Overview" in result.output

    def test_overview_bad_window(self, runner, seeded):
        result = invoke_json(runner, seeded, "overview", "--from", "2024-01-02T00:00:00Z", "--to", "2024-01-01T00:00:00Z")
        assert result.exit_code == 1
        assert "error" in result.output

    def test_series_json(self, runner, seeded):
        result = invoke_json(runner, seeded, "series", "r1", *WINDOW)

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [point['items_per_minute'] for point in data['points']] == [None, 15]

    def test_recent(self, runner, seeded):
        result = invoke_json(runner, seeded, "recent", "-n", "5")
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)['count'] == 1

    def test_robot_status(self, runner, seeded):
        result = invoke_json(runner, seeded, "robot", "r1")
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)['records'][0]['sorted_count'] == 25

    def test_robot_unknown(self, runner, seeded):
        result = invoke_json(runner, seeded, "robot", "ghost")
        assert result.exit_code == 1


class TestCommandPublishing:

    def test_command_sent(self, runner, config_dir, redis_client):
        result = invoke_json(runner, config_dir, "command", "r1", '{"action": "pause"}')

        assert result.exit_code == 0, result.output
        assert "Command accepted for r1" in result.output
        redis_client.publish.assert_called_once_with("ecosort/r1/commands", '{"action":"pause"}')

    def test_command_accepted_when_broker_down(self, runner, config_dir, redis_client):
        redis_client.ping.side_effect = redis.ConnectionError("refused")

        result = invoke_json(runner, config_dir, "command", "r1", '{"action": "pause"}')

        assert result.exit_code == 0, result.output
        assert "Command accepted for r1" in result.output
        assert "not delivered" in result.output
        redis_client.publish.assert_not_called()

    def test_command_invalid_json(self, runner, config_dir):
        result = invoke_json(runner, config_dir, "command", "r1", "{oops")
        assert result.exit_code == 1


class TestDoctor:

    def test_all_healthy(self, runner, config_dir, redis_client):
        result = invoke_json(runner, config_dir, "doctor")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data == {'checks': {'redis': True, 'raw_store': True, 'rollup_store': True}, 'healthy': True}

    def test_broker_down(self, runner, config_dir, redis_client):
        redis_client.ping.side_effect = redis.ConnectionError("refused")
        result = invoke_json(runner, config_dir, "doctor")
        assert result.exit_code == 1
        assert '"redis": false' in result.output
