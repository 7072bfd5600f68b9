# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for Config loading, overrides and typed sections.
"""

from pathlib import Path

import pytest

from ecosort.shared.config import Config, ConfigurationError


class TestConfigLoading:
    """Test file loading and defaults."""

    def test_defaults_without_file(self, tmp_path):
        config = Config(config_dir=tmp_path)
        assert config.get("channel.namespace") == "ecosort"
        assert config.get("redis.port") == 6379
        assert config.default_window_hours == 24
        assert config.recent_limit == 20

    def test_file_merges_over_defaults(self, tmp_path):
        (tmp_path / "config.yaml").write_text("""
redis:
  host: broker.local
query:
  recent_limit: 5
""")
        config = Config(config_dir=tmp_path)
        assert config.get("redis.host") == "broker.local"
        # Untouched keys in the same section keep their defaults
        assert config.get("redis.port") == 6379
        assert config.recent_limit == 5

    def test_invalid_yaml_is_ignored(self, tmp_path):
        (tmp_path / "config.yaml").write_text("redis: [unclosed")
        config = Config(config_dir=tmp_path)
        assert config.get("redis.host") == "localhost"

    def test_non_mapping_file_is_ignored(self, tmp_path):
        (tmp_path / "config.yaml").write_text("- just\n- a list\n")
        config = Config(config_dir=tmp_path)
        assert config.get("channel.namespace") == "ecosort"

    def test_non_mapping_section_falls_back(self, tmp_path):
        (tmp_path / "config.yaml").write_text("redis: nope\n")
        config = Config(config_dir=tmp_path)
        assert config.redis.host == "localhost"

    def test_config_dir_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ECOSORT_CONFIG_DIR", str(tmp_path))
        config = Config()
        assert config.config_path == tmp_path / "config.yaml"


class TestConfigAccess:
    """Test dotted lookup and overrides."""

    def test_get_missing_returns_default(self, tmp_path):
        config = Config(config_dir=tmp_path)
        assert config.get("nope.nothing", 42) == 42

    def test_set_creates_sections(self, tmp_path):
        config = Config(config_dir=tmp_path)
        config.set("extra.deep.value", 1)
        assert config.get("extra.deep.value") == 1

    def test_get_path_expands_home(self, tmp_path):
        config = Config(config_dir=tmp_path)
        path = config.get_path("paths.database.telemetry_db")
        assert path == Path.home() / ".ecosort" / "telemetry.db"

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ECOSORT_REDIS_HOST", "redis.internal")
        monkeypatch.setenv("ECOSORT_REDIS_PORT", "6380")
        monkeypatch.setenv("ECOSORT_NAMESPACE", "plant7")
        config = Config(config_dir=tmp_path)
        assert config.redis.host == "redis.internal"
        assert config.redis.port == 6380
        assert config.channel.namespace == "plant7"


class TestConfigValidation:
    """Test ConfigurationError on unusable values."""

    def test_empty_namespace(self, tmp_path):
        (tmp_path / "config.yaml").write_text("channel:\n  namespace: ''\n")
        config = Config(config_dir=tmp_path)
        with pytest.raises(ConfigurationError):
            config.channel

    def test_non_numeric_port(self, tmp_path):
        (tmp_path / "config.yaml").write_text("redis:\n  port: not-a-port\n")
        config = Config(config_dir=tmp_path)
        with pytest.raises(ConfigurationError):
            config.redis


class TestRollupSection:

    def test_lock_timeout_default(self, tmp_path):
        assert Config(config_dir=tmp_path).rollup_lock_timeout == 5.0

    def test_lock_timeout_from_file(self, tmp_path):
        (tmp_path / "config.yaml").write_text("rollup:\n  lock_timeout: 0.5\n")
        assert Config(config_dir=tmp_path).rollup_lock_timeout == 0.5

    def test_invalid_lock_timeout(self, tmp_path):
        (tmp_path / "config.yaml").write_text("rollup:\n  lock_timeout: soon\n")
        with pytest.raises(ConfigurationError):
            Config(config_dir=tmp_path).rollup_lock_timeout
