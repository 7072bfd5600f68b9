# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Configuration management for EcoSort Telemetry Core.

Loads `config.yaml` from the config directory, merges it over built-in
defaults and applies `ECOSORT_*` environment overrides.
"""

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .topics import DEFAULT_NAMESPACE

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"
DEFAULT_CONFIG_DIR = Path.home() / ".ecosort"

DEFAULT_CONFIG: Dict[str, Any] = {
    "redis": {
        "host": "localhost",
        "port": 6379,
        "db": 0,
        "password": None,
        "socket_timeout": 5.0,
        "socket_connect_timeout": 5.0,
    },
    "channel": {
        "namespace": DEFAULT_NAMESPACE,
        "reconnect_interval": 2.0,
        "poll_timeout": 1.0,
    },
    "paths": {
        "database": {
            "telemetry_db": "~/.ecosort/telemetry.db",
            "rollup_db": "~/.ecosort/rollups.duckdb",
        },
    },
    "query": {
        "default_window_hours": 24,
        "recent_limit": 20,
    },
    "rollup": {
        "lock_timeout": 5.0,
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}

# Environment variable -> dotted config key
ENV_OVERRIDES = {
    "ECOSORT_REDIS_HOST": "redis.host",
    "ECOSORT_REDIS_PORT": "redis.port",
    "ECOSORT_REDIS_DB": "redis.db",
    "ECOSORT_REDIS_PASSWORD": "redis.password",
    "ECOSORT_NAMESPACE": "channel.namespace",
    "ECOSORT_TELEMETRY_DB": "paths.database.telemetry_db",
    "ECOSORT_ROLLUP_DB": "paths.database.rollup_db",
    "ECOSORT_LOG_LEVEL": "logging.level",
}


class ConfigurationError(Exception):
    """Raised when configuration values cannot be used."""
    pass


@dataclass
class RedisConfig:
    """Redis connection settings."""
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0


@dataclass
class ChannelConfig:
    """Pub/sub channel settings."""
    namespace: str = DEFAULT_NAMESPACE
    reconnect_interval: float = 2.0
    poll_timeout: float = 1.0


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into base recursively (base is modified)."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


class Config:
    """
    Configuration container backed by a YAML file.

    Lookup is by dotted key, e.g. `config.get("channel.namespace")`.
    """

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """
        Initialize configuration.

        Args:
            config_dir: Directory holding config.yaml
                        (default: $ECOSORT_CONFIG_DIR or ~/.ecosort)
        """
        if config_dir is None:
            config_dir = os.environ.get("ECOSORT_CONFIG_DIR") or DEFAULT_CONFIG_DIR
        self.config_dir = Path(config_dir).expanduser()
        self.config_path = self.config_dir / CONFIG_FILENAME

        self._data: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)
        self._load_file()
        self._load_env()

    def _load_file(self) -> None:
        """Merge config.yaml over the defaults if it exists."""
        if not self.config_path.exists():
            logger.debug(f"No config file at {self.config_path}, using defaults")
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not load config file {self.config_path}: {e}")
            return

        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {self.config_path}: top level is not a mapping")
            return

        _deep_merge(self._data, data)

    def _load_env(self) -> None:
        """Apply ECOSORT_* environment overrides."""
        for env_name, key in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a value by dotted key.

        Args:
            key: Dotted path, e.g. "paths.database.telemetry_db"
            default: Returned when any segment is missing

        Returns:
            Configured value or default
        """
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a value by dotted key, creating sections as needed."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if not isinstance(node.get(part), dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value

    def get_path(self, key: str) -> Path:
        """Get a filesystem path setting with `~` expanded."""
        value = self.get(key)
        if not value:
            value = self._default(key)
        return Path(str(value)).expanduser()

    def section(self, name: str) -> Dict[str, Any]:
        """
        Get a config section merged over its defaults.

        A section that is not a mapping falls back to defaults.
        """
        defaults = copy.deepcopy(DEFAULT_CONFIG.get(name, {}))
        value = self._data.get(name)
        if not isinstance(value, dict):
            if value is not None:
                logger.warning(f"Config section '{name}' is not a mapping, using defaults")
            return defaults
        return _deep_merge(defaults, value)

    @property
    def redis(self) -> RedisConfig:
        """Redis connection settings."""
        section = self.section("redis")
        try:
            return RedisConfig(
                host=str(section["host"]),
                port=int(section["port"]),
                db=int(section["db"]),
                password=section.get("password") or None,
                socket_timeout=float(section["socket_timeout"]),
                socket_connect_timeout=float(section["socket_connect_timeout"]),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid redis configuration: {e}") from e

    @property
    def channel(self) -> ChannelConfig:
        """Channel settings."""
        section = self.section("channel")
        namespace = str(section.get("namespace") or "").strip().strip("/")
        if not namespace:
            raise ConfigurationError("channel.namespace must not be empty")
        try:
            return ChannelConfig(
                namespace=namespace,
                reconnect_interval=float(section["reconnect_interval"]),
                poll_timeout=float(section["poll_timeout"]),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid channel configuration: {e}") from e

    @property
    def default_window_hours(self) -> float:
        return float(self.section("query")["default_window_hours"])

    @property
    def recent_limit(self) -> int:
        return int(self.section("query")["recent_limit"])

    @property
    def rollup_lock_timeout(self) -> float:
        """Seconds to wait for a rollup file held by another process."""
        try:
            return float(self.section("rollup")["lock_timeout"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid rollup configuration: {e}") from e

    def _default(self, key: str) -> Any:
        node: Any = DEFAULT_CONFIG
        for part in key.split("."):
            if not isinstance(node, dict):
                return None
            node = node.get(part)
        return node

    def to_dict(self) -> Dict[str, Any]:
        """Effective configuration as a plain dict."""
        return copy.deepcopy(self._data)
