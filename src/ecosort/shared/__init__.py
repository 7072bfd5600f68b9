# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""Shared configuration, topic and timestamp helpers."""

from .config import Config, ConfigurationError, RedisConfig, ChannelConfig

__all__ = ["Config", "ConfigurationError", "RedisConfig", "ChannelConfig"]
