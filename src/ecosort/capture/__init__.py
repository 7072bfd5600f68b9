# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""Broker-facing components: telemetry subscription and command publishing."""

from .channel import ChannelAdapter, ChannelState
from .command_publisher import CommandPublisher

__all__ = ["ChannelAdapter", "ChannelState", "CommandPublisher"]
