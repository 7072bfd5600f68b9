# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Best-effort command publishing to robots.

Commands go to `{namespace}/{robot_id}/commands`. The broker acknowledges
the PUBLISH; whether the robot received it is not tracked. Failures are
logged and reported as False, never raised.
"""

import json
import logging
from typing import Any

import redis

from ..shared.topics import DEFAULT_NAMESPACE, command_topic, is_valid_robot_id
from .channel import ChannelAdapter

logger = logging.getLogger(__name__)


class CommandPublisher:
    """Fire-and-forget publisher for operator commands."""

    def __init__(self, channel: ChannelAdapter, namespace: str = DEFAULT_NAMESPACE):
        """
        Initialize command publisher.

        Args:
            channel: Channel adapter whose connection is reused
            namespace: First topic segment
        """
        self.channel = channel
        self.namespace = namespace

    def publish(self, robot_id: str, command: Any) -> bool:
        """
        Publish a command to one robot.

        Args:
            robot_id: Target robot
            command: JSON-serializable command object

        Returns:
            True if the broker accepted the message, False otherwise
        """
        if not is_valid_robot_id(robot_id):
            logger.warning(f"Not publishing command: invalid robot id {robot_id!r}")
            return False

        client = self.channel.client
        if client is None:
            logger.warning(f"Channel not connected; command for {robot_id} dropped")
            return False

        try:
            message = json.dumps(command, separators=(',', ':'))
        except (TypeError, ValueError) as e:
            logger.error(f"Cannot serialize command for {robot_id}: {e}")
            return False

        topic = command_topic(robot_id, self.namespace)
        try:
            receivers = client.publish(topic, message)
        except redis.RedisError as e:
            logger.error(f"Publish error on {topic}: {e}")
            return False

        logger.info(f"Command -> {topic}: {message} ({receivers} subscriber(s))")
        return True
