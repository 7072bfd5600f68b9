# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Channel Topic Constants.

Centralized definitions for the pub/sub topics robots publish to and
listen on, so topic strings are never hand-built elsewhere.
"""

import re
from typing import Optional

# =============================================================================
# TOPIC LAYOUT
# =============================================================================

# Default namespace (first topic segment)
DEFAULT_NAMESPACE = "ecosort"

# Inbound telemetry: {namespace}/{robot_id}/telemetry
#
# Producers: robots in the field
# Consumers: ChannelAdapter -> TelemetryNormalizer -> DualStoreWriter
TELEMETRY_SUFFIX = "telemetry"

# Outbound commands: {namespace}/{robot_id}/commands
#
# Producers: CommandPublisher
# Consumers: robots in the field
COMMANDS_SUFFIX = "commands"


def telemetry_pattern(namespace: str = DEFAULT_NAMESPACE) -> str:
    """
    Get the PSUBSCRIBE glob for telemetry from any robot.

    Redis globs let `*` span slashes, so the normalizer still checks every
    delivered topic with `parse_telemetry_topic`.
    """
    return f"{namespace}/*/{TELEMETRY_SUFFIX}"


def command_topic(robot_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    """
    Get the command topic for a robot.

    Raises:
        ValueError: If robot_id is empty or spans more than one segment
    """
    if not is_valid_robot_id(robot_id):
        raise ValueError(f"Invalid robot id: {robot_id!r}")
    return f"{namespace}/{robot_id}/{COMMANDS_SUFFIX}"


def parse_telemetry_topic(topic: str, namespace: str = DEFAULT_NAMESPACE) -> Optional[str]:
    """
    Extract the robot segment of a telemetry topic.

    Args:
        topic: Topic the message arrived on
        namespace: Expected first segment

    Returns:
        Robot id, or None if the topic is not `{namespace}/{robot_id}/telemetry`
    """
    pattern = rf"{re.escape(namespace)}/([^/]+)/{TELEMETRY_SUFFIX}"
    match = re.fullmatch(pattern, topic or "")
    if not match:
        return None
    return match.group(1)


def is_valid_robot_id(robot_id: object) -> bool:
    """A robot id is a non-empty single topic segment."""
    return isinstance(robot_id, str) and bool(robot_id.strip()) and "/" not in robot_id
