# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for CommandPublisher.
"""

from unittest.mock import Mock

import pytest
import redis

from ecosort.capture.channel import ChannelAdapter
from ecosort.capture.command_publisher import CommandPublisher
from ecosort.shared.config import RedisConfig


@pytest.fixture
def client():
    client = Mock()
    client.publish.return_value = 1
    return client


@pytest.fixture
def channel(client):
    channel = ChannelAdapter(RedisConfig(), Mock(), client_factory=lambda: client)
    channel.connect()
    return channel


class TestCommandPublisher:

    def test_publish_to_command_topic(self, channel, client):
        publisher = CommandPublisher(channel)

        assert publisher.publish("r1", {"action": "pause"}) is True
        client.publish.assert_called_once_with("ecosort/r1/commands", '{"action":"pause"}')

    def test_custom_namespace(self, channel, client):
        CommandPublisher(channel, namespace="plant7").publish("r1", {"action": "pause"})
        assert client.publish.call_args[0][0] == "plant7/r1/commands"

    def test_no_subscribers_still_accepted(self, channel, client):
        client.publish.return_value = 0
        assert CommandPublisher(channel).publish("r1", {}) is True

    def test_disconnected_channel(self):
        channel = ChannelAdapter(RedisConfig(), Mock(), client_factory=Mock())
        assert CommandPublisher(channel).publish("r1", {"action": "pause"}) is False

    @pytest.mark.parametrize("robot_id", ["", "a/b", None])
    def test_invalid_robot_id(self, channel, client, robot_id):
        assert CommandPublisher(channel).publish(robot_id, {}) is False
        client.publish.assert_not_called()

    def test_unserializable_command(self, channel, client):
        assert CommandPublisher(channel).publish("r1", {"when": object()}) is False
        client.publish.assert_not_called()

    def test_broker_error(self, channel, client):
        client.publish.side_effect = redis.ConnectionError("gone")
        assert CommandPublisher(channel).publish("r1", {"action": "pause"}) is False
