# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Channel adapter for robot telemetry over Redis pub/sub.

Subscribes to `{namespace}/*/telemetry` and hands every message to the
ingestion handler. Delivery is at-most-once: nothing is buffered while
disconnected, and messages published during an outage are lost.

Lifecycle:
    DISCONNECTED -> CONNECTING -> CONNECTED
    any transport error -> RECONNECTING -> (retry every reconnect_interval)
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

import redis

from ..shared.config import RedisConfig
from ..shared.topics import DEFAULT_NAMESPACE, telemetry_pattern

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, bytes], Any]


class ChannelState(str, Enum):
    """Connection state of the channel adapter."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class ChannelAdapter:
    """
    Owns the broker connection and the telemetry subscription.

    Features:
    - Idempotent connect() returning the shared client
    - Pattern subscription for telemetry from any robot
    - Fixed back-off reconnect that never gives up
    - One asyncio task per message; the handler runs in a worker thread so
      slow stores never block receiving
    """

    def __init__(
        self,
        redis_config: RedisConfig,
        handler: MessageHandler,
        namespace: str = DEFAULT_NAMESPACE,
        reconnect_interval: float = 2.0,
        poll_timeout: float = 1.0,
        client_factory: Optional[Callable[[], redis.Redis]] = None,
    ):
        """
        Initialize channel adapter.

        Args:
            redis_config: Redis connection settings
            handler: Called as handler(topic, payload) for every message;
                     returns a WriteOutcome or None for a discard
            namespace: First topic segment
            reconnect_interval: Seconds between reconnect attempts
            poll_timeout: Seconds each receive waits for a message
            client_factory: Builds the Redis client (default: from redis_config)
        """
        self.redis_config = redis_config
        self.handler = handler
        self.namespace = namespace
        self.pattern = telemetry_pattern(namespace)
        self.reconnect_interval = reconnect_interval
        self.poll_timeout = poll_timeout
        self.client_factory = client_factory or self._create_client

        self.state = ChannelState.DISCONNECTED
        self.running = False
        self._client: Optional[redis.Redis] = None
        self._pubsub: Optional[redis.client.PubSub] = None
        self._tasks: Set[asyncio.Task] = set()
        self.stats: Dict[str, int] = {
            'received': 0,
            'written': 0,
            'partial': 0,
            'discarded': 0,
            'failed': 0,
            'reconnects': 0,
        }

    def _create_client(self) -> redis.Redis:
        config = self.redis_config
        return redis.Redis(
            host=config.host,
            port=config.port,
            db=config.db,
            password=config.password,
            socket_timeout=config.socket_timeout,
            socket_connect_timeout=config.socket_connect_timeout,
            decode_responses=False,  # Payloads are handed over as bytes
        )

    @property
    def client(self) -> Optional[redis.Redis]:
        """The connected client, or None when not connected."""
        if self.state != ChannelState.CONNECTED:
            return None
        return self._client

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    def connect(self) -> redis.Redis:
        """
        Connect to the broker, or return the existing connection.

        Returns:
            Connected Redis client

        Raises:
            redis.RedisError: If the broker cannot be reached
        """
        if self._client is not None and self.state == ChannelState.CONNECTED:
            return self._client

        if self.state == ChannelState.DISCONNECTED:
            self.state = ChannelState.CONNECTING
        logger.info(f"Connecting to broker {self.redis_config.host}:{self.redis_config.port} ({self.state.value})")

        client = self.client_factory()
        try:
            client.ping()
        except redis.RedisError:
            if self.state == ChannelState.CONNECTING:
                self.state = ChannelState.DISCONNECTED
            raise

        self._client = client
        self.state = ChannelState.CONNECTED
        logger.info("Broker connection established")
        return client

    def subscribe(self) -> None:
        """Connect if needed and subscribe to telemetry from any robot."""
        client = self.connect()
        pubsub = client.pubsub(ignore_subscribe_messages=True)
        pubsub.psubscribe(self.pattern)
        self._pubsub = pubsub
        logger.info(f"Subscribed to {self.pattern}")

    async def run(self) -> None:
        """
        Main receive loop.

        Runs until stop() is called; transport errors never end it.
        """
        self.running = True
        logger.info(f"Channel adapter started (pattern={self.pattern})")

        while self.running:
            try:
                if self._pubsub is None:
                    await asyncio.to_thread(self.subscribe)
                message = await asyncio.to_thread(self._pubsub.get_message, timeout=self.poll_timeout)
            except asyncio.CancelledError:
                logger.info("Channel adapter cancelled")
                break
            except redis.RedisError as e:
                await self._handle_transport_error(e)
                continue

            if message is not None:
                self.dispatch(message)

        await self.drain()
        self.close()
        logger.info("Channel adapter stopped")

    def stop(self) -> None:
        """Ask the receive loop to exit."""
        self.running = False

    async def _handle_transport_error(self, error: Exception) -> None:
        logger.warning(f"Channel transport error: {error}; reconnecting in {self.reconnect_interval}s")
        self.stats['reconnects'] += 1
        self._reset_connection()
        self.state = ChannelState.RECONNECTING
        await asyncio.sleep(self.reconnect_interval)

    def dispatch(self, message: Dict[str, Any]) -> Optional[asyncio.Task]:
        """
        Schedule processing of one pub/sub message.

        Must be called from the event loop. Returns the processing task, or
        None for non-data messages.
        """
        if message.get('type') not in ('message', 'pmessage'):
            return None

        channel = message.get('channel')
        if isinstance(channel, bytes):
            topic = channel.decode('utf-8', errors='replace')
        else:
            topic = str(channel)

        task = asyncio.create_task(self._process(topic, message.get('data')))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _process(self, topic: str, payload: Any) -> None:
        self.stats['received'] += 1
        try:
            outcome = await asyncio.to_thread(self.handler, topic, payload)
        except Exception as e:
            self.stats['failed'] += 1
            logger.error(f"Error handling message on {topic}: {e}", exc_info=True)
            return

        if outcome is None:
            self.stats['discarded'] += 1
        elif getattr(outcome, 'complete', True):
            self.stats['written'] += 1
        else:
            self.stats['partial'] += 1

    async def drain(self) -> None:
        """Wait for in-flight messages to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _reset_connection(self) -> None:
        """Drop the current pubsub and client after a transport error."""
        pubsub, client = self._pubsub, self._client
        self._pubsub = None
        self._client = None
        for resource in (pubsub, client):
            if resource is None:
                continue
            try:
                resource.close()
            except redis.RedisError as e:
                logger.debug(f"Error closing broken connection: {e}")

    def close(self) -> None:
        """Close the subscription and the client."""
        self._reset_connection()
        self.state = ChannelState.DISCONNECTED
