# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Service context.

Built once at startup from Config and passed to whatever needs a store,
the channel or the query engine. Holds every long-lived handle so none of
them live in module globals.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import redis

from .analytics.queries import WindowedQueryEngine
from .analytics.rollup_store import RollupStore
from .capture.channel import ChannelAdapter
from .capture.command_publisher import CommandPublisher
from .processing.database.raw_store import RawTelemetryStore
from .processing.database.sqlite_client import SQLiteClient
from .processing.normalizer import TelemetryNormalizer
from .processing.writer import DualStoreWriter, IngestionPipeline
from .shared.config import Config

logger = logging.getLogger(__name__)


@dataclass
class TelemetryContext:
    """Connected components of one EcoSort process."""
    config: Config
    raw_store: RawTelemetryStore
    rollup_store: RollupStore
    pipeline: IngestionPipeline
    channel: ChannelAdapter
    publisher: CommandPublisher
    queries: WindowedQueryEngine

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "TelemetryContext":
        """
        Build and initialize all components.

        Stores are opened here; the channel connects lazily when the
        server starts or connect() is called.
        """
        config = config or Config()
        channel_config = config.channel
        redis_config = config.redis

        raw_store = RawTelemetryStore(SQLiteClient(str(config.get_path("paths.database.telemetry_db"))))
        raw_store.initialize()

        rollup_store = RollupStore(
            config.get_path("paths.database.rollup_db"),
            lock_timeout=config.rollup_lock_timeout,
        )
        rollup_store.connect()

        pipeline = IngestionPipeline(
            normalizer=TelemetryNormalizer(namespace=channel_config.namespace),
            writer=DualStoreWriter(raw_store, rollup_store),
        )
        channel = ChannelAdapter(
            redis_config=redis_config,
            handler=pipeline.handle,
            namespace=channel_config.namespace,
            reconnect_interval=channel_config.reconnect_interval,
            poll_timeout=channel_config.poll_timeout,
        )
        publisher = CommandPublisher(channel, namespace=channel_config.namespace)
        queries = WindowedQueryEngine(
            rollup_store,
            raw_store,
            default_window_hours=config.default_window_hours,
            recent_limit=config.recent_limit,
        )

        logger.info("Telemetry context initialized")
        return cls(
            config=config,
            raw_store=raw_store,
            rollup_store=rollup_store,
            pipeline=pipeline,
            channel=channel,
            publisher=publisher,
            queries=queries,
        )

    def health(self) -> Dict[str, bool]:
        """
        Check each dependency.

        Returns:
            Mapping of redis / raw_store / rollup_store to reachability
        """
        try:
            self.channel.connect()
            broker_ok = True
        except redis.RedisError as e:
            logger.warning(f"Broker unreachable: {e}")
            broker_ok = False

        return {
            'redis': broker_ok,
            'raw_store': self.raw_store.ping(),
            'rollup_store': self.rollup_store.ping(),
        }

    def close(self) -> None:
        """Release the channel and store handles."""
        self.channel.close()
        self.rollup_store.close()
        logger.info("Telemetry context closed")
