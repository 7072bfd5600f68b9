# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Main server for EcoSort telemetry ingestion.

Builds the service context, runs the channel adapter and shuts down
gracefully on SIGINT/SIGTERM.
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from ..context import TelemetryContext
from ..shared.config import Config

logger = logging.getLogger(__name__)


class TelemetryServer:
    """
    Ingestion server.

    Manages:
    - Raw and rollup store initialization (via TelemetryContext)
    - Channel adapter receive loop
    - Graceful shutdown
    """

    def __init__(self, config: Optional[Config] = None, context: Optional[TelemetryContext] = None):
        """
        Initialize telemetry server.

        Args:
            config: Configuration instance (creates default if not provided)
            context: Prebuilt context (built from config on start if not provided)
        """
        self.config = config or (context.config if context else Config())
        self.context = context
        self.running = False

    async def start(self) -> None:
        """Start the server; returns when the channel loop ends."""
        if self.running:
            logger.warning("Server already running")
            return

        logger.info("Starting EcoSort Telemetry Server...")

        if self.context is None:
            self.context = TelemetryContext.from_config(self.config)

        self.running = True
        try:
            await self.context.channel.run()
        except Exception as e:
            logger.error(f"Failed to run server: {e}")
            raise
        finally:
            self.running = False

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if self.context is None:
            return

        logger.info("Stopping server...")
        self.context.channel.stop()
        await self.context.channel.drain()
        self.context.close()

        stats = self.context.channel.stats
        logger.info(
            f"Server stopped (received={stats['received']} written={stats['written']} "
            f"partial={stats['partial']} discarded={stats['discarded']} failed={stats['failed']})"
        )

    async def run(self) -> None:
        """Run the server (alias for start)."""
        await self.start()


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Setup logging configuration."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers,
        force=True,
    )


async def serve(config: Optional[Config] = None) -> None:
    """Run a server until SIGINT/SIGTERM."""
    config = config or Config()
    setup_logging(config.get("logging.level", "INFO"), config.get("logging.file"))

    server = TelemetryServer(config)
    loop = asyncio.get_running_loop()

    def request_shutdown() -> None:
        logger.info("Received shutdown signal")
        if server.context is not None:
            server.context.channel.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            signal.signal(sig, lambda *_: request_shutdown())

    try:
        await server.start()
    finally:
        await server.stop()


def main() -> None:
    """Main entry point."""
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
