#!/usr/bin/env python3
"""
Midtrans Payment Gateway Service.

Main entry point that runs the notification receiver:
- Midtrans gateway client (shared HTTP session)
- Notification and payment REST API

Usage:
    python main.py

Environment variables:
    See .env.example for all configuration options.
"""

import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from aiohttp import web

from config import AppConfig, load_config
from models.errors import ConfigurationError
from models.notification import Notification
from services.gateway import MidtransGateway
from api.notification_api import NOTIFICATION_API_KEY, create_app


# Configure logging
def setup_logging(level: str = 'INFO', log_file: Optional[str] = None) -> None:
    """Configure root logging."""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        # Ensure log directory exists
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers
    )

    # Reduce noise from third-party libraries
    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


class PaymentGatewayService:
    """
    Main service orchestrator.

    Owns the gateway client and the REST API server, and shuts both
    down in order.
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self.gateway: Optional[MidtransGateway] = None
        self.api_app: Optional[web.Application] = None
        self.api_runner: Optional[web.AppRunner] = None
        self._shutdown_event = asyncio.Event()
        self._stop_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the gateway client and the API server."""
        logger.info("=" * 60)
        logger.info(f"Starting {self.config.service.name}")
        logger.info("=" * 60)

        self.gateway = MidtransGateway(self.config.midtrans)
        await self.gateway.start()

        logger.info("Starting API server...")
        self.api_app = create_app(self.gateway, service_name=self.config.service.name)
        self.api_app[NOTIFICATION_API_KEY].on_notification(self._handle_notification)

        self.api_runner = web.AppRunner(
            self.api_app,
            shutdown_timeout=self.config.service.shutdown_timeout
        )
        await self.api_runner.setup()

        site = web.TCPSite(
            self.api_runner,
            self.config.api.host,
            self.config.api.port
        )
        await site.start()

        logger.info("=" * 60)
        logger.info("Service started successfully!")
        logger.info(f"API server running at http://{self.config.api.host}:{self.config.api.port}")
        logger.info(f"Midtrans environment: {self.config.midtrans.environment}")
        logger.info("=" * 60)

    async def stop(self) -> None:
        """Stop all services gracefully."""
        logger.info("Initiating graceful shutdown...")

        # Stop accepting new requests
        if self.api_runner:
            await self.api_runner.cleanup()

        if self.gateway:
            await self.gateway.stop()

        logger.info("Shutdown complete")
        self._shutdown_event.set()

    async def _handle_notification(self, notification: Notification) -> None:
        """Log verified notifications that report money received."""
        if notification.is_paid():
            logger.info(
                f"Payment received for order {notification.order_id} "
                f"via {notification.payment_type}"
            )

    async def run(self) -> None:
        """Run the service until shutdown signal."""
        await self.start()

        # Wait for shutdown signal
        await self._shutdown_event.wait()

    def request_shutdown(self) -> None:
        """Request service shutdown."""
        if self._stop_task is None:
            self._stop_task = asyncio.create_task(self.stop())
            self._stop_task.add_done_callback(self._on_stop_done)

    def _on_stop_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Shutdown failed: {error}", exc_info=error)
            self._shutdown_event.set()


def handle_signal(service: PaymentGatewayService, sig: signal.Signals) -> None:
    """Handle shutdown signals."""
    logger.info(f"Received signal {sig.name}, initiating shutdown...")
    service.request_shutdown()


async def main() -> None:
    """Main entry point."""
    try:
        config = load_config()
    except ConfigurationError as e:
        setup_logging()
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(config.logging.level, config.logging.file)

    service = PaymentGatewayService(config)

    # Set up signal handlers
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda s=sig: handle_signal(service, s)
        )

    try:
        await service.run()
    except Exception as e:
        logger.error(f"Service error: {e}", exc_info=True)
        await service.stop()
        sys.exit(1)


if __name__ == '__main__':
    asyncio.run(main())
