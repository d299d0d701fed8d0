"""
Main entry point for the print relay.
Consumes the tenant's print queue and serves the health endpoint until signalled.
"""
import sys
import asyncio
import logging
import signal
from typing import Optional

from aiohttp import web

from print_relay.broker.rabbitmq import BrokerChannelManager
from print_relay.config.manager import ConfigManager, Settings, load_settings
from print_relay.health import create_app
from print_relay.jobs.errors import ConfigError
from print_relay.jobs.processor import DispatchCoordinator
from print_relay.jobs.side_store import DuplicateGuard
from print_relay.logging import setup_logging
from print_relay.notifications import NotificationService
from print_relay.printers.registry import PrinterRegistry

logger = logging.getLogger(__name__)


class PrintApp:
    """Wires one broker handle, the dispatch coordinator and the health server together."""

    def __init__(self, settings: Settings, notifier: Optional[NotificationService] = None,
                 broker: Optional[BrokerChannelManager] = None):
        if not settings.tenant_id:
            raise ConfigError("Business_ID environment variable must be set")

        self.settings = settings
        self.queue_name = settings.queue_name
        self.notifier = notifier or NotificationService()
        self.registry = PrinterRegistry.from_config(settings.printers)
        self.broker = broker or BrokerChannelManager(
            url=settings.broker_url,
            queue_name=self.queue_name,
            notifier=self.notifier,
            heartbeat=settings.heartbeat,
            connection_timeout=settings.connection_timeout,
            reconnect_delay=settings.reconnect_delay,
        )
        self.coordinator = DispatchCoordinator(
            tenant_id=settings.tenant_id,
            registry=self.registry,
            guard=DuplicateGuard(settings.side_store_dir),
            broker=self.broker,
            notifier=self.notifier,
            print_timeout=settings.print_timeout,
            queue_name=self.queue_name,
        )
        self.web_app = create_app(settings)

    async def start(self):
        """Serve /health and consume the queue until request_stop() is called."""
        runner = web.AppRunner(self.web_app)
        await runner.setup()
        site = web.TCPSite(runner, port=self.settings.port)
        await site.start()
        logger.info(f"Print service for {self.settings.tenant_id} running on port {self.settings.port}")
        self.notifier.log_system_notification(
            f"Print service started for {self.settings.tenant_id}",
            queue=self.queue_name, printers=len(self.registry),
        )

        try:
            # pika's BlockingConnection is synchronous, so the consumer gets its own thread
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self.broker.run, self.coordinator.dispatch)
        finally:
            await runner.cleanup()

    def request_stop(self):
        logger.info("Shutting down...")
        self.broker.request_stop()

    def stop(self):
        self.broker.close()
        self.notifier.log_system_notification("Print service stopped")


async def start_server(config_file: Optional[str] = None) -> int:
    """Start the print relay. Returns the process exit code."""
    try:
        settings = load_settings(ConfigManager(config_file))
        setup_logging(settings.log_level, settings.log_dir)
        app = PrintApp(settings)
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Failed to start print service: {e}")
        return 1

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, app.request_stop)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises KeyboardInterrupt
            pass

    try:
        await app.start()
    finally:
        try:
            app.stop()
        except Exception as e:
            logger.error(f"Failed to stop print service: {e}")
            return 1
    return 0


def run_server(config_file: Optional[str] = None) -> int:
    try:
        return asyncio.run(start_server(config_file))
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0


def main():
    """Main entry point."""
    sys.exit(run_server())


if __name__ == "__main__":
    main()
