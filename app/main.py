# Headless entry point: runs the sync orchestrator until SIGINT/SIGTERM

import asyncio
import signal
import sys
from typing import Optional

from core.logging import configure_logging, get_logger
from app.containers import AppContainer


class Application:
    """Owns the DI container and the process lifecycle."""

    def __init__(self, container: Optional[AppContainer] = None):
        self.container = container or AppContainer()
        self._shutdown_event = asyncio.Event()

        self.settings = self.container.settings()
        configure_logging(self.settings)
        self.logger = get_logger("trade_sync.main", component="application")

        self.logger.info(
            "Trade sync initializing",
            broker=self.settings.broker.name,
            environment=self.settings.environment.value,
            database=self.settings.database.url.split("://", 1)[0],
        )
        if not self.settings.has_broker_credentials():
            self.logger.warning("Broker credentials not configured; syncs will fail until a session is created")

        self.orchestrator = self.container.orchestrator()

    async def startup(self):
        await self.orchestrator.startup()

    async def shutdown(self):
        """Gracefully shutdown application."""
        self.logger.info("Shutting down trade sync")
        try:
            await self.orchestrator.stop()
            self.logger.info("Trade sync shutdown complete")
        except Exception as e:
            self.logger.error("Error during shutdown", error=str(e))

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        try:
            self.logger.info(f"Received shutdown signal: {signal.strsignal(signum)}")
            self._shutdown_event.set()
        except Exception as e:
            # Fallback to stderr if logging fails during shutdown
            print(f"Error in signal handler: {e}", file=sys.stderr)
            self._shutdown_event.set()

    async def run(self):
        """Run the application until shutdown."""
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            await self.startup()
            self.logger.info("Application is now running. Press Ctrl+C to exit.")
            await self._shutdown_event.wait()
        finally:
            await self.shutdown()


async def main():
    """Application entry point"""
    app = Application()
    await app.run()

if __name__ == "__main__":
    asyncio.run(main())
