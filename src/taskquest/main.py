"""
TaskQuest - Application Entry Point
===================================

Bootstrap
---------
- Config validation
- Logging
- Database initialization and schema
- ConfigManager initialization
- Event bus
- Service container initialization
- HTTP / WebSocket server lifecycle
- Graceful shutdown
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Optional, Tuple

from aiohttp import web

from taskquest.core.config.config import Config
from taskquest.core.config.manager import ConfigManager
from taskquest.core.database.service import DatabaseService
from taskquest.core.event.bus import EventBus
from taskquest.core.logging.logger import get_logger, setup_logging, shutdown_logging
from taskquest.core.services.container import ServiceContainer
from taskquest.web.app import create_app

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================


async def _startup() -> Tuple[ServiceContainer, EventBus, web.AppRunner]:
    """Initialize all infrastructure components before serving requests."""
    logger.info("========== TASKQUEST INITIALIZATION START ==========")

    # Step 1: Validate configuration early
    try:
        Config.validate()
        logger.info("✓ Configuration validated")
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    # Step 2: Initialize database service and schema
    try:
        await DatabaseService.initialize()
        await DatabaseService.create_schema()
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    # Step 3: Initialize config manager
    try:
        await ConfigManager.initialize()
        logger.info("✓ Config manager initialized")
    except Exception as exc:
        logger.critical(f"Config manager initialization failed: {exc}", exc_info=True)
        raise

    # Step 4: Event bus
    event_bus = EventBus(config_manager=ConfigManager)
    ConfigManager.attach_event_bus(event_bus)
    logger.info("✓ Event bus available")

    # Step 5: Initialize service container
    try:
        container = ServiceContainer(
            config_manager=ConfigManager,
            event_bus=event_bus,
            logger=get_logger("taskquest.core.services.container"),
        )
        await container.initialize()
        logger.info("✓ Service container initialized")
    except Exception as exc:
        logger.critical(f"Service container initialization failed: {exc}", exc_info=True)
        raise

    # Step 6: HTTP server
    try:
        runner = web.AppRunner(create_app(container, event_bus))
        await runner.setup()
        site = web.TCPSite(runner, Config.HTTP_HOST, Config.HTTP_PORT)
        await site.start()
        logger.info(f"✓ HTTP server listening on {Config.HTTP_HOST}:{Config.HTTP_PORT}")
    except Exception as exc:
        logger.critical(f"HTTP server startup failed: {exc}", exc_info=True)
        raise

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return container, event_bus, runner


# ============================================================================
# Application Shutdown
# ============================================================================


async def _shutdown(
    container: Optional[ServiceContainer],
    event_bus: Optional[EventBus],
    runner: Optional[web.AppRunner],
) -> None:
    """Gracefully stop serving and release infrastructure."""
    logger.info("========== TASKQUEST SHUTDOWN START ==========")

    # Step 1: Stop accepting requests, close sockets
    if runner is not None:
        try:
            await runner.cleanup()
            logger.info("✓ HTTP server stopped")
        except Exception as exc:
            logger.error(f"Error while stopping HTTP server: {exc}", exc_info=True)

    # Step 2: Let background listeners (push) finish
    if event_bus is not None:
        try:
            await event_bus.drain()
            logger.info("✓ Event bus drained")
        except Exception as exc:
            logger.error(f"Event bus drain error: {exc}", exc_info=True)

    # Step 3: Shutdown service container
    if container is not None:
        try:
            await container.shutdown()
            logger.info("✓ Service container shut down")
        except Exception as exc:
            logger.error(f"Service container shutdown error: {exc}", exc_info=True)

    # Step 4: Shutdown database
    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Application Entrypoint
# ============================================================================


async def main() -> None:
    """
    TaskQuest Entry Point.

    Lifecycle:
        1. Validate configuration
        2. Initialize infrastructure (DB, ConfigManager, EventBus, Services)
        3. Serve HTTP until SIGINT / SIGTERM
        4. Handle shutdown gracefully
    """
    container: Optional[ServiceContainer] = None
    event_bus: Optional[EventBus] = None
    runner: Optional[web.AppRunner] = None
    stop = asyncio.Event()
    _install_signal_handlers(asyncio.get_running_loop(), stop)

    try:
        container, event_bus, runner = await _startup()
        await stop.wait()
        logger.info("Shutdown signal received")

    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise

    except Exception as exc:
        logger.critical(f"Fatal startup error: {exc}", exc_info=True)
        raise

    finally:
        await _shutdown(container, event_bus, runner)


# ============================================================================
# Process Startup
# ============================================================================


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> None:
    """Install signal handlers that trigger graceful shutdown."""
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
            logger.debug(f"{sig.name} handler installed")
        except NotImplementedError:
            logger.debug(f"{sig.name} not supported on this platform (likely Windows)")


def run() -> None:
    """Console-script entry point."""
    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server manually stopped via keyboard interrupt.")
    except Exception as exc:
        logger.critical(f"Startup failure: {exc}", exc_info=True)
        sys.exit(1)
    finally:
        logger.info("Event loop closed.")
        shutdown_logging()


if __name__ == "__main__":
    run()
