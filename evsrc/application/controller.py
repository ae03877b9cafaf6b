"""Controller process lifecycle: prepare storage, run the queue until stopped."""

import asyncio
import logging
import signal

import logfire
from sqlalchemy.ext.asyncio import AsyncEngine

from evsrc.application.di import create_container
from evsrc.config import Config, configure_logging
from evsrc.infrastructure.event.worker import ReconcileQueue
from evsrc.infrastructure.persistence.database import create_tables

logger = logging.getLogger(__name__)


async def run_controller(config: Config, stop: asyncio.Event | None = None) -> None:
    """Reconcile sources until ``stop`` is set or the process is signalled."""
    configure_logging(config.logging)
    logfire.configure(send_to_logfire="if-token-present", console=False)
    logfire.instrument_httpx()

    stop = stop or asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    container = create_container(config)
    try:
        await create_tables(await container.get(AsyncEngine))

        queue = await container.get(ReconcileQueue)
        async with queue:
            logger.info("Controller running")
            await stop.wait()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await container.close()
        logger.info("Controller stopped")
