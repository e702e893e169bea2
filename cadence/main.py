"""
Cadence scheduler process.

Initializes storage and runs the background scheduler until interrupted.
"""

import asyncio
from contextlib import asynccontextmanager

from cadence.core.config import get_settings
from cadence.core.logger import setup_logger

logger = setup_logger(__name__)


@asynccontextmanager
async def lifespan():
    """Startup/shutdown of the scheduler process."""
    # Startup
    settings = get_settings()
    logger.info(f"Starting cadence scheduler in {settings.ENVIRONMENT} mode...")

    if settings.is_local:
        from cadence.infrastructure.local.database import init_db

        await init_db()

    from cadence.deps import get_maintenance_scanner
    from cadence.services.background_scheduler import BackgroundScheduler

    scheduler = BackgroundScheduler(get_maintenance_scanner(), settings)
    await scheduler.start()

    try:
        yield scheduler
    finally:
        # Shutdown
        logger.info("Shutting down cadence scheduler...")
        await scheduler.stop()


async def run():
    async with lifespan():
        await asyncio.Event().wait()


def main():
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
