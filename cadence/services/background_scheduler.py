"""
Background scheduler service for periodic jobs.

Runs the recurrence scan on a fixed interval and the maintenance pass once
a day. Uses APScheduler for in-process scheduling without external
dependencies.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from cadence.core.config import Settings, get_settings
from cadence.core.logger import setup_logger
from cadence.services.maintenance_scanner import MaintenanceScanner

logger = setup_logger(__name__)

SCAN_JOB_ID = "recurrence_scan"
MAINTENANCE_JOB_ID = "recurrence_maintenance"


class BackgroundScheduler:
    """
    Background scheduler for periodic jobs.

    Features:
    - Recurrence scan every SCAN_INTERVAL_MINUTES
    - Daily maintenance pass at MAINTENANCE_HOUR (UTC)
    - Initial scan right after startup (non-blocking)
    """

    def __init__(self, scanner: MaintenanceScanner, settings: Optional[Settings] = None):
        self._scanner = scanner
        self._settings = settings or get_settings()
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._startup_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return bool(self._scheduler and self._scheduler.running)

    def register_jobs(self, scheduler: AsyncIOScheduler) -> None:
        """Add the scan and maintenance jobs to a scheduler."""
        scheduler.add_job(
            self._run_scan,
            IntervalTrigger(minutes=self._settings.SCAN_INTERVAL_MINUTES),
            id=SCAN_JOB_ID,
            name="Recurrence Scan",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.add_job(
            self._run_maintenance,
            CronTrigger(hour=self._settings.MAINTENANCE_HOUR, minute=0, timezone="UTC"),
            id=MAINTENANCE_JOB_ID,
            name="Recurrence Maintenance",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    async def start(self):
        """Start the scheduler and run a first scan."""
        # Only run scheduler in non-test environments
        if self._settings.is_test:
            logger.info("Background scheduler disabled in test environment")
            return

        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self.register_jobs(self._scheduler)
        self._scheduler.start()
        logger.info(
            "Background scheduler started:\n"
            f"  - Recurrence scan: every {self._settings.SCAN_INTERVAL_MINUTES} minutes\n"
            f"  - Recurrence maintenance: daily {self._settings.MAINTENANCE_HOUR:02d}:00 UTC"
        )

        # Catch up on anything that became due while stopped (non-blocking)
        self._startup_task = asyncio.create_task(self._run_startup_scan())

    async def stop(self):
        """Stop the scheduler."""
        if self._startup_task and not self._startup_task.done():
            self._startup_task.cancel()
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Background scheduler stopped")

    async def _run_startup_scan(self):
        """Background wrapper for the initial scan with error handling."""
        try:
            logger.info("Starting initial recurrence scan...")
            await self._scanner.run_cycle()
            logger.info("Initial recurrence scan completed")
        except Exception as e:
            logger.error(f"Initial recurrence scan failed: {e}")

    async def _run_scan(self):
        try:
            await self._scanner.run_cycle()
        except Exception as e:
            logger.error(f"Recurrence scan failed: {e}")

    async def _run_maintenance(self):
        try:
            await self._scanner.run_maintenance()
        except Exception as e:
            logger.error(f"Recurrence maintenance failed: {e}")
