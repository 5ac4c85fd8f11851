"""APScheduler-based recovery sweep scheduler."""

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from inbox_placement.models import utcnow

if TYPE_CHECKING:
    from inbox_placement.config import Settings
    from inbox_placement.services.sweep import RecoverySweep, SweepReport
    from inbox_placement.storage import TestStore

logger = structlog.get_logger(__name__)

PURGE_INTERVAL_HOURS = 1


class SweepScheduler:
    """Run the recovery sweep on a fixed interval, independent of traffic."""

    def __init__(self, settings: "Settings", sweep: "RecoverySweep", store: "TestStore"):
        self.settings = settings
        self.sweep = sweep
        self.store = store
        self.scheduler = AsyncIOScheduler()
        self._shutdown = asyncio.Event()

    async def run(self) -> None:
        """Start scheduler and run until shutdown."""
        logger.info(
            "scheduler_starting",
            sweep_interval=self.settings.sweep_interval_seconds,
            batch_size=self.settings.sweep_batch_size,
        )

        self.scheduler.add_job(
            self._run_sweep,
            trigger=IntervalTrigger(seconds=self.settings.sweep_interval_seconds),
            id="recovery_sweep",
            name="Stuck-test recovery sweep",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self._purge_expired,
            trigger=IntervalTrigger(hours=PURGE_INTERVAL_HOURS),
            id="purge_expired",
            name="Expired test purge",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        self.scheduler.start()
        logger.info("scheduler_running")

        await self._shutdown.wait()

        self.scheduler.shutdown(wait=True)
        logger.info("scheduler_stopped")

    async def _run_sweep(self) -> None:
        logger.info("sweep_job_starting")
        try:
            await self.sweep.run_once()
        except Exception as e:
            logger.error("sweep_job_failed", error=str(e))

    async def _purge_expired(self) -> None:
        cutoff = utcnow() - timedelta(hours=self.settings.retention_hours)
        try:
            purged = await self.store.purge_expired(cutoff)
            logger.info("purge_job_complete", purged=purged)
        except Exception as e:
            logger.error("purge_job_failed", error=str(e))

    async def run_now(self) -> "SweepReport":
        """Run one sweep pass immediately."""
        logger.info("manual_sweep_triggered")
        return await self.sweep.run_once()

    def request_shutdown(self) -> None:
        """Signal graceful shutdown."""
        logger.info("scheduler_shutdown_requested")
        self._shutdown.set()
