"""Stuck-test recovery and waiting-test drain."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from inbox_placement.exceptions import InvalidTransitionError, PersistenceError
from inbox_placement.models import TestStatus, utcnow

if TYPE_CHECKING:
    from inbox_placement.config import Settings
    from inbox_placement.services.test_engine import TestEngine
    from inbox_placement.storage import TestStore

logger = structlog.get_logger(__name__)

STUCK_REASON = "processing_timeout"


@dataclass
class SweepReport:
    reset: list[str] = field(default_factory=list)
    processed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class RecoverySweep:
    """One sweep pass resets stuck tests, then drains waiting ones.

    A test counts as stuck when it has been ``processing`` for longer
    than ``stuck_threshold``. At most ``batch_size`` waiting tests are
    run per pass, one at a time with ``test_delay`` seconds between them.
    """

    def __init__(
        self,
        store: "TestStore",
        engine: "TestEngine",
        stuck_threshold: timedelta = timedelta(minutes=10),
        retention: timedelta = timedelta(hours=24),
        batch_size: int = 2,
        test_delay: float = 45.0,
    ) -> None:
        self.store = store
        self.engine = engine
        self.stuck_threshold = stuck_threshold
        self.retention = retention
        self.batch_size = batch_size
        self.test_delay = test_delay

    @classmethod
    def from_settings(
        cls, settings: "Settings", store: "TestStore", engine: "TestEngine"
    ) -> "RecoverySweep":
        return cls(
            store,
            engine,
            stuck_threshold=timedelta(minutes=settings.stuck_threshold_minutes),
            retention=timedelta(hours=settings.retention_hours),
            batch_size=settings.sweep_batch_size,
            test_delay=settings.sweep_test_delay,
        )

    async def run_once(self, now: datetime | None = None) -> SweepReport:
        now = now or utcnow()
        report = SweepReport()

        await self._reset_stuck(now, report)
        await self._drain_waiting(now, report)

        logger.info(
            "sweep_complete",
            reset=len(report.reset),
            processed=len(report.processed),
            failed=len(report.failed),
        )
        return report

    async def _reset_stuck(self, now: datetime, report: SweepReport) -> None:
        stuck = await self.store.find_stale(TestStatus.PROCESSING, now - self.stuck_threshold)
        for record in stuck:
            try:
                record.reset_stuck(STUCK_REASON, now=now)
                await self.store.save(record)
            except (InvalidTransitionError, PersistenceError) as e:
                logger.error("stuck_reset_failed", test_id=record.test_id, error=e.message)
                continue
            report.reset.append(record.test_id)
            logger.warning(
                "stuck_test_reset",
                test_id=record.test_id,
                started_at=record.started_at.isoformat() if record.started_at else None,
            )

    async def _drain_waiting(self, now: datetime, report: SweepReport) -> None:
        waiting = await self.store.find_waiting(now - self.retention, self.batch_size)
        if not waiting:
            logger.info("no_waiting_tests")
            return

        logger.info("waiting_tests_found", count=len(waiting))
        for index, record in enumerate(waiting):
            if index > 0 and self.test_delay > 0:
                await asyncio.sleep(self.test_delay)

            try:
                result = await self.engine.run_check(record.test_id)
            except Exception as e:
                logger.error("sweep_test_failed", test_id=record.test_id, error=str(e))
                await self._record_failure(record.test_id, str(e))
                report.failed.append(record.test_id)
                continue

            if result is not None and result.status == TestStatus.FAILED:
                report.failed.append(record.test_id)
            else:
                report.processed.append(record.test_id)

    async def _record_failure(self, test_id: str, error: str) -> None:
        try:
            record = await self.store.find_by_test_id(test_id)
            if record is None or record.status != TestStatus.PROCESSING:
                return
            record.mark_failed(error, background=True)
            await self.store.save(record)
        except PersistenceError as e:
            logger.error("sweep_failure_not_recorded", test_id=test_id, error=e.message)
