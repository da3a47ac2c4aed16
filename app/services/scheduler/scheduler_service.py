"""
Background scheduler for periodic maintenance work.

Runs inside the FastAPI process (started from the lifespan handler) and
supervises deployment provisioning: deployments that stay pending or
configuring longer than PROVISIONING_TIMEOUT_MINUTES are failed, which
refunds the user and frees the hosting account slot. It also ends a
scheduled maintenance window once its end time has passed.
"""

import asyncio
from typing import Optional

from app.config import settings
from app.db import get_db_session
from app.services.deployment import deployment_service
from app.services.maintenance_service import maintenance_service
from app.utils.logger import get_logger

logger = get_logger("scheduler")


class SchedulerService:
    """Periodic provisioning supervisor."""

    def __init__(self, check_interval: Optional[int] = None, startup_delay: float = 5.0):
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.check_interval = check_interval or settings.supervisor_interval_seconds
        self.startup_delay = startup_delay

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_scheduler())
        logger.info(f"Background scheduler started (check_interval={self.check_interval}s)")

    async def stop(self):
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Background scheduler stopped")

    async def _run_scheduler(self):
        await asyncio.sleep(self.startup_delay)

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Scheduler error while supervising deployments: {e}", exc_info=True)

            try:
                await asyncio.sleep(self.check_interval)
            except asyncio.CancelledError:
                break

    async def run_once(self) -> int:
        """One supervision pass. Returns the number of deployments failed."""
        async with get_db_session() as db:
            if await maintenance_service.expire_if_due(db):
                logger.info("Scheduler: scheduled maintenance window ended")
            failed = await deployment_service.fail_stuck(db)
        if failed:
            logger.warning(f"Scheduler: failed {failed} stuck deployment(s)")
        return failed


# Global scheduler instance
scheduler_service = SchedulerService()
