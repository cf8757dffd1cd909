"""
AI Stocks Bot — Pipeline Runner
Starts and manages the daily scheduler task with graceful shutdown.
"""

import asyncio
import logging
from typing import Optional

from pipeline.scheduler import DailyScheduler

logger = logging.getLogger(__name__)


class PipelineRunner:
    """Manages the daily scheduler lifecycle."""

    JOB_ID = "daily_analytics"
    JOB_NAME = "Daily Analytics Broadcast"

    def __init__(self, scheduler: DailyScheduler):
        self._scheduler = scheduler
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the scheduler as a background task."""
        logger.info("Starting daily analytics pipeline...")
        self._task = asyncio.create_task(self._scheduler.run(), name="scheduler")
        # Let the task compute its first fire time before reporting.
        await asyncio.sleep(0)
        logger.info(f"  Job: {self.JOB_NAME} ({self.JOB_ID}), next run: {self._scheduler.next_fire_at}")

    async def stop(self):
        """Stop the scheduler gracefully."""
        if self._task is None:
            return
        self._scheduler.stop()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Daily analytics pipeline stopped")

    async def wait(self):
        """Block until the scheduler task finishes (normally never)."""
        if self._task is not None:
            await self._task

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_job_status(self) -> list[dict]:
        """Get status of the scheduled job."""
        if not self.is_running:
            return []

        next_run = self._scheduler.next_fire_at
        return [{
            "id": self.JOB_ID,
            "name": self.JOB_NAME,
            "next_run": next_run.isoformat() if next_run else "pending",
            "fired": self._scheduler.fired,
        }]
