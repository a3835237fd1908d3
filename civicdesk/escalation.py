# Periodic escalation of stale issues

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from .config import ESCALATION_DEPARTMENT, ESCALATION_INTERVAL_SECONDS, ESCALATION_STALE_DAYS
from .lifecycle import IssueLifecycle

logger = logging.getLogger(__name__)


class EscalationScheduler:
    """Runs ``IssueLifecycle.escalate_stale`` every ``interval`` seconds.

    Started once from the app lifespan and cancelled on shutdown.
    """

    def __init__(self, lifecycle: IssueLifecycle,
                 interval: float = ESCALATION_INTERVAL_SECONDS,
                 stale_after: timedelta = timedelta(days=ESCALATION_STALE_DAYS),
                 department: str = ESCALATION_DEPARTMENT):
        self.lifecycle = lifecycle
        self.interval = interval
        self.stale_after = stale_after
        self.department = department
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> int:
        count = self.lifecycle.escalate_stale(stale_after=self.stale_after,
                                              department=self.department)
        if count:
            logger.info("Escalation tick promoted %d issue(s)", count)
        return count

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.tick()
            except Exception:
                logger.exception("Escalation tick failed")

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._run())
        logger.info("Escalation scheduler started (every %ss, stale after %s)",
                    self.interval, self.stale_after)
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Escalation scheduler stopped")
