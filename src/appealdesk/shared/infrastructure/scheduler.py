"""
Background Jobs
===============

APScheduler wrapper for the periodic jobs of the service: the escalation
sweep and rate limit window cleanup.
"""

from typing import Any, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from appealdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class JobScheduler:
    """
    Wrapper for APScheduler running interval jobs on the event loop.

    Jobs may be registered before or after ``start``. Each job runs at most
    one instance at a time and missed runs are coalesced.
    """

    def __init__(self):
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._jobs: Dict[str, Dict[str, Any]] = {}
        self._running = False

    def add_interval_job(
        self,
        job_id: str,
        func: Callable[[], Any],
        interval_seconds: int,
        name: Optional[str] = None,
    ) -> None:
        """Register ``func`` to run every ``interval_seconds``. Replaces a job with the same id."""
        self._jobs[job_id] = {
            "func": func,
            "seconds": interval_seconds,
            "name": name or job_id,
        }
        if self._scheduler is not None:
            self._schedule(job_id)

    async def start(self) -> None:
        """Start the scheduler with every registered job."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        for job_id in self._jobs:
            self._schedule(job_id)
        self._scheduler.start()
        self._running = True

        logger.info("Scheduler started", extra={"jobs": self.job_ids})

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("Scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def job_ids(self) -> List[str]:
        return sorted(self._jobs)

    def _schedule(self, job_id: str) -> None:
        job = self._jobs[job_id]
        self._scheduler.add_job(
            job["func"],
            "interval",
            seconds=job["seconds"],
            id=job_id,
            name=job["name"],
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
