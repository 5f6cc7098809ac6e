"""
Minimal asyncio job scheduler.

Each job runs in its own task: sleep until the next fire time, run, repeat.
A failing run is logged and the job keeps its schedule.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

from personalsystem.utils import get_logger, utcnow


log = get_logger(__name__)

JobFunc = Callable[[], Awaitable[object]]


def next_weekly_run(now: datetime, weekday: int, hour: int, minute: int) -> datetime:
    """
    Next time strictly after ``now`` falling on ``weekday`` (Monday is 0)
    at ``hour``:``minute``.
    """
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    candidate += timedelta(days=(weekday - now.weekday()) % 7)
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate


@dataclass
class WeeklyJob:
    name: str
    func: JobFunc
    weekday: int
    hour: int
    minute: int

    def next_run(self, now: datetime) -> datetime:
        return next_weekly_run(now, self.weekday, self.hour, self.minute)


@dataclass
class IntervalJob:
    name: str
    func: JobFunc
    interval: timedelta

    def next_run(self, now: datetime) -> datetime:
        return now + self.interval


@dataclass
class Scheduler:
    jobs: List[object] = field(default_factory=list)
    _tasks: List[asyncio.Task] = field(default_factory=list)

    def add(self, job) -> None:
        self.jobs.append(job)

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def run_job(self, job) -> bool:
        """Run ``job`` once. Returns False if it raised."""
        try:
            await job.func()
        except Exception:
            log.exception("Scheduled job %s failed", job.name)
            return False
        log.info("Scheduled job %s finished", job.name)
        return True

    async def _loop(self, job) -> None:
        while True:
            now = utcnow()
            fire_at = job.next_run(now)
            log.debug("Job %s next run at %s", job.name, fire_at)
            await asyncio.sleep((fire_at - now).total_seconds())
            await self.run_job(job)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [asyncio.create_task(self._loop(job), name=job.name) for job in self.jobs]
        log.info("Scheduler started with %d jobs", len(self._tasks))

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        log.info("Scheduler stopped")
