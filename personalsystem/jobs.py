"""
Recurring maintenance jobs, all in naive UTC.

Sunday 23:59 closes the bonus week and then purges the robbery log; expired
blacklist entries and uprank locks are cleaned up hourly.
"""
from datetime import timedelta
from typing import Any, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core.database.engine import AsyncSessionLocal
from personalsystem.core.scheduler import IntervalJob, Scheduler, WeeklyJob
from personalsystem.features.blacklist.service import purge_expired_entries
from personalsystem.features.bonus.service import close_current_week
from personalsystem.features.robbery.service import purge_robberies
from personalsystem.features.uprank_locks.service import expire_locks

SUNDAY = 6


def with_session(func: Callable, session_factory=AsyncSessionLocal) -> Callable[[], Awaitable[object]]:
    """Adapt a ``func(db)`` coroutine into a job opening its own session."""
    async def job():
        async with session_factory() as db:
            return await func(db)

    return job


async def close_week_and_purge_robberies(db: AsyncSession) -> dict[str, Any]:
    # The week total must include robbery bonuses before the purge cancels them
    week = await close_current_week(db)
    purged = await purge_robberies(db)
    return {"week_total": week.total_amount, **purged}


def create_scheduler(session_factory=AsyncSessionLocal) -> Scheduler:
    scheduler = Scheduler()
    scheduler.add(WeeklyJob("weekly-close", with_session(close_week_and_purge_robberies, session_factory), SUNDAY, 23, 59))
    scheduler.add(IntervalJob("blacklist-expiry", with_session(purge_expired_entries, session_factory), timedelta(hours=1)))
    scheduler.add(IntervalJob("uprank-lock-expiry", with_session(expire_locks, session_factory), timedelta(hours=1)))
    return scheduler
