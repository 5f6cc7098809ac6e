"""
Uprank lock lookups and creation shared by the lock and employee routes.
"""
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.features.employees.ranks import lock_weeks_for_team
from personalsystem.features.uprank_locks.models import UprankLock
from personalsystem.utils import get_logger, utcnow


log = get_logger(__name__)


async def find_active_lock(db: AsyncSession, employee_id: str, now: Optional[datetime] = None) -> Optional[UprankLock]:
    """The latest-ending lock that is active and not yet expired."""
    now = now or utcnow()
    result = await db.execute(
        select(UprankLock)
        .where(
            UprankLock.employee_id == employee_id,
            UprankLock.is_active.is_(True),
            UprankLock.locked_until > now,
        )
        .order_by(UprankLock.locked_until.desc())
        .limit(1)
    )
    return result.scalars().first()


async def deactivate_locks(db: AsyncSession, employee_id: str) -> None:
    await db.execute(
        update(UprankLock)
        .where(UprankLock.employee_id == employee_id, UprankLock.is_active.is_(True))
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )


async def create_team_lock(
    db: AsyncSession,
    employee_id: str,
    team: str,
    created_by_id: Optional[str] = None,
) -> Optional[UprankLock]:
    """
    Replace the employee's locks with the automatic lock for ``team``.

    Returns None (and changes nothing) for teams without a lock duration.
    The caller commits.
    """
    weeks = lock_weeks_for_team(team)
    if weeks <= 0:
        return None

    await deactivate_locks(db, employee_id)
    lock = UprankLock(
        employee_id=employee_id,
        reason=f"Automatic lock after joining {team}",
        team=team,
        locked_until=utcnow() + timedelta(weeks=weeks),
        is_active=True,
        created_by_id=created_by_id,
    )
    db.add(lock)
    await db.flush()
    log.info("Created %d week uprank lock for employee %s (%s)", weeks, employee_id, team)
    return lock


async def expire_locks(db: AsyncSession) -> int:
    """Deactivate locks whose end date has passed. Returns the number changed."""
    result = await db.execute(
        update(UprankLock)
        .where(UprankLock.is_active.is_(True), UprankLock.locked_until <= utcnow())
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount:
        log.info("Expired %d uprank locks", result.rowcount)
    return result.rowcount or 0
