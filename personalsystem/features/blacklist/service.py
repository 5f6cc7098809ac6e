"""
Blacklist lookups shared with HR applications.
"""
from typing import Optional
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.features.blacklist.models import BlacklistEntry
from personalsystem.features.blacklist.schemas import BlacklistCheck
from personalsystem.utils import get_logger, utcnow


log = get_logger(__name__)


async def get_entry(db: AsyncSession, discord_id: str) -> Optional[BlacklistEntry]:
    result = await db.execute(select(BlacklistEntry).where(BlacklistEntry.discord_id == discord_id))
    return result.scalar_one_or_none()


async def check_blacklist(db: AsyncSession, discord_id: str) -> BlacklistCheck:
    entry = await get_entry(db, discord_id)
    if entry is None:
        return BlacklistCheck(blacklisted=False)
    if not entry.is_active():
        return BlacklistCheck(blacklisted=False, expired=True)
    return BlacklistCheck(
        blacklisted=True,
        reason=entry.reason,
        expires_at=entry.expires_at,
        username=entry.username,
    )


async def purge_expired_entries(db: AsyncSession) -> int:
    """Delete entries whose expiry has passed. Returns the number removed."""
    result = await db.execute(
        delete(BlacklistEntry)
        .where(BlacklistEntry.expires_at.is_not(None), BlacklistEntry.expires_at <= utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount:
        log.info("Removed %d expired blacklist entries", result.rowcount)
    return result.rowcount or 0
