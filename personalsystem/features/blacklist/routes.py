"""
Blacklist API routes.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core.database.engine import get_db
from personalsystem.features.blacklist.models import BlacklistEntry
from personalsystem.features.blacklist.schemas import (
    BlacklistCheck,
    BlacklistCreate,
    BlacklistResponse,
    BlacklistStats,
    BlacklistUpdate,
)
from personalsystem.features.blacklist.service import check_blacklist, get_entry
from personalsystem.features.permissions.dependencies import require_permission
from personalsystem.features.users.dependencies import CurrentUser, get_current_user
from personalsystem.utils import get_logger, to_naive_utc, utcnow


log = get_logger(__name__)
router = APIRouter()


async def _get_entry_or_404(db: AsyncSession, entry_id: str) -> BlacklistEntry:
    result = await db.execute(
        select(BlacklistEntry)
        .where(BlacklistEntry.id == entry_id)
        .execution_options(populate_existing=True)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise HTTPException(status_code=404, detail="Blacklist entry not found")
    return entry


@router.get("", response_model=List[BlacklistResponse])
async def list_blacklist(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("blacklist.view")),
):
    result = await db.execute(select(BlacklistEntry).order_by(BlacklistEntry.created_at.desc()))
    return result.scalars().all()


@router.get("/check/{discord_id}", response_model=BlacklistCheck, response_model_exclude_none=True)
async def check_discord_id(
    discord_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_current_user),
):
    return await check_blacklist(db, discord_id)


@router.get("/stats", response_model=BlacklistStats)
async def get_blacklist_stats(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("blacklist.view")),
):
    """Counts over active entries only."""
    now = utcnow()
    result = await db.execute(select(BlacklistEntry))
    active = [entry for entry in result.scalars().all() if entry.is_active(now)]
    permanent = sum(1 for entry in active if entry.expires_at is None)
    return BlacklistStats(total=len(active), permanent=permanent, temporary=len(active) - permanent)


@router.post("", response_model=BlacklistResponse, status_code=status.HTTP_201_CREATED)
async def create_blacklist_entry(
    payload: BlacklistCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission("blacklist.manage")),
):
    if await get_entry(db, payload.discord_id) is not None:
        raise HTTPException(status_code=400, detail="Discord account is already blacklisted")

    entry = BlacklistEntry(
        discord_id=payload.discord_id,
        username=payload.username,
        reason=payload.reason,
        expires_at=to_naive_utc(payload.expires_at) if payload.expires_at else None,
        added_by_id=current_user.id,
    )
    db.add(entry)
    await db.commit()
    log.info("Blacklisted %s (%s)", payload.username, payload.discord_id)
    return await _get_entry_or_404(db, entry.id)


@router.put("/{entry_id}", response_model=BlacklistResponse)
async def update_blacklist_entry(
    entry_id: str,
    payload: BlacklistUpdate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("blacklist.manage")),
):
    entry = await _get_entry_or_404(db, entry_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("expires_at") is not None:
        changes["expires_at"] = to_naive_utc(changes["expires_at"])
    for key, value in changes.items():
        setattr(entry, key, value)
    await db.commit()
    return await _get_entry_or_404(db, entry_id)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blacklist_entry(
    entry_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("blacklist.manage")),
):
    await _get_entry_or_404(db, entry_id)
    await db.execute(delete(BlacklistEntry).where(BlacklistEntry.id == entry_id))
    await db.commit()
