"""
Uprank lock API routes.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core.database.engine import get_db
from personalsystem.features.employees.models import Employee
from personalsystem.features.permissions.dependencies import require_permission
from personalsystem.features.uprank_locks.models import UprankLock
from personalsystem.features.uprank_locks.schemas import (
    AutoLockCreate,
    UprankLockCreate,
    UprankLockResponse,
    UprankLockStats,
    UprankLockStatus,
)
from personalsystem.features.uprank_locks.service import (
    create_team_lock,
    deactivate_locks,
    find_active_lock,
)
from personalsystem.features.users.dependencies import CurrentUser, get_current_user
from personalsystem.utils import get_logger, to_naive_utc, utcnow


log = get_logger(__name__)
router = APIRouter()


async def _get_lock(db: AsyncSession, lock_id: str) -> UprankLock:
    result = await db.execute(
        select(UprankLock)
        .where(UprankLock.id == lock_id)
        .execution_options(populate_existing=True)
    )
    lock = result.scalar_one_or_none()
    if lock is None:
        raise HTTPException(status_code=404, detail="Uprank lock not found")
    return lock


async def _require_employee(db: AsyncSession, employee_id: str) -> None:
    if await db.get(Employee, employee_id) is None:
        raise HTTPException(status_code=404, detail="Employee not found")


@router.get("", response_model=List[UprankLockResponse])
async def list_active_locks(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("uprank.view")),
):
    """Active, unexpired locks, soonest ending first."""
    result = await db.execute(
        select(UprankLock)
        .where(UprankLock.is_active.is_(True), UprankLock.locked_until > utcnow())
        .order_by(UprankLock.locked_until.asc())
    )
    return result.scalars().all()


@router.get("/stats", response_model=UprankLockStats)
async def get_lock_stats(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("uprank.view")),
):
    now = utcnow()
    total = await db.scalar(select(func.count(UprankLock.id)))
    active = await db.scalar(
        select(func.count(UprankLock.id))
        .where(UprankLock.is_active.is_(True), UprankLock.locked_until > now)
    )
    return UprankLockStats(total=total or 0, active=active or 0, expired=(total or 0) - (active or 0))


@router.get("/employee/{employee_id}", response_model=UprankLockStatus)
async def get_employee_lock(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_current_user),
):
    lock = await find_active_lock(db, employee_id)
    if lock is None:
        return UprankLockStatus(locked=False)
    return UprankLockStatus(locked=True, lock=lock)


@router.post("/auto")
async def create_auto_lock(
    payload: AutoLockCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission("uprank.manage")),
):
    """Lock an employee for their team's promotion cool-down."""
    await _require_employee(db, payload.employee_id)
    lock = await create_team_lock(db, payload.employee_id, payload.team, current_user.id)
    if lock is None:
        return {"created": False, "message": f"{payload.team} has no uprank lock"}
    await db.commit()
    lock = await _get_lock(db, lock.id)
    return {"created": True, "lock": UprankLockResponse.model_validate(lock)}


@router.post("", response_model=UprankLockResponse, status_code=status.HTTP_201_CREATED)
async def create_manual_lock(
    payload: UprankLockCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission("uprank.manage")),
):
    await _require_employee(db, payload.employee_id)
    locked_until = to_naive_utc(payload.locked_until)
    if locked_until <= utcnow():
        raise HTTPException(status_code=400, detail="locked_until must be in the future")

    await deactivate_locks(db, payload.employee_id)
    lock = UprankLock(
        employee_id=payload.employee_id,
        reason=payload.reason,
        team="Manual",
        locked_until=locked_until,
        created_by_id=current_user.id,
    )
    db.add(lock)
    await db.commit()
    return await _get_lock(db, lock.id)


@router.put("/{lock_id}/revoke", response_model=UprankLockResponse)
async def revoke_lock(
    lock_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("uprank.manage")),
):
    lock = await _get_lock(db, lock_id)
    lock.is_active = False
    await db.commit()
    return await _get_lock(db, lock_id)


@router.delete("/{lock_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lock(
    lock_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("uprank.manage")),
):
    await _get_lock(db, lock_id)
    await db.execute(delete(UprankLock).where(UprankLock.id == lock_id))
    await db.commit()
