"""
Employee roster API routes.

Provides listing, hiring, editing, promotions/demotions and termination.
Changes are pushed to connected clients as ``employee:*`` events.
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core.database.engine import get_db
from personalsystem.features.civilian_service.models import CivilianServiceSession
from personalsystem.features.employees import ranks
from personalsystem.features.employees.models import Employee
from personalsystem.features.employees.schemas import (
    EmployeeCreate,
    EmployeeListResponse,
    EmployeeResponse,
    EmployeeStats,
    EmployeeUpdate,
    RankChangeResponse,
    TerminateRequest,
)
from personalsystem.features.live.hub import hub
from personalsystem.features.permissions.dependencies import require_permission
from personalsystem.features.robbery.service import invalidate_employee_cache
from personalsystem.features.uprank_locks.service import (
    create_team_lock,
    deactivate_locks,
    find_active_lock,
)
from personalsystem.features.users.dependencies import CurrentUser, invalidate_user_cache
from personalsystem.features.users.models import User
from personalsystem.utils import get_logger, page_count, utcnow


log = get_logger(__name__)
router = APIRouter()


async def get_employee_or_404(db: AsyncSession, employee_id: str) -> Employee:
    result = await db.execute(
        select(Employee)
        .where(Employee.id == employee_id)
        .execution_options(populate_existing=True)
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


async def _taken_badges(db: AsyncSession, exclude_id: Optional[str] = None) -> list[str]:
    stmt = select(Employee.badge_number).where(Employee.badge_number.is_not(None))
    if exclude_id:
        stmt = stmt.where(Employee.id != exclude_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


def _apply_nickname(employee: Employee) -> None:
    user = employee.user
    user.display_name = ranks.nickname(employee.badge_number, user.display_name or user.username)


async def _after_change(employee: Employee, event: str) -> EmployeeResponse:
    invalidate_employee_cache()
    data = EmployeeResponse.model_validate(employee)
    if event == "created":
        await hub.broadcast_create("employee", data)
    else:
        await hub.broadcast_update("employee", data)
    return data


# ============================================================================
# Queries
# ============================================================================

@router.get("/stats/overview", response_model=EmployeeStats)
async def get_employee_stats(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("employees.view")),
):
    total = await db.scalar(select(func.count(Employee.id)))
    by_status = await db.execute(select(Employee.status, func.count(Employee.id)).group_by(Employee.status))
    by_department = await db.execute(
        select(Employee.department, func.count(Employee.id))
        .where(Employee.status == "ACTIVE")
        .group_by(Employee.department)
    )
    return EmployeeStats(
        total=total or 0,
        by_status={row[0]: row[1] for row in by_status.all()},
        by_department={row[0]: row[1] for row in by_department.all()},
    )


@router.get("", response_model=EmployeeListResponse)
async def list_employees(
    search: Optional[str] = None,
    department: Optional[str] = None,
    rank: Optional[str] = None,
    team: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("employees.view")),
):
    """List employees, highest rank first."""
    stmt = select(Employee).join(User, Employee.user_id == User.id)

    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(
            User.username.ilike(pattern),
            User.display_name.ilike(pattern),
            Employee.badge_number.ilike(pattern),
        ))
    if department:
        stmt = stmt.where(Employee.department.ilike(f"%{department}%"))
    if rank:
        stmt = stmt.where(Employee.rank == rank)
    if team:
        team_config = ranks.team_by_name(team)
        if team_config is None:
            raise HTTPException(status_code=400, detail=f"Unknown team {team}")
        stmt = stmt.where(Employee.rank_level.between(team_config.min_level, team_config.max_level))
    if status_filter:
        stmt = stmt.where(Employee.status == status_filter)

    total = await db.scalar(select(func.count()).select_from(stmt.subquery()))
    result = await db.execute(
        stmt.order_by(Employee.rank_level.desc(), User.username.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return EmployeeListResponse(
        data=[EmployeeResponse.model_validate(e) for e in result.scalars().all()],
        total=total or 0,
        page=page,
        limit=limit,
        total_pages=page_count(total or 0, limit),
    )


@router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("employees.view")),
):
    return await get_employee_or_404(db, employee_id)


# ============================================================================
# Mutations
# ============================================================================

@router.post("", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
async def create_employee(
    payload: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("employees.edit")),
):
    """Put an existing user on the roster."""
    user = await db.get(User, payload.user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    existing = await db.scalar(select(Employee.id).where(Employee.user_id == payload.user_id))
    if existing:
        raise HTTPException(status_code=400, detail="User is already an employee")

    badge = payload.badge_number.strip().upper() if payload.badge_number else None
    if badge:
        if badge in await _taken_badges(db):
            raise HTTPException(status_code=400, detail="Badge number already in use")
        if not ranks.badge_fits_level(badge, payload.rank_level):
            raise HTTPException(status_code=400, detail="Badge number does not match the rank's team")

    employee = Employee(
        user_id=payload.user_id,
        badge_number=badge,
        rank=payload.rank,
        rank_level=payload.rank_level,
        department=payload.department,
    )
    db.add(employee)
    await db.commit()

    employee = await get_employee_or_404(db, employee.id)
    if badge:
        _apply_nickname(employee)
        await db.commit()
    log.info("Hired %s as %s", user.username, employee.rank)
    return await _after_change(employee, "created")


@router.put("/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: str,
    payload: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("employees.edit")),
):
    employee = await get_employee_or_404(db, employee_id)
    changes = payload.model_dump(exclude_unset=True)

    level = changes.get("rank_level", employee.rank_level)
    if "rank_level" in changes and "rank" not in changes:
        changes["rank"] = ranks.rank_for_level(level)

    badge = changes.get("badge_number")
    if badge and badge in await _taken_badges(db, exclude_id=employee.id):
        raise HTTPException(status_code=400, detail="Badge number already in use")
    # A rank change alone must still leave the current badge inside the new team's range
    if "badge_number" not in changes and "rank_level" in changes:
        badge = employee.badge_number
    if badge and not ranks.badge_fits_level(badge, level):
        team = ranks.team_for_level(level)
        raise HTTPException(
            status_code=400,
            detail=(
                f"Badge number must be between {ranks.format_badge(team.badge_min)} and "
                f"{ranks.format_badge(team.badge_max)} for {team.label}"
            ),
        )

    for key, value in changes.items():
        setattr(employee, key, value)
    if "badge_number" in changes:
        _apply_nickname(employee)

    await db.commit()
    employee = await get_employee_or_404(db, employee_id)
    return await _after_change(employee, "updated")


async def _change_rank(
    db: AsyncSession,
    employee: Employee,
    new_level: int,
    current_user: CurrentUser,
) -> RankChangeResponse:
    old_rank = employee.rank
    old_team = ranks.team_for_level(employee.rank_level)
    new_team = ranks.team_for_level(new_level)
    team_changed = old_team != new_team
    lock_created = False

    employee.rank_level = new_level
    employee.rank = ranks.rank_for_level(new_level)

    if team_changed:
        badge = ranks.find_free_badge(new_team, await _taken_badges(db, exclude_id=employee.id))
        if badge is None:
            log.warning("No free badge left in %s", new_team.label)
        employee.badge_number = badge
        _apply_nickname(employee)
        if new_level > old_team.max_level:
            lock_created = await create_team_lock(db, employee.id, new_team.label, current_user.id) is not None

    await db.commit()
    employee = await get_employee_or_404(db, employee.id)
    data = await _after_change(employee, "updated")
    log.info("%s: %s -> %s", employee.user.username, old_rank, employee.rank)
    return RankChangeResponse(
        employee=data,
        old_rank=old_rank,
        new_rank=employee.rank,
        new_level=employee.rank_level,
        new_badge_number=employee.badge_number,
        team_changed=team_changed,
        lock_created=lock_created,
    )


@router.post("/{employee_id}/uprank", response_model=RankChangeResponse)
async def uprank_employee(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission("employees.rank", "employees.edit")),
):
    employee = await get_employee_or_404(db, employee_id)
    if employee.rank_level >= ranks.MAX_LEVEL:
        raise HTTPException(status_code=400, detail="Employee already holds the highest rank")

    lock = await find_active_lock(db, employee_id)
    if lock is not None:
        raise HTTPException(
            status_code=400,
            detail=f"Employee is uprank-locked until {lock.locked_until.isoformat()}",
        )

    return await _change_rank(db, employee, employee.rank_level + 1, current_user)


@router.post("/{employee_id}/downrank", response_model=RankChangeResponse)
async def downrank_employee(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission("employees.rank", "employees.edit")),
):
    employee = await get_employee_or_404(db, employee_id)
    if employee.rank_level <= ranks.MIN_LEVEL:
        raise HTTPException(status_code=400, detail="Employee already holds the lowest rank")

    return await _change_rank(db, employee, employee.rank_level - 1, current_user)


@router.post("/{employee_id}/terminate", response_model=EmployeeResponse)
async def terminate_employee(
    employee_id: str,
    payload: TerminateRequest,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("employees.delete")),
):
    """Terminate: release the badge, close open records and deactivate the user."""
    employee = await get_employee_or_404(db, employee_id)
    now = utcnow()

    employee.status = "TERMINATED"
    employee.badge_number = None
    employee.notes = payload.reason or employee.notes
    employee.user.is_active = False
    employee.user.display_name = ranks.strip_badge_prefix(employee.user.display_name or employee.user.username)

    open_sessions = await db.execute(
        select(CivilianServiceSession)
        .where(CivilianServiceSession.employee_id == employee_id, CivilianServiceSession.end_time.is_(None))
    )
    for service_session in open_sessions.scalars().all():
        service_session.close(now)
    await deactivate_locks(db, employee_id)
    await db.commit()

    invalidate_user_cache(employee.user_id)
    employee = await get_employee_or_404(db, employee_id)
    log.info("Terminated %s: %s", employee.user.username, payload.reason)
    await hub.broadcast_delete("employee", employee.id)
    invalidate_employee_cache()
    return employee


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employee(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("employees.delete")),
):
    """Soft delete."""
    employee = await get_employee_or_404(db, employee_id)
    employee.status = "TERMINATED"
    await db.commit()
    invalidate_employee_cache()
    await hub.broadcast_delete("employee", employee_id)
