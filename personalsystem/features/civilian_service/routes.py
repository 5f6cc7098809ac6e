"""
Civilian service time tracking routes.
"""
from datetime import datetime, timedelta
from typing import Iterable, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core.database.engine import get_db
from personalsystem.features.civilian_service.models import CivilianServiceSession
from personalsystem.features.civilian_service.schemas import (
    ClockRequest,
    CurrentSessionResponse,
    DetectiveServiceStats,
    PeriodStats,
    ServiceOverview,
    ServiceSessionResponse,
    ServiceStats,
)
from personalsystem.features.employees.models import Employee
from personalsystem.features.permissions.dependencies import require_permission
from personalsystem.features.users.dependencies import CurrentUser
from personalsystem.utils import get_logger, utcnow


log = get_logger(__name__)
router = APIRouter()

DETECTIVE_DEPARTMENT = "Detectives"


def _require_employee_id(employee_id: Optional[str]) -> str:
    if not employee_id:
        raise HTTPException(status_code=400, detail="employee_id is required")
    return employee_id


async def _open_session(db: AsyncSession, employee_id: str) -> Optional[CivilianServiceSession]:
    result = await db.execute(
        select(CivilianServiceSession)
        .where(CivilianServiceSession.employee_id == employee_id, CivilianServiceSession.end_time.is_(None))
        .order_by(CivilianServiceSession.start_time.desc())
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


def period_stats(sessions: Iterable[CivilianServiceSession]) -> PeriodStats:
    """Totals over completed sessions; a running session is not counted yet."""
    sessions = [s for s in sessions if s.end_time is not None]
    minutes = sum(s.duration or 0 for s in sessions)
    return PeriodStats(total_minutes=minutes, total_hours=minutes // 60, sessions=len(sessions))


def period_starts(now: datetime) -> tuple[datetime, datetime, datetime]:
    """Start of today, of the current week (Monday) and of the current month."""
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week = today - timedelta(days=today.weekday())
    month = today.replace(day=1)
    return today, week, month


@router.get("/current", response_model=CurrentSessionResponse)
async def get_current_session(
    employee_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("detectives.view")),
):
    session = await _open_session(db, _require_employee_id(employee_id))
    return CurrentSessionResponse(active=session is not None, session=session)


@router.get("/sessions", response_model=List[ServiceSessionResponse])
async def list_sessions(
    employee_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("detectives.view")),
):
    result = await db.execute(
        select(CivilianServiceSession)
        .where(CivilianServiceSession.employee_id == _require_employee_id(employee_id))
        .order_by(CivilianServiceSession.start_time.desc())
        .offset(offset)
        .limit(limit)
    )
    return result.scalars().all()


@router.get("/stats", response_model=ServiceStats)
async def get_service_stats(
    employee_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("detectives.view")),
):
    employee_id = _require_employee_id(employee_id)
    result = await db.execute(
        select(CivilianServiceSession.duration)
        .where(CivilianServiceSession.employee_id == employee_id, CivilianServiceSession.end_time.is_not(None))
    )
    durations = [d or 0 for d in result.scalars().all()]
    total = sum(durations)
    average = round(total / len(durations)) if durations else 0
    current = await _open_session(db, employee_id)
    return ServiceStats(
        total_minutes=total,
        total_hours=total // 60,
        total_sessions=len(durations),
        average_minutes=average,
        average_hours=average // 60,
        is_active=current is not None,
        current_session_start=current.start_time if current else None,
    )


@router.get("/overview-stats", response_model=ServiceOverview)
async def get_overview_stats(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("detectives.view")),
):
    """Today, week and month totals over all active detectives."""
    detectives_result = await db.execute(
        select(Employee)
        .where(Employee.status == "ACTIVE", Employee.department.contains(DETECTIVE_DEPARTMENT))
        .order_by(Employee.rank_level.desc())
    )
    detectives = detectives_result.scalars().all()
    ids = [d.id for d in detectives]

    sessions: List[CivilianServiceSession] = []
    if ids:
        sessions_result = await db.execute(
            select(CivilianServiceSession).where(CivilianServiceSession.employee_id.in_(ids))
        )
        sessions = list(sessions_result.scalars().all())

    today, week, month = period_starts(utcnow())

    per_detective = []
    for detective in detectives:
        own = [s for s in sessions if s.employee_id == detective.id]
        active = next((s for s in own if s.end_time is None), None)
        per_detective.append(DetectiveServiceStats(
            employee=detective,
            today=period_stats(s for s in own if s.start_time >= today),
            week=period_stats(s for s in own if s.start_time >= week),
            month=period_stats(s for s in own if s.start_time >= month),
            total=period_stats(own),
            is_active=active is not None,
            current_session_start=active.start_time if active else None,
        ))

    return ServiceOverview(
        today=period_stats(s for s in sessions if s.start_time >= today),
        week=period_stats(s for s in sessions if s.start_time >= week),
        month=period_stats(s for s in sessions if s.start_time >= month),
        active_sessions=sum(1 for s in sessions if s.end_time is None),
        total_detectives=len(detectives),
        detectives=per_detective,
    )


@router.post("/clock-in", response_model=ServiceSessionResponse, status_code=status.HTTP_201_CREATED)
async def clock_in(
    payload: ClockRequest,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("detectives.manage")),
):
    employee_id = _require_employee_id(payload.employee_id)
    if await db.get(Employee, employee_id) is None:
        raise HTTPException(status_code=404, detail="Employee not found")
    if await _open_session(db, employee_id) is not None:
        raise HTTPException(status_code=400, detail="Employee is already clocked in")

    session = CivilianServiceSession(employee_id=employee_id, start_time=utcnow(), notes=payload.notes)
    db.add(session)
    await db.commit()
    return await _open_session(db, employee_id)


@router.post("/clock-out", response_model=ServiceSessionResponse)
async def clock_out(
    payload: ClockRequest,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("detectives.manage")),
):
    session = await _open_session(db, _require_employee_id(payload.employee_id))
    if session is None:
        raise HTTPException(status_code=400, detail="No active session")

    minutes = session.close()
    if payload.notes:
        session.notes = payload.notes
    await db.commit()
    log.info("Employee %s clocked out after %d minutes", session.employee_id, minutes)
    return session


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("detectives.manage")),
):
    if await db.get(CivilianServiceSession, session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    await db.execute(delete(CivilianServiceSession).where(CivilianServiceSession.id == session_id))
    await db.commit()
