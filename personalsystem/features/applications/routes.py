"""
HR application API routes.

Applicants are checked against the blacklist on creation and again on
acceptance. Accepting hires the applicant as a Cadet.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core.database.engine import get_db
from personalsystem.features.applications.models import Application, OPEN_STATUSES
from personalsystem.features.applications.schemas import (
    AcceptApplication,
    AcceptResponse,
    ApplicationCreate,
    ApplicationResponse,
    ApplicationStats,
    ApplicationUpdate,
    RejectApplication,
    ScheduleInterview,
)
from personalsystem.features.blacklist.models import BlacklistEntry
from personalsystem.features.blacklist.schemas import BlacklistCheck
from personalsystem.features.blacklist.service import check_blacklist, get_entry
from personalsystem.features.bonus.service import (
    employee_id_for_user,
    trigger_application_completed,
    trigger_application_rejected,
)
from personalsystem.features.employees.models import Employee
from personalsystem.features.employees.ranks import rank_for_level
from personalsystem.features.employees.schemas import EmployeeResponse
from personalsystem.features.live.hub import hub
from personalsystem.features.permissions.dependencies import require_permission
from personalsystem.features.robbery.service import invalidate_employee_cache
from personalsystem.features.users.dependencies import CurrentUser
from personalsystem.features.users.models import User
from personalsystem.utils import get_logger, to_naive_utc, utcnow


log = get_logger(__name__)
router = APIRouter()


async def _get_application(db: AsyncSession, application_id: str) -> Application:
    result = await db.execute(
        select(Application)
        .where(Application.id == application_id)
        .execution_options(populate_existing=True)
    )
    application = result.scalar_one_or_none()
    if application is None:
        raise HTTPException(status_code=404, detail="Application not found")
    return application


async def _refuse_blacklisted(db: AsyncSession, discord_id: str) -> None:
    entry = await get_entry(db, discord_id)
    if entry is not None and entry.is_active():
        raise HTTPException(
            status_code=400,
            detail={
                "error": "BLACKLISTED",
                "message": f"Applicant is blacklisted: {entry.reason}",
                "reason": entry.reason,
                "expires_at": entry.expires_at.isoformat() if entry.expires_at else None,
            },
        )


async def _publish(application: Application, event: str) -> ApplicationResponse:
    data = ApplicationResponse.model_validate(application)
    if event == "created":
        await hub.broadcast_create("application", data)
    else:
        await hub.broadcast_update("application", data)
    return data


@router.get("", response_model=List[ApplicationResponse])
async def list_applications(
    status_filter: Optional[str] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("hr.view")),
):
    stmt = select(Application)
    if status_filter and status_filter != "ALL":
        stmt = stmt.where(Application.status == status_filter)
    result = await db.execute(stmt.order_by(Application.created_at.desc()))
    return result.scalars().all()


@router.get("/stats", response_model=ApplicationStats)
async def get_application_stats(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("hr.view")),
):
    rows = await db.execute(select(Application.status, func.count(Application.id)).group_by(Application.status))
    counts = {row[0]: row[1] for row in rows.all()}
    return ApplicationStats(
        pending=counts.get("PENDING", 0),
        interview=counts.get("INTERVIEW", 0),
        accepted=counts.get("ACCEPTED", 0),
        rejected=counts.get("REJECTED", 0),
        total=sum(counts.values()),
    )


@router.get("/check-blacklist/{discord_id}", response_model=BlacklistCheck, response_model_exclude_none=True)
async def check_applicant_blacklist(
    discord_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("hr.view")),
):
    return await check_blacklist(db, discord_id)


@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
async def create_application(
    payload: ApplicationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission("hr.manage")),
):
    await _refuse_blacklisted(db, payload.discord_id)

    open_application = await db.scalar(
        select(Application.id).where(
            Application.discord_id == payload.discord_id,
            Application.status.in_(OPEN_STATUSES),
        )
    )
    if open_application:
        raise HTTPException(status_code=400, detail="An open application already exists for this Discord ID")

    application = Application(**payload.model_dump(), created_by_id=current_user.id)
    db.add(application)
    await db.commit()
    return await _publish(await _get_application(db, application.id), "created")


@router.put("/{application_id}", response_model=ApplicationResponse)
async def update_application(
    application_id: str,
    payload: ApplicationUpdate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("hr.manage")),
):
    application = await _get_application(db, application_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(application, key, value)
    await db.commit()
    return await _publish(await _get_application(db, application_id), "updated")


@router.put("/{application_id}/schedule-interview", response_model=ApplicationResponse)
async def schedule_interview(
    application_id: str,
    payload: ScheduleInterview,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("hr.manage")),
):
    application = await _get_application(db, application_id)
    application.status = "INTERVIEW"
    application.interview_date = to_naive_utc(payload.interview_date)
    await db.commit()
    return await _publish(await _get_application(db, application_id), "updated")


@router.put("/{application_id}/accept", response_model=AcceptResponse)
async def accept_application(
    application_id: str,
    payload: AcceptApplication,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission("hr.manage")),
):
    """Hire the applicant as a Cadet, creating their user if needed."""
    application = await _get_application(db, application_id)
    await _refuse_blacklisted(db, application.discord_id)

    result = await db.execute(select(User).where(User.discord_id == application.discord_id))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(
            discord_id=application.discord_id,
            username=application.discord_username,
            display_name=application.discord_username,
        )
        db.add(user)
        await db.flush()
    elif await db.scalar(select(Employee.id).where(Employee.user_id == user.id)):
        raise HTTPException(status_code=400, detail="This person is already an employee")

    employee = Employee(user_id=user.id, rank=rank_for_level(1), rank_level=1, department="Patrol", status="ACTIVE")
    db.add(employee)

    application.status = "ACCEPTED"
    if payload.interview_notes is not None:
        application.interview_notes = payload.interview_notes
    application.processed_by_id = current_user.id
    application.processed_at = utcnow()

    processor_employee_id = await employee_id_for_user(db, current_user.id)
    if processor_employee_id:
        await trigger_application_completed(db, processor_employee_id, application.discord_username, application.id)
    await db.commit()

    result = await db.execute(
        select(Employee).where(Employee.id == employee.id).execution_options(populate_existing=True)
    )
    employee_data = EmployeeResponse.model_validate(result.scalar_one())
    application_data = await _publish(await _get_application(db, application_id), "updated")
    invalidate_employee_cache()
    await hub.broadcast_create("employee", employee_data)
    log.info("Hired %s from application %s", application.discord_username, application_id)
    return AcceptResponse(
        application=application_data,
        employee=employee_data,
        message=f"{application.discord_username} was hired as {employee_data.rank}",
    )


@router.put("/{application_id}/reject", response_model=ApplicationResponse)
async def reject_application(
    application_id: str,
    payload: RejectApplication,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission("hr.manage")),
):
    application = await _get_application(db, application_id)

    if payload.add_to_blacklist:
        reason = payload.blacklist_reason or payload.rejection_reason
        expires_at = to_naive_utc(payload.blacklist_expires) if payload.blacklist_expires else None
        entry = await get_entry(db, application.discord_id)
        if entry is None:
            db.add(BlacklistEntry(
                discord_id=application.discord_id,
                username=application.discord_username,
                reason=reason,
                expires_at=expires_at,
                added_by_id=current_user.id,
            ))
        else:
            entry.reason = reason
            entry.expires_at = expires_at

    application.status = "REJECTED"
    application.rejection_reason = payload.rejection_reason
    application.processed_by_id = current_user.id
    application.processed_at = utcnow()

    processor_employee_id = await employee_id_for_user(db, current_user.id)
    if processor_employee_id:
        await trigger_application_rejected(db, processor_employee_id, application.discord_username, application.id)
    await db.commit()
    return await _publish(await _get_application(db, application_id), "updated")


@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_application(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("hr.manage")),
):
    await _get_application(db, application_id)
    await db.execute(delete(Application).where(Application.id == application_id))
    await db.commit()
    await hub.broadcast_delete("application", application_id)
