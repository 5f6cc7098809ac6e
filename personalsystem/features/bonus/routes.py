"""
Bonus payment API routes.

Configs define the amount per activity type; payments are booked per
employee and week, paid out in bulk and summarised for management.
"""
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core.database.engine import get_db
from personalsystem.features.bonus.models import BonusConfig, BonusPayment, BonusWeek
from personalsystem.features.bonus.schemas import (
    ActivitySummary,
    BonusConfigCreate,
    BonusConfigResponse,
    BonusConfigUpdate,
    BonusPaymentCreate,
    BonusPaymentResponse,
    BonusSummaryResponse,
    BonusTotals,
    BonusWeekResponse,
    EmployeeBonusSummary,
    MyBonusResponse,
    MyBonusSummary,
    PayResult,
    WeekSelector,
)
from personalsystem.features.bonus.service import (
    close_week,
    employee_id_for_user,
    init_default_configs,
    pending_payments,
    week_bounds,
)
from personalsystem.features.employees.models import Employee
from personalsystem.features.live.hub import hub
from personalsystem.features.permissions.dependencies import require_permission
from personalsystem.features.users.dependencies import CurrentUser, get_current_user
from personalsystem.utils import get_logger, utcnow


log = get_logger(__name__)
router = APIRouter()


def parse_week(week: Optional[str]) -> tuple[datetime, datetime]:
    """``None``/``"current"`` or an ISO date inside the wanted week."""
    if not week or week == "current":
        return week_bounds()
    try:
        return week_bounds(datetime.fromisoformat(week))
    except ValueError:
        raise HTTPException(status_code=400, detail="week must be 'current' or an ISO date")


async def _get_payment(db: AsyncSession, payment_id: str) -> BonusPayment:
    result = await db.execute(
        select(BonusPayment)
        .where(BonusPayment.id == payment_id)
        .execution_options(populate_existing=True)
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise HTTPException(status_code=404, detail="Bonus payment not found")
    return payment


async def _get_config(db: AsyncSession, config_id: str) -> BonusConfig:
    config = await db.get(BonusConfig, config_id)
    if config is None:
        raise HTTPException(status_code=404, detail="Bonus config not found")
    return config


# ============================================================================
# Config Routes
# ============================================================================

@router.get("/config", response_model=List[BonusConfigResponse])
async def list_configs(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("bonus.view")),
):
    result = await db.execute(select(BonusConfig).order_by(BonusConfig.category, BonusConfig.display_name))
    return result.scalars().all()


@router.post("/config/init")
async def init_configs(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.full")),
):
    """Create the default activity types that do not exist yet."""
    created = await init_default_configs(db)
    return {"success": True, "created": created}


@router.post("/config", response_model=BonusConfigResponse, status_code=status.HTTP_201_CREATED)
async def create_config(
    payload: BonusConfigCreate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.full")),
):
    try:
        config = BonusConfig(**payload.model_dump())
        db.add(config)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Activity type already exists")
    return config


@router.put("/config/{config_id}", response_model=BonusConfigResponse)
async def update_config(
    config_id: str,
    payload: BonusConfigUpdate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.full")),
):
    config = await _get_config(db, config_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(config, key, value)
    await db.commit()
    return config


@router.delete("/config/{config_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_config(
    config_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.full")),
):
    await _get_config(db, config_id)
    await db.execute(delete(BonusPayment).where(BonusPayment.config_id == config_id))
    await db.execute(delete(BonusConfig).where(BonusConfig.id == config_id))
    await db.commit()


# ============================================================================
# Payment Routes
# ============================================================================

@router.get("/payments", response_model=List[BonusPaymentResponse])
async def list_payments(
    week: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    employee_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("bonus.view")),
):
    stmt = select(BonusPayment)
    if week:
        week_start, week_end = parse_week(week)
        stmt = stmt.where(BonusPayment.week_start == week_start, BonusPayment.week_end == week_end)
    if status_filter:
        stmt = stmt.where(BonusPayment.status == status_filter)
    if employee_id:
        stmt = stmt.where(BonusPayment.employee_id == employee_id)
    result = await db.execute(stmt.order_by(BonusPayment.created_at.desc()))
    return result.scalars().all()


@router.get("/summary", response_model=BonusSummaryResponse)
async def get_summary(
    week: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("bonus.view")),
):
    """Per-employee totals for a week, biggest earners first."""
    week_start, week_end = parse_week(week)
    result = await db.execute(
        select(BonusPayment).where(BonusPayment.week_start == week_start, BonusPayment.week_end == week_end)
    )
    payments = result.scalars().all()

    by_employee: dict[str, EmployeeBonusSummary] = {}
    activities: dict[tuple[str, str], ActivitySummary] = {}
    for payment in payments:
        user = payment.employee.user
        summary = by_employee.setdefault(payment.employee_id, EmployeeBonusSummary(
            employee_id=payment.employee_id,
            employee_name=user.display_name or user.username,
        ))
        summary.total_amount += payment.amount
        if payment.status == "PENDING":
            summary.pending_amount += payment.amount
        elif payment.status == "PAID":
            summary.paid_amount += payment.amount

        key = (payment.employee_id, payment.config.activity_type)
        activity = activities.get(key)
        if activity is None:
            activity = activities[key] = ActivitySummary(
                type=payment.config.activity_type,
                display_name=payment.config.display_name,
                amount=0,
                count=0,
            )
            summary.activities.append(activity)
        activity.amount += payment.amount
        activity.count += 1

    totals = BonusTotals(
        total_amount=sum(p.amount for p in payments),
        pending_amount=sum(p.amount for p in payments if p.status == "PENDING"),
        paid_amount=sum(p.amount for p in payments if p.status == "PAID"),
        payment_count=len(payments),
        employee_count=len(by_employee),
    )
    return BonusSummaryResponse(
        week_start=week_start,
        week_end=week_end,
        totals=totals,
        by_employee=sorted(by_employee.values(), key=lambda s: s.total_amount, reverse=True),
    )


@router.get("/my", response_model=MyBonusResponse)
async def get_my_bonuses(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """The caller's payments in the current week."""
    employee_id = await employee_id_for_user(db, current_user.id)
    if employee_id is None:
        return MyBonusResponse(summary=MyBonusSummary())

    week_start, week_end = week_bounds()
    result = await db.execute(
        select(BonusPayment)
        .where(
            BonusPayment.employee_id == employee_id,
            BonusPayment.week_start == week_start,
            BonusPayment.week_end == week_end,
        )
        .order_by(BonusPayment.created_at.desc())
    )
    payments = result.scalars().all()
    return MyBonusResponse(
        payments=payments,
        summary=MyBonusSummary(
            total=sum(p.amount for p in payments),
            pending=sum(p.amount for p in payments if p.status == "PENDING"),
            paid=sum(p.amount for p in payments if p.status == "PAID"),
            count=len(payments),
        ),
        week_start=week_start,
        week_end=week_end,
    )


@router.post("/payments", response_model=BonusPaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: BonusPaymentCreate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("bonus.manage")),
):
    """Book a payment by hand, using the config's amount."""
    config = await _get_config(db, payload.config_id)
    if not config.is_active:
        raise HTTPException(status_code=400, detail="This bonus type is disabled")
    if await db.get(Employee, payload.employee_id) is None:
        raise HTTPException(status_code=404, detail="Employee not found")

    week_start, week_end = week_bounds()
    payment = BonusPayment(
        config_id=config.id,
        employee_id=payload.employee_id,
        amount=config.amount,
        reason=payload.reason,
        reference_id=payload.reference_id,
        reference_type=payload.reference_type,
        week_start=week_start,
        week_end=week_end,
    )
    db.add(payment)
    await db.commit()

    payment = await _get_payment(db, payment.id)
    data = BonusPaymentResponse.model_validate(payment)
    await hub.broadcast_create("bonus", data)
    return data


@router.put("/payments/pay-employee/{employee_id}", response_model=PayResult)
async def pay_employee(
    employee_id: str,
    payload: Optional[WeekSelector] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission("bonus.pay")),
):
    """Pay every pending payment of one employee for a week and notify them."""
    week_start, week_end = week_bounds(payload.week if payload else None)
    payments = [p for p in await pending_payments(db, week_start, week_end) if p.employee_id == employee_id]
    if not payments:
        return PayResult(updated=0)

    now = utcnow()
    for payment in payments:
        payment.status = "PAID"
        payment.paid_at = now
        payment.paid_by_id = current_user.id
    await db.commit()

    total = sum(p.amount for p in payments)
    reasons = ", ".join(p.config.display_name for p in payments)
    await hub.send_notification(payments[0].employee.user_id, {
        "type": "BONUS",
        "title": "Bonus paid",
        "message": f"You received ${total} ({reasons})",
        "paid_by": current_user.display_name or current_user.username,
        "amount": total,
    })
    await hub.broadcast_update("bonus", {"employee_id": employee_id, "status": "PAID", "count": len(payments)})
    return PayResult(updated=len(payments))


@router.put("/payments/pay-all", response_model=PayResult)
async def pay_all(
    payload: Optional[WeekSelector] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission("bonus.pay")),
):
    week_start, week_end = week_bounds(payload.week if payload else None)
    result = await db.execute(
        update(BonusPayment)
        .where(
            BonusPayment.week_start == week_start,
            BonusPayment.week_end == week_end,
            BonusPayment.status == "PENDING",
        )
        .values(status="PAID", paid_at=utcnow(), paid_by_id=current_user.id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    updated = result.rowcount or 0
    if updated:
        await hub.broadcast_update("bonus", {"type": "pay-all", "status": "PAID", "count": updated})
    return PayResult(updated=updated)


@router.put("/payments/{payment_id}/pay", response_model=BonusPaymentResponse)
async def pay_payment(
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission("bonus.pay")),
):
    payment = await _get_payment(db, payment_id)
    if payment.status == "CANCELLED":
        raise HTTPException(status_code=400, detail="Cancelled payments cannot be paid")
    payment.status = "PAID"
    payment.paid_at = utcnow()
    payment.paid_by_id = current_user.id
    await db.commit()

    payment = await _get_payment(db, payment_id)
    data = BonusPaymentResponse.model_validate(payment)
    await hub.broadcast_update("bonus", data)
    return data


@router.delete("/payments/{payment_id}")
async def cancel_payment(
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("bonus.manage")),
):
    payment = await _get_payment(db, payment_id)
    if payment.status == "PAID":
        raise HTTPException(status_code=400, detail="Paid bonuses cannot be cancelled")
    payment.status = "CANCELLED"
    await db.commit()
    await hub.broadcast_delete("bonus", payment_id)
    return {"success": True}


# ============================================================================
# Week Routes
# ============================================================================

@router.get("/weeks", response_model=List[BonusWeekResponse])
async def list_weeks(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("bonus.view")),
):
    result = await db.execute(select(BonusWeek).order_by(BonusWeek.week_start.desc()).limit(12))
    return result.scalars().all()


@router.post("/weeks/submit", response_model=BonusWeekResponse)
async def submit_week(
    payload: Optional[WeekSelector] = None,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("bonus.manage")),
):
    return await close_week(db, payload.week if payload else None)
