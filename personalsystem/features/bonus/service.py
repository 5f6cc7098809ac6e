"""
Bonus bookkeeping shared by the bonus routes, the activity triggers in other
features and the weekly close job.

Bonus weeks run Monday 00:00 to Sunday 23:59:59.999999 (naive UTC).
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.features.bonus.models import BonusConfig, BonusPayment, BonusWeek
from personalsystem.features.employees.models import Employee
from personalsystem.utils import get_logger, to_naive_utc, utcnow


log = get_logger(__name__)

# activity_type -> (display name, category)
DEFAULT_BONUS_CONFIGS: Dict[str, Tuple[str, str]] = {
    # HR
    "APPLICATION_COMPLETED": ("Application completed", "HR"),
    "APPLICATION_ONBOARDING": ("Onboarding held", "HR"),
    "APPLICATION_REJECTED": ("Application processed (rejected)", "HR"),
    # Academy
    "TRAINING_CONDUCTED": ("Training conducted", "ACADEMY"),
    "TRAINING_PARTICIPATED": ("Training attended", "ACADEMY"),
    "EXAM_CONDUCTED": ("Exam conducted", "ACADEMY"),
    "RETRAINING_COMPLETED": ("Retraining completed", "ACADEMY"),
    "ACADEMY_MODULE_COMPLETED": ("Academy module completed", "ACADEMY"),
    # Internal affairs
    "INVESTIGATION_OPENED": ("IA investigation opened", "IA"),
    "INVESTIGATION_CLOSED": ("IA investigation closed", "IA"),
    "UNIT_REVIEW_COMPLETED": ("Unit review completed", "IA"),
    # Detectives
    "CASE_OPENED": ("Case file opened", "DETECTIVE"),
    "CASE_CLOSED": ("Case file closed", "DETECTIVE"),
    # General
    "ROBBERY_LEADER": ("Robbery incident command", "GENERAL"),
    "ROBBERY_NEGOTIATOR": ("Robbery negotiation", "GENERAL"),
    "EVIDENCE_STORED": ("Evidence stored", "GENERAL"),
    "SANCTION_ISSUED": ("Sanction issued", "GENERAL"),
}


def week_bounds(when: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Monday 00:00:00 and Sunday 23:59:59.999999 of the week containing ``when``."""
    when = to_naive_utc(when) if when else utcnow()
    start = (when - timedelta(days=when.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=7) - timedelta(microseconds=1)
    return start, end


async def init_default_configs(db: AsyncSession) -> int:
    """Create missing default configs (amount 0). Returns how many were added."""
    result = await db.execute(select(BonusConfig.activity_type))
    existing = set(result.scalars().all())
    created = 0
    for activity_type, (display_name, category) in DEFAULT_BONUS_CONFIGS.items():
        if activity_type in existing:
            continue
        db.add(BonusConfig(activity_type=activity_type, display_name=display_name, category=category, amount=0))
        created += 1
    await db.commit()
    return created


async def create_bonus_payment(
    db: AsyncSession,
    activity_type: str,
    employee_id: str,
    reason: Optional[str] = None,
    reference_id: Optional[str] = None,
    reference_type: Optional[str] = None,
) -> bool:
    """
    Book a PENDING payment in the current week for ``activity_type``.

    Returns False without booking anything when the config is missing,
    inactive or has no amount. The caller commits.
    """
    result = await db.execute(select(BonusConfig).where(BonusConfig.activity_type == activity_type))
    config = result.scalar_one_or_none()
    if config is None or not config.is_active or config.amount <= 0:
        return False

    week_start, week_end = week_bounds()
    db.add(BonusPayment(
        config_id=config.id,
        employee_id=employee_id,
        amount=config.amount,
        reason=reason,
        reference_id=reference_id,
        reference_type=reference_type,
        week_start=week_start,
        week_end=week_end,
    ))
    log.info("Bonus booked: %s for employee %s, amount %d", activity_type, employee_id, config.amount)
    return True


async def employee_id_for_user(db: AsyncSession, user_id: str) -> Optional[str]:
    return await db.scalar(select(Employee.id).where(Employee.user_id == user_id))


# ============================================================================
# Activity triggers
# ============================================================================

async def trigger_application_completed(db: AsyncSession, employee_id: str, applicant: str, application_id: str) -> bool:
    return await create_bonus_payment(
        db, "APPLICATION_COMPLETED", employee_id, f"Processed application of {applicant}", application_id, "Application"
    )


async def trigger_application_rejected(db: AsyncSession, employee_id: str, applicant: str, application_id: str) -> bool:
    return await create_bonus_payment(
        db, "APPLICATION_REJECTED", employee_id, f"Processed application of {applicant} (rejected)",
        application_id, "Application"
    )


async def trigger_case_opened(db: AsyncSession, employee_id: str, case_number: str, case_id: str) -> bool:
    return await create_bonus_payment(db, "CASE_OPENED", employee_id, f"Opened case {case_number}", case_id, "Case")


async def trigger_case_closed(db: AsyncSession, employee_id: str, case_number: str, case_id: str) -> bool:
    return await create_bonus_payment(db, "CASE_CLOSED", employee_id, f"Closed case {case_number}", case_id, "Case")


async def trigger_robbery_leader(db: AsyncSession, employee_id: str, robbery_id: str) -> bool:
    return await create_bonus_payment(db, "ROBBERY_LEADER", employee_id, "Robbery incident command", robbery_id, "Robbery")


async def trigger_robbery_negotiator(db: AsyncSession, employee_id: str, robbery_id: str) -> bool:
    return await create_bonus_payment(db, "ROBBERY_NEGOTIATOR", employee_id, "Robbery negotiation", robbery_id, "Robbery")


# ============================================================================
# Weeks
# ============================================================================

async def pending_payments(db: AsyncSession, week_start: datetime, week_end: datetime) -> List[BonusPayment]:
    result = await db.execute(
        select(BonusPayment).where(
            BonusPayment.week_start == week_start,
            BonusPayment.week_end == week_end,
            BonusPayment.status == "PENDING",
        )
    )
    return list(result.scalars().all())


async def close_week(db: AsyncSession, when: Optional[datetime] = None) -> BonusWeek:
    """Close the week containing ``when`` and record the pending total for management."""
    week_start, week_end = week_bounds(when)
    total = sum(p.amount for p in await pending_payments(db, week_start, week_end))
    now = utcnow()

    result = await db.execute(
        select(BonusWeek).where(BonusWeek.week_start == week_start, BonusWeek.week_end == week_end)
    )
    week = result.scalar_one_or_none()
    if week is None:
        week = BonusWeek(week_start=week_start, week_end=week_end)
        db.add(week)

    week.status = "CLOSED"
    week.total_amount = total
    week.closed_at = now
    week.submitted_to_management = True
    week.submitted_at = now
    await db.commit()
    log.info("Bonus week %s - %s closed, total %d", week_start.date(), week_end.date(), total)
    return week


async def close_current_week(db: AsyncSession) -> BonusWeek:
    return await close_week(db)
