"""
Robbery helpers: the employee picker cache and the weekly purge.
"""
import time
from typing import Any, List, Optional, Tuple
from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core.uploads import remove_upload
from personalsystem.features.bonus.models import BonusPayment
from personalsystem.features.employees.models import Employee
from personalsystem.features.employees.schemas import EmployeeSummary
from personalsystem.features.robbery.models import Robbery
from personalsystem.utils import get_logger


log = get_logger(__name__)

UPLOAD_AREA = "robberies"
EMPLOYEE_CACHE_TTL = 60.0

_employee_cache: Optional[Tuple[float, List[dict]]] = None


def invalidate_employee_cache() -> None:
    global _employee_cache
    _employee_cache = None


async def active_employees(db: AsyncSession) -> List[dict]:
    """Active employees for the leader/negotiator picker, cached for a minute."""
    global _employee_cache
    if _employee_cache is not None and _employee_cache[0] > time.monotonic():
        return _employee_cache[1]

    result = await db.execute(
        select(Employee)
        .where(Employee.status == "ACTIVE")
        .order_by(Employee.rank_level.desc())
    )
    data = [EmployeeSummary.model_validate(e).model_dump(mode="json") for e in result.scalars().all()]
    _employee_cache = (time.monotonic() + EMPLOYEE_CACHE_TTL, data)
    return data


async def cancel_robbery_bonuses(db: AsyncSession, robbery_ids: List[str]) -> int:
    if not robbery_ids:
        return 0
    result = await db.execute(
        update(BonusPayment)
        .where(
            BonusPayment.reference_id.in_(robbery_ids),
            BonusPayment.reference_type == "Robbery",
            BonusPayment.status == "PENDING",
        )
        .values(status="CANCELLED")
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def purge_robberies(db: AsyncSession) -> dict[str, Any]:
    """Weekly reset: cancel pending robbery bonuses, delete images and rows."""
    result = await db.execute(select(Robbery.id, Robbery.image_path))
    rows = result.all()
    ids = [row.id for row in rows]

    cancelled = await cancel_robbery_bonuses(db, ids)
    for row in rows:
        remove_upload(UPLOAD_AREA, row.image_path)
    await db.execute(delete(Robbery).execution_options(synchronize_session=False))
    await db.commit()

    log.info("Purged %d robberies, cancelled %d pending bonuses", len(ids), cancelled)
    return {"deleted": len(ids), "cancelled_bonuses": cancelled}
