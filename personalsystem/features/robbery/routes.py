"""
Robbery log API routes.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core.database.engine import get_db
from personalsystem.core.uploads import remove_upload, resolve_upload, save_image
from personalsystem.features.bonus.service import (
    trigger_robbery_leader,
    trigger_robbery_negotiator,
    week_bounds,
)
from personalsystem.features.employees.models import Employee
from personalsystem.features.live.hub import hub
from personalsystem.features.permissions.dependencies import require_permission
from personalsystem.features.robbery.models import Robbery
from personalsystem.features.robbery.schemas import RobberyResponse, RobberyStats
from personalsystem.features.robbery.service import (
    UPLOAD_AREA,
    active_employees,
    cancel_robbery_bonuses,
)
from personalsystem.features.users.dependencies import CurrentUser, get_current_user
from personalsystem.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def _get_robbery(db: AsyncSession, robbery_id: str) -> Robbery:
    result = await db.execute(
        select(Robbery)
        .where(Robbery.id == robbery_id)
        .execution_options(populate_existing=True)
    )
    robbery = result.scalar_one_or_none()
    if robbery is None:
        raise HTTPException(status_code=404, detail="Robbery not found")
    return robbery


@router.get("", response_model=List[RobberyResponse])
async def list_robberies(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("robbery.view")),
):
    """Robberies of the current week, newest first."""
    start, end = week_bounds()
    result = await db.execute(
        select(Robbery)
        .where(Robbery.created_at >= start, Robbery.created_at <= end)
        .order_by(Robbery.created_at.desc())
    )
    return result.scalars().all()


@router.get("/stats", response_model=RobberyStats)
async def get_robbery_stats(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("robbery.view")),
):
    start, end = week_bounds()
    count = await db.scalar(
        select(func.count(Robbery.id)).where(Robbery.created_at >= start, Robbery.created_at <= end)
    )
    return RobberyStats(week_total=count or 0, week_start=start, week_end=end)


@router.get("/image/{filename}")
async def get_robbery_image(
    filename: str,
    _user: CurrentUser = Depends(get_current_user),
):
    return FileResponse(resolve_upload(UPLOAD_AREA, filename))


@router.get("/employees")
async def list_robbery_employees(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("robbery.view")),
):
    return await active_employees(db)


@router.post("", response_model=RobberyResponse, status_code=status.HTTP_201_CREATED)
async def create_robbery(
    leader_id: str = Form(...),
    negotiator_id: Optional[str] = Form(None),
    image: UploadFile = File(..., description="Screenshot of the robbery"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission("robbery.create")),
):
    filename = await save_image(image, UPLOAD_AREA, prefix="robbery-")

    if await db.get(Employee, leader_id) is None:
        remove_upload(UPLOAD_AREA, filename)
        raise HTTPException(status_code=400, detail="Leader not found")
    if negotiator_id and await db.get(Employee, negotiator_id) is None:
        remove_upload(UPLOAD_AREA, filename)
        raise HTTPException(status_code=400, detail="Negotiator not found")

    robbery = Robbery(
        leader_id=leader_id,
        negotiator_id=negotiator_id or None,
        image_path=filename,
        created_by_id=current_user.id,
    )
    db.add(robbery)
    await db.flush()

    await trigger_robbery_leader(db, leader_id, robbery.id)
    if negotiator_id:
        await trigger_robbery_negotiator(db, negotiator_id, robbery.id)
    await db.commit()

    robbery = await _get_robbery(db, robbery.id)
    data = RobberyResponse.model_validate(robbery)
    await hub.broadcast_create("robbery", data)
    return data


@router.delete("/{robbery_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_robbery(
    robbery_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("robbery.manage")),
):
    robbery = await _get_robbery(db, robbery_id)
    image_path = robbery.image_path

    await cancel_robbery_bonuses(db, [robbery_id])
    await db.execute(delete(Robbery).where(Robbery.id == robbery_id))
    await db.commit()

    remove_upload(UPLOAD_AREA, image_path)
    await hub.broadcast_delete("robbery", robbery_id)
