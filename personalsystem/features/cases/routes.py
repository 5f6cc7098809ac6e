"""
Detective case file API routes.

Folders group a detective's cases; cases carry evidence images stored under
UPLOAD_DIR/cases. Case changes are pushed as ``case:*`` events.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy import select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core.database.engine import get_db
from personalsystem.core.uploads import remove_upload, resolve_upload, save_image
from personalsystem.features.bonus.service import trigger_case_closed, trigger_case_opened
from personalsystem.features.cases.models import Case, CaseImage, DetectiveFolder
from personalsystem.features.cases.schemas import (
    CaseCreate,
    CaseDetail,
    CaseImageResponse,
    CaseResponse,
    CaseStats,
    CaseUpdate,
    FolderCreate,
    FolderDetail,
    FolderResponse,
    FolderUpdate,
)
from personalsystem.features.employees.models import Employee
from personalsystem.features.employees.ranks import strip_badge_prefix
from personalsystem.features.employees.schemas import EmployeeSummary
from personalsystem.features.live.hub import hub
from personalsystem.features.permissions.dependencies import require_permission
from personalsystem.features.users.dependencies import CurrentUser
from personalsystem.utils import get_logger, utcnow


log = get_logger(__name__)
router = APIRouter()

UPLOAD_AREA = "cases"
CLOSED_STATUSES = ("CLOSED", "ARCHIVED")

can_view = require_permission("detectives.view")
can_manage = require_permission("detectives.manage")


async def _get_folder(db: AsyncSession, folder_id: str) -> DetectiveFolder:
    result = await db.execute(
        select(DetectiveFolder)
        .where(DetectiveFolder.id == folder_id)
        .execution_options(populate_existing=True)
    )
    folder = result.scalar_one_or_none()
    if folder is None:
        raise HTTPException(status_code=404, detail="Folder not found")
    return folder


async def _get_case(db: AsyncSession, case_id: str) -> Case:
    result = await db.execute(
        select(Case)
        .where(Case.id == case_id)
        .execution_options(populate_existing=True)
    )
    case = result.scalar_one_or_none()
    if case is None:
        raise HTTPException(status_code=404, detail="Case not found")
    return case


async def next_case_number(db: AsyncSession) -> str:
    """``DET-<year>-NNN``, counting up within the year."""
    prefix = f"DET-{utcnow().year}-"
    result = await db.execute(select(Case.case_number).where(Case.case_number.like(f"{prefix}%")))
    # Compared as integers: DET-2024-1000 sorts before DET-2024-999 as text
    numbers = [
        int(suffix) for suffix in (n[len(prefix):] for n in result.scalars().all()) if suffix.isdigit()
    ]
    return f"{prefix}{max(numbers, default=0) + 1:03d}"


# ============================================================================
# Folder Routes
# ============================================================================

@router.get("/folders", response_model=List[FolderResponse])
async def list_folders(db: AsyncSession = Depends(get_db), _user: CurrentUser = Depends(can_view)):
    result = await db.execute(select(DetectiveFolder).order_by(DetectiveFolder.name))
    return result.scalars().all()


@router.get("/folders/{folder_id}", response_model=FolderDetail)
async def get_folder(folder_id: str, db: AsyncSession = Depends(get_db), _user: CurrentUser = Depends(can_view)):
    return await _get_folder(db, folder_id)


@router.post("/folders", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(
    payload: FolderCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(can_manage),
):
    """One folder per detective, named after the detective."""
    existing = await db.scalar(select(DetectiveFolder.id).where(DetectiveFolder.detective_id == payload.detective_id))
    if existing:
        raise HTTPException(status_code=400, detail="A folder already exists for this detective")

    detective = await db.get(Employee, payload.detective_id)
    if detective is None:
        raise HTTPException(status_code=404, detail="Detective not found")

    user = detective.user
    folder = DetectiveFolder(
        name=strip_badge_prefix(user.display_name or user.username),
        description=payload.description,
        detective_id=detective.id,
        created_by_id=current_user.id,
    )
    db.add(folder)
    await db.commit()
    return await _get_folder(db, folder.id)


@router.put("/folders/{folder_id}", response_model=FolderResponse)
async def update_folder(
    folder_id: str,
    payload: FolderUpdate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(can_manage),
):
    folder = await _get_folder(db, folder_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("status") == "CLOSED":
        folder.closed_at = utcnow()
    elif changes.get("status") == "OPEN":
        folder.closed_at = None
    for key, value in changes.items():
        setattr(folder, key, value)
    await db.commit()
    return await _get_folder(db, folder_id)


@router.delete("/folders/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_folder(
    folder_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(can_manage),
):
    """Delete a folder with all its cases, images and image files."""
    await _get_folder(db, folder_id)
    case_ids = select(Case.id).where(Case.folder_id == folder_id)
    images = await db.execute(select(CaseImage.image_path).where(CaseImage.case_id.in_(case_ids)))
    paths = list(images.scalars().all())

    await db.execute(
        delete(CaseImage).where(CaseImage.case_id.in_(case_ids)).execution_options(synchronize_session=False)
    )
    await db.execute(delete(Case).where(Case.folder_id == folder_id).execution_options(synchronize_session=False))
    await db.execute(
        delete(DetectiveFolder).where(DetectiveFolder.id == folder_id).execution_options(synchronize_session=False)
    )
    await db.commit()

    for path in paths:
        remove_upload(UPLOAD_AREA, path)
    log.info("Deleted folder %s with %d images", folder_id, len(paths))


@router.get("/employees-without-folder", response_model=List[EmployeeSummary])
async def list_employees_without_folder(db: AsyncSession = Depends(get_db), _user: CurrentUser = Depends(can_view)):
    result = await db.execute(
        select(Employee)
        .where(Employee.status == "ACTIVE", Employee.id.not_in(select(DetectiveFolder.detective_id)))
        .order_by(Employee.rank_level.desc())
    )
    return result.scalars().all()


@router.get("/stats", response_model=CaseStats)
async def get_case_stats(db: AsyncSession = Depends(get_db), _user: CurrentUser = Depends(can_view)):
    folders = await db.scalar(select(func.count(DetectiveFolder.id)))
    rows = await db.execute(select(Case.status, func.count(Case.id)).group_by(Case.status))
    counts = {row[0]: row[1] for row in rows.all()}
    return CaseStats(
        folders=folders or 0,
        open=counts.get("OPEN", 0),
        in_progress=counts.get("IN_PROGRESS", 0),
        closed=counts.get("CLOSED", 0),
        archived=counts.get("ARCHIVED", 0),
        total_cases=sum(counts.values()),
    )


# ============================================================================
# Image Routes
# ============================================================================

@router.get("/image/{filename}")
async def get_case_image(filename: str, _user: CurrentUser = Depends(can_view)):
    return FileResponse(resolve_upload(UPLOAD_AREA, filename))


@router.delete("/images/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_case_image(
    image_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(can_manage),
):
    image = await db.get(CaseImage, image_id)
    if image is None:
        raise HTTPException(status_code=404, detail="Image not found")
    path = image.image_path
    await db.execute(delete(CaseImage).where(CaseImage.id == image_id).execution_options(synchronize_session=False))
    await db.commit()
    remove_upload(UPLOAD_AREA, path)


# ============================================================================
# Case Routes
# ============================================================================

@router.get("", response_model=List[CaseResponse])
async def list_cases(
    folder_id: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(can_view),
):
    stmt = select(Case)
    if folder_id:
        stmt = stmt.where(Case.folder_id == folder_id)
    if status_filter and status_filter != "ALL":
        stmt = stmt.where(Case.status == status_filter)
    if priority and priority != "ALL":
        stmt = stmt.where(Case.priority == priority)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(
            Case.title.ilike(pattern),
            Case.case_number.ilike(pattern),
            Case.suspects.ilike(pattern),
        ))
    result = await db.execute(stmt.order_by(Case.created_at.desc()))
    return result.scalars().all()


@router.post("", response_model=CaseDetail, status_code=status.HTTP_201_CREATED)
async def create_case(
    payload: CaseCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(can_manage),
):
    if not payload.title:
        raise HTTPException(status_code=400, detail="Title is required")
    if not payload.folder_id:
        raise HTTPException(status_code=400, detail="Folder is required")
    folder = await _get_folder(db, payload.folder_id)

    case = Case(
        case_number=await next_case_number(db),
        title=payload.title,
        description=payload.description,
        priority=payload.priority,
        suspects=payload.suspects,
        notes=payload.notes,
        folder_id=folder.id,
        created_by_id=current_user.id,
    )
    db.add(case)
    await db.flush()
    await trigger_case_opened(db, folder.detective_id, case.case_number, case.id)
    await db.commit()

    case = await _get_case(db, case.id)
    data = CaseDetail.model_validate(case)
    await hub.broadcast_create("case", data)
    return data


@router.get("/{case_id}", response_model=CaseDetail)
async def get_case(case_id: str, db: AsyncSession = Depends(get_db), _user: CurrentUser = Depends(can_view)):
    return await _get_case(db, case_id)


@router.put("/{case_id}", response_model=CaseDetail)
async def update_case(
    case_id: str,
    payload: CaseUpdate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(can_manage),
):
    case = await _get_case(db, case_id)
    previous_status = case.status
    changes = payload.model_dump(exclude_unset=True)

    new_status = changes.get("status")
    closing = new_status in CLOSED_STATUSES and previous_status not in CLOSED_STATUSES
    if new_status in CLOSED_STATUSES:
        if closing:
            case.closed_at = utcnow()
    elif new_status is not None:
        case.closed_at = None

    for key, value in changes.items():
        setattr(case, key, value)

    if closing:
        await trigger_case_closed(db, case.folder.detective_id, case.case_number, case.id)
    await db.commit()

    case = await _get_case(db, case_id)
    data = CaseDetail.model_validate(case)
    await hub.broadcast_update("case", data)
    return data


@router.delete("/{case_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_case(
    case_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(can_manage),
):
    case = await _get_case(db, case_id)
    paths = [image.image_path for image in case.images]
    await db.execute(delete(CaseImage).where(CaseImage.case_id == case_id).execution_options(synchronize_session=False))
    await db.execute(delete(Case).where(Case.id == case_id).execution_options(synchronize_session=False))
    await db.commit()

    for path in paths:
        remove_upload(UPLOAD_AREA, path)
    await hub.broadcast_delete("case", case_id)


@router.post("/{case_id}/images", response_model=CaseImageResponse, status_code=status.HTTP_201_CREATED)
async def upload_case_image(
    case_id: str,
    image: UploadFile = File(..., description="Evidence image"),
    description: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(can_manage),
):
    await _get_case(db, case_id)
    filename = await save_image(image, UPLOAD_AREA, prefix="case-")
    case_image = CaseImage(
        case_id=case_id,
        image_path=filename,
        description=description,
        uploaded_by_id=current_user.id,
    )
    db.add(case_image)
    await db.commit()

    result = await db.execute(select(CaseImage).where(CaseImage.id == case_image.id))
    return result.scalar_one()
