"""
Admin API routes.

Role and permission management, the audit log, system settings and overall
counts. Every role change drops the cached auth users.
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core.database.engine import get_db
from personalsystem.features.employees.models import Employee
from personalsystem.features.permissions.dependencies import require_permission
from personalsystem.features.permissions.models import (
    AuditLog,
    Permission,
    Role,
    SystemSetting,
    role_permissions,
    user_roles,
)
from personalsystem.features.permissions.registry import seed_permissions
from personalsystem.features.permissions.schemas import (
    AdminStats,
    AuditLogListResponse,
    PermissionResponse,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    SeedResult,
)
from personalsystem.features.users.dependencies import CurrentUser, invalidate_user_cache
from personalsystem.features.users.models import User
from personalsystem.utils import get_logger, page_count, to_naive_utc


log = get_logger(__name__)
router = APIRouter()


async def _get_role(db: AsyncSession, role_id: str) -> Role:
    result = await db.execute(
        select(Role).where(Role.id == role_id).execution_options(populate_existing=True)
    )
    role = result.scalar_one_or_none()
    if role is None:
        raise HTTPException(status_code=404, detail="Role not found")
    return role


async def _role_response(db: AsyncSession, role: Role) -> RoleResponse:
    user_count = await db.scalar(
        select(func.count()).select_from(user_roles).where(user_roles.c.role_id == role.id)
    )
    response = RoleResponse.model_validate(role)
    response.user_count = user_count or 0
    return response


async def _load_permissions(db: AsyncSession, permission_ids: List[str]) -> List[Permission]:
    if not permission_ids:
        return []
    result = await db.execute(select(Permission).where(Permission.id.in_(permission_ids)))
    permissions = list(result.scalars().all())
    if len(permissions) != len(set(permission_ids)):
        raise HTTPException(status_code=400, detail="Unknown permission id")
    return permissions


# ============================================================================
# Role Routes
# ============================================================================

@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.full"))
):
    """List all roles with their permissions, highest level first."""
    result = await db.execute(select(Role).order_by(Role.level.desc(), Role.name))
    return [await _role_response(db, role) for role in result.scalars().all()]


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.full"))
):
    if await db.scalar(select(Role.id).where(Role.name == payload.name)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Role with this name already exists")

    role = Role(**payload.model_dump(exclude={"permission_ids"}))
    role.permissions = await _load_permissions(db, payload.permission_ids)
    db.add(role)
    await db.commit()
    log.info("Role %s created", role.name)
    return await _role_response(db, await _get_role(db, role.id))


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    payload: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.full"))
):
    role = await _get_role(db, role_id)
    values = payload.model_dump(exclude_unset=True)
    permission_ids = values.pop("permission_ids", None)
    for key, value in values.items():
        setattr(role, key, value)
    if permission_ids is not None:
        role.permissions = await _load_permissions(db, permission_ids)
    await db.commit()
    invalidate_user_cache()
    return await _role_response(db, await _get_role(db, role_id))


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.full"))
):
    """Delete a role, detaching it from every user and permission first."""
    role = await _get_role(db, role_id)
    await db.execute(delete(user_roles).where(user_roles.c.role_id == role_id))
    await db.execute(delete(role_permissions).where(role_permissions.c.role_id == role_id))
    await db.execute(delete(Role).where(Role.id == role_id).execution_options(synchronize_session=False))
    await db.commit()
    invalidate_user_cache()
    log.info("Role %s deleted", role.name)


# ============================================================================
# Permission Routes
# ============================================================================

@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.full"))
):
    result = await db.execute(select(Permission).order_by(Permission.category, Permission.name))
    return result.scalars().all()


@router.post("/permissions/seed", response_model=SeedResult)
async def seed_default_permissions(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.full"))
):
    """Upsert the built-in permission catalogue."""
    counts = await seed_permissions(db)
    invalidate_user_cache()
    return counts


# ============================================================================
# Audit Log Routes
# ============================================================================

@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    entity: Optional[str] = None,
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("audit.view"))
):
    """List audit log entries, newest first."""
    conditions = []
    if entity:
        conditions.append(AuditLog.entity == entity)
    if user_id:
        conditions.append(AuditLog.user_id == user_id)
    if action:
        conditions.append(AuditLog.action.contains(action))
    if start_date:
        conditions.append(AuditLog.created_at >= to_naive_utc(start_date))
    if end_date:
        conditions.append(AuditLog.created_at <= to_naive_utc(end_date))

    total = await db.scalar(select(func.count(AuditLog.id)).where(*conditions)) or 0
    result = await db.execute(
        select(AuditLog)
        .where(*conditions)
        .order_by(AuditLog.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return {
        "data": result.scalars().all(),
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": page_count(total, limit),
    }


# ============================================================================
# Settings Routes
# ============================================================================

@router.get("/settings", response_model=Dict[str, str])
async def get_settings(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.settings"))
):
    result = await db.execute(select(SystemSetting).order_by(SystemSetting.key))
    return {setting.key: setting.value for setting in result.scalars().all()}


@router.put("/settings", response_model=Dict[str, str])
async def update_settings(
    payload: Dict[str, Any],
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.settings"))
):
    """Upsert every given key. Non-string values are stored as JSON."""
    result = await db.execute(select(SystemSetting).where(SystemSetting.key.in_(list(payload))))
    existing = {setting.key: setting for setting in result.scalars().all()}
    for key, value in payload.items():
        value = value if isinstance(value, str) else json.dumps(value)
        setting = existing.get(key)
        if setting is None:
            db.add(SystemSetting(key=key, value=value))
        else:
            setting.value = value
    await db.commit()
    return await get_settings(db=db, _user=_user)


# ============================================================================
# Stats
# ============================================================================

@router.get("/stats", response_model=AdminStats)
async def get_admin_stats(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("admin.full"))
):
    return AdminStats(
        users=await db.scalar(select(func.count(User.id))) or 0,
        active_users=await db.scalar(select(func.count(User.id)).where(User.is_active.is_(True))) or 0,
        employees=await db.scalar(select(func.count(Employee.id)).where(Employee.status != "TERMINATED")) or 0,
        roles=await db.scalar(select(func.count(Role.id))) or 0,
        permissions=await db.scalar(select(func.count(Permission.id))) or 0,
        audit_logs=await db.scalar(select(func.count(AuditLog.id))) or 0,
    )
