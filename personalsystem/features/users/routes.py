"""
User and authentication routes.

``auth_router`` handles the Discord login flow and the session cookie,
``router`` is the user administration API.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core import config
from personalsystem.core.database.engine import get_db
from personalsystem.core.limiter import limiter
from personalsystem.features.employees.models import Employee
from personalsystem.features.permissions.dependencies import require_permission
from personalsystem.features.permissions.models import Role, user_roles
from personalsystem.features.permissions.registry import capabilities
from personalsystem.features.users.auth import (
    DiscordAuthError,
    create_access_token,
    discord_authorize_url,
    discord_avatar_url,
    exchange_discord_code,
)
from personalsystem.features.users.dependencies import (
    CurrentUser,
    get_current_user,
    invalidate_user_cache,
    load_current_user,
)
from personalsystem.features.users.models import User
from personalsystem.features.users.schemas import (
    DiscordCallback,
    MeResponse,
    RoleBrief,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from personalsystem.utils import get_logger, page_count, utcnow


log = get_logger(__name__)
auth_router = APIRouter()
router = APIRouter()


async def _me_response(db: AsyncSession, user: CurrentUser) -> MeResponse:
    employee_id = await db.scalar(select(Employee.id).where(Employee.user_id == user.id))
    return MeResponse(
        id=user.id,
        discord_id=user.discord_id,
        username=user.username,
        display_name=user.display_name,
        avatar=user.avatar,
        roles=[RoleBrief(**role) for role in user.roles],
        employee_id=employee_id,
        permissions=sorted(user.permissions),
        max_level=user.max_level,
        capabilities=capabilities(user.permissions),
    )


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=config.COOKIE_NAME,
        value=token,
        max_age=config.JWT_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="none" if config.COOKIE_SECURE else "lax",
    )


# ============================================================================
# Auth Routes
# ============================================================================

@auth_router.get("/discord")
async def discord_login(state: Optional[str] = None):
    """URL of the Discord consent screen."""
    return {"url": discord_authorize_url(state)}


@auth_router.post("/discord/callback", response_model=MeResponse)
@limiter.limit("10/minute")
async def discord_callback(
    request: Request,
    response: Response,
    payload: DiscordCallback,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Finish the Discord login: upsert the user and set the session cookie.

    Raises:
        HTTPException: 400 if Discord rejects the code, 403 for deactivated accounts
    """
    try:
        discord_user = await exchange_discord_code(payload.code)
    except DiscordAuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    discord_id = str(discord_user["id"])
    result = await db.execute(select(User).where(User.discord_id == discord_id))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(discord_id=discord_id, username=discord_user.get("username") or discord_id)
        db.add(user)
        log.info("New user %s registered via Discord", discord_id)
    else:
        user.username = discord_user.get("username") or user.username

    if not user.display_name:
        user.display_name = discord_user.get("global_name") or user.username
    user.avatar = discord_avatar_url(discord_user) or user.avatar
    user.email = discord_user.get("email") or user.email
    user.last_login_at = utcnow()
    await db.commit()

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is deactivated")

    invalidate_user_cache(user.id)
    current = await load_current_user(db, user.id)
    _set_session_cookie(response, create_access_token(user.id, user.discord_id))
    return await _me_response(db, current)


@auth_router.get("/me", response_model=MeResponse)
async def get_me(
    user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Current user with roles, permissions and capability flags."""
    return await _me_response(db, user)


@auth_router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(config.COOKIE_NAME)
    return {"success": True}


# ============================================================================
# User Routes
# ============================================================================

async def _get_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("", response_model=UserListResponse)
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    _user: Annotated[CurrentUser, Depends(require_permission("users.view"))],
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    role_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
):
    conditions = []
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(User.username.ilike(pattern), User.display_name.ilike(pattern)))
    if is_active is not None:
        conditions.append(User.is_active.is_(is_active))
    if role_id:
        conditions.append(User.id.in_(select(user_roles.c.user_id).where(user_roles.c.role_id == role_id)))

    total = await db.scalar(select(func.count(User.id)).where(*conditions)) or 0
    result = await db.execute(
        select(User)
        .where(*conditions)
        .order_by(User.username)
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


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    _user: Annotated[CurrentUser, Depends(require_permission("users.view"))],
):
    return await _get_user(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    payload: UserUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    _user: Annotated[CurrentUser, Depends(require_permission("users.edit"))],
):
    """Replace a user's roles and/or toggle the account."""
    user = await _get_user(db, user_id)
    if payload.role_ids is not None:
        result = await db.execute(select(Role).where(Role.id.in_(payload.role_ids)))
        roles = list(result.scalars().all())
        if len(roles) != len(set(payload.role_ids)):
            raise HTTPException(status_code=400, detail="Unknown role id")
        user.roles = roles
    if payload.is_active is not None:
        user.is_active = payload.is_active
    await db.commit()
    invalidate_user_cache(user_id)
    return await _get_user(db, user_id)


@router.delete("/{user_id}", response_model=UserResponse)
async def deactivate_user(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[CurrentUser, Depends(require_permission("users.delete"))],
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate yourself")
    user = await _get_user(db, user_id)
    user.is_active = False
    await db.commit()
    invalidate_user_cache(user_id)
    return await _get_user(db, user_id)
