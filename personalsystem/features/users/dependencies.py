"""
FastAPI dependencies for authentication and authorization.

The resolved user (roles, aggregated permissions, max level) is cached per
user id for USER_CACHE_TTL seconds. Call ``invalidate_user_cache`` after
changing roles, permissions or account state.
"""
import time
from dataclasses import dataclass, field
from typing import Annotated, Dict, Optional, Tuple
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.core import config
from personalsystem.core.database.engine import get_db
from personalsystem.features.permissions.registry import effective_permissions, max_level
from personalsystem.features.users.auth import verify_jwt_token
from personalsystem.features.users.models import User


security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Snapshot of an authenticated user, safe to share between sessions."""
    id: str
    discord_id: str
    username: str
    display_name: Optional[str]
    avatar: Optional[str]
    is_active: bool
    roles: Tuple[dict, ...] = ()
    permissions: frozenset = field(default_factory=frozenset)
    max_level: int = 0

    @property
    def role_names(self) -> set[str]:
        return {role["name"] for role in self.roles}

    @classmethod
    def from_user(cls, user: User) -> "CurrentUser":
        return cls(
            id=user.id,
            discord_id=user.discord_id,
            username=user.username,
            display_name=user.display_name,
            avatar=user.avatar,
            is_active=user.is_active,
            roles=tuple(
                {
                    "id": role.id,
                    "name": role.name,
                    "display_name": role.display_name,
                    "color": role.color,
                    "level": role.level,
                }
                for role in user.roles
            ),
            permissions=frozenset(effective_permissions(user.roles)),
            max_level=max_level(user.roles),
        )


_user_cache: Dict[str, Tuple[float, CurrentUser]] = {}


def invalidate_user_cache(user_id: Optional[str] = None) -> None:
    """Drop one cached user, or every cached user when no id is given."""
    if user_id is None:
        _user_cache.clear()
    else:
        _user_cache.pop(user_id, None)


def get_request_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials] = None) -> Optional[str]:
    """Session token from the ``token`` cookie, falling back to the bearer header."""
    token = request.cookies.get(config.COOKIE_NAME)
    if token:
        return token
    if credentials is not None:
        return credentials.credentials
    return None


async def load_current_user(db: AsyncSession, user_id: str) -> Optional[CurrentUser]:
    """Resolve a user id through the cache, None if the user does not exist."""
    cached = _user_cache.get(user_id)
    if cached is not None and cached[0] > time.monotonic():
        return cached[1]

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        return None

    current = CurrentUser.from_user(user)
    _user_cache[user_id] = (time.monotonic() + config.USER_CACHE_TTL, current)
    return current


async def get_current_user(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> CurrentUser:
    """
    Get the current authenticated user.

    Usage:
        @router.get("/me")
        async def get_me(user: CurrentUser = Depends(get_current_user)):
            return user
    """
    token = get_request_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_jwt_token(token)
    user_id = payload.get("userId")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    user = await load_current_user(db, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is deactivated",
        )

    return user


def get_authorization_header(request) -> str:
    """
    Extract the caller's credentials for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "") or request.cookies.get(config.COOKIE_NAME, "")
    return auth or get_remote_address(request)
