"""
FastAPI dependencies for route protection.

Usage:
    @router.post("/employees")
    async def create_employee(
        user: CurrentUser = Depends(require_permission("employees.edit"))
    ):
        ...
"""
from fastapi import Depends, HTTPException, status

from personalsystem.features.permissions.registry import has_permission, ADMIN_FULL
from personalsystem.features.users.dependencies import CurrentUser, get_current_user
from personalsystem.utils import get_logger


log = get_logger(__name__)


def require_permission(*permissions: str):
    """
    Require any one of ``permissions`` (admin.full always passes).

    Returns:
        Dependency returning the current user

    Raises:
        HTTPException: 401 without a session, 403 without permission
    """
    async def permission_dependency(
        current_user: CurrentUser = Depends(get_current_user)
    ) -> CurrentUser:
        if not has_permission(current_user.permissions, *permissions):
            log.debug("User %s denied, requires one of %s", current_user.id, permissions)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permission denied",
            )
        return current_user

    return permission_dependency


def require_min_level(level: int):
    """Require a role level of at least ``level``."""
    async def level_dependency(
        current_user: CurrentUser = Depends(get_current_user)
    ) -> CurrentUser:
        if ADMIN_FULL not in current_user.permissions and current_user.max_level < level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role level",
            )
        return current_user

    return level_dependency


def require_role(*role_names: str):
    """Require membership in one of ``role_names``."""
    async def role_dependency(
        current_user: CurrentUser = Depends(get_current_user)
    ) -> CurrentUser:
        if ADMIN_FULL not in current_user.permissions and not current_user.role_names & set(role_names):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Required role missing",
            )
        return current_user

    return role_dependency
