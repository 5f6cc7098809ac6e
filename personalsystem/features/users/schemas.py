"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from typing import Dict, List
from pydantic import BaseModel, ConfigDict, Field


class UserPublic(BaseModel):
    """Public user information (limited fields), embedded in other responses."""
    id: str
    discord_id: str
    username: str
    display_name: str | None = None
    avatar: str | None = None

    model_config = ConfigDict(from_attributes=True)


class RoleBrief(BaseModel):
    id: str
    name: str
    display_name: str
    color: str | None = None
    level: int

    model_config = ConfigDict(from_attributes=True)


class UserResponse(UserPublic):
    """Schema for user responses."""
    email: str | None = None
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    roles: List[RoleBrief] = []


class UserListResponse(BaseModel):
    data: List[UserResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class UserUpdate(BaseModel):
    """Schema for updating roles and account state."""
    role_ids: List[str] | None = None
    is_active: bool | None = None


class DiscordCallback(BaseModel):
    code: str = Field(..., min_length=1)


class MeResponse(UserPublic):
    """Current session: identity, roles and everything the frontend gates on."""
    roles: List[RoleBrief] = []
    employee_id: str | None = None
    permissions: List[str] = []
    max_level: int = 0
    capabilities: Dict[str, bool] = {}
