"""
Pydantic schemas for the admin API.

Request and response models for roles, permissions, audit logs and settings.
"""
from datetime import datetime
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from personalsystem.features.users.schemas import UserPublic


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionResponse(BaseModel):
    """Schema for permission response."""
    id: str
    name: str
    description: Optional[str] = None
    category: str

    model_config = ConfigDict(from_attributes=True)


class SeedResult(BaseModel):
    created: int
    updated: int
    total: int


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    """Base role schema."""
    display_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    color: Optional[str] = Field(None, max_length=20)
    discord_role_id: Optional[str] = Field(None, max_length=50)
    level: int = Field(0, ge=0)


class RoleCreate(RoleBase):
    """Schema for creating a new role."""
    name: str = Field(..., min_length=1, max_length=50, description="Unique role name")
    permission_ids: List[str] = []

    @field_validator('name')
    @classmethod
    def name_alphanumeric_underscore(cls, v: str) -> str:
        """Validate role name format."""
        if not v.replace('_', '').replace('-', '').isalnum():
            raise ValueError('Role name must contain only alphanumeric characters, underscores, and hyphens')
        return v


class RoleUpdate(BaseModel):
    """Schema for updating a role. ``permission_ids`` replaces the whole set."""
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    color: Optional[str] = Field(None, max_length=20)
    discord_role_id: Optional[str] = Field(None, max_length=50)
    level: Optional[int] = Field(None, ge=0)
    permission_ids: Optional[List[str]] = None


class RoleResponse(RoleBase):
    """Schema for role with permissions."""
    id: str
    name: str
    permissions: List[PermissionResponse] = []
    user_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Audit Log Schemas
# ============================================================================

class AuditLogResponse(BaseModel):
    """Schema for audit log response."""
    id: str
    user_id: Optional[str]
    action: str
    entity: str
    entity_id: Optional[str]
    details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime
    user: Optional[UserPublic] = None

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Schema for paginated audit log list."""
    data: List[AuditLogResponse]
    total: int
    page: int
    limit: int
    total_pages: int


# ============================================================================
# Stats
# ============================================================================

class AdminStats(BaseModel):
    users: int
    active_users: int
    employees: int
    roles: int
    permissions: int
    audit_logs: int
