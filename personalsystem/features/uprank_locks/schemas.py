"""
Pydantic schemas for uprank locks.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from personalsystem.features.employees.schemas import EmployeeSummary
from personalsystem.features.users.schemas import UserPublic


class UprankLockResponse(BaseModel):
    id: str
    employee_id: str
    reason: str
    team: str
    locked_until: datetime
    is_active: bool
    created_at: datetime
    employee: EmployeeSummary
    created_by: Optional[UserPublic] = None

    model_config = ConfigDict(from_attributes=True)


class UprankLockCreate(BaseModel):
    """Manual lock."""
    employee_id: str
    reason: str = Field(..., min_length=1)
    locked_until: datetime


class AutoLockCreate(BaseModel):
    employee_id: str
    team: str


class UprankLockStatus(BaseModel):
    locked: bool
    lock: Optional[UprankLockResponse] = None


class UprankLockStats(BaseModel):
    total: int
    active: int
    expired: int
