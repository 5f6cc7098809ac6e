"""
Pydantic schemas for the employee roster.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from personalsystem.features.users.schemas import UserPublic


EmployeeStatus = Literal["ACTIVE", "INACTIVE", "ON_LEAVE", "SUSPENDED", "TERMINATED"]


class EmployeeSummary(BaseModel):
    """Employee as embedded in other entities."""
    id: str
    badge_number: Optional[str] = None
    rank: str
    rank_level: int
    user: UserPublic

    model_config = ConfigDict(from_attributes=True)


class EmployeeResponse(EmployeeSummary):
    user_id: str
    department: str
    status: str
    team: Optional[str] = None
    hire_date: datetime
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class EmployeeListResponse(BaseModel):
    data: List[EmployeeResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class EmployeeCreate(BaseModel):
    user_id: str
    badge_number: Optional[str] = None
    rank: str = "Cadet"
    rank_level: int = Field(1, ge=1, le=17)
    department: str = "Patrol"


class EmployeeUpdate(BaseModel):
    badge_number: Optional[str] = None
    rank: Optional[str] = None
    rank_level: Optional[int] = Field(None, ge=1, le=17)
    department: Optional[str] = None
    status: Optional[EmployeeStatus] = None
    notes: Optional[str] = None

    @field_validator("badge_number")
    @classmethod
    def normalize_badge(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        return v or None


class TerminateRequest(BaseModel):
    reason: Optional[str] = None


class RankChangeResponse(BaseModel):
    success: bool = True
    employee: EmployeeResponse
    old_rank: str
    new_rank: str
    new_level: int
    new_badge_number: Optional[str] = None
    team_changed: bool = False
    lock_created: bool = False


class EmployeeStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_department: Dict[str, int]
