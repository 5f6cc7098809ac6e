"""
Pydantic schemas for HR applications.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from personalsystem.features.employees.schemas import EmployeeResponse
from personalsystem.features.users.schemas import UserPublic


class ApplicationCreate(BaseModel):
    discord_id: str = Field(..., min_length=1, max_length=50)
    discord_username: str = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = None


class ApplicationUpdate(BaseModel):
    discord_username: Optional[str] = Field(None, min_length=1, max_length=100)
    notes: Optional[str] = None
    interview_notes: Optional[str] = None


class ScheduleInterview(BaseModel):
    interview_date: datetime


class AcceptApplication(BaseModel):
    interview_notes: Optional[str] = None


class RejectApplication(BaseModel):
    rejection_reason: str = Field(..., min_length=1)
    add_to_blacklist: bool = False
    blacklist_reason: Optional[str] = None
    blacklist_expires: Optional[datetime] = None


class ApplicationResponse(BaseModel):
    id: str
    discord_id: str
    discord_username: str
    status: str
    notes: Optional[str] = None
    interview_date: Optional[datetime] = None
    interview_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    created_by: Optional[UserPublic] = None
    processed_by: Optional[UserPublic] = None

    model_config = ConfigDict(from_attributes=True)


class AcceptResponse(BaseModel):
    application: ApplicationResponse
    employee: EmployeeResponse
    message: str


class ApplicationStats(BaseModel):
    pending: int
    interview: int
    accepted: int
    rejected: int
    total: int
