"""
Pydantic schemas for civilian service tracking.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict

from personalsystem.features.employees.schemas import EmployeeSummary


class ServiceSessionResponse(BaseModel):
    id: str
    employee_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    notes: Optional[str] = None
    is_active: bool
    employee: EmployeeSummary

    model_config = ConfigDict(from_attributes=True)


class ClockRequest(BaseModel):
    employee_id: Optional[str] = None
    notes: Optional[str] = None


class CurrentSessionResponse(BaseModel):
    active: bool
    session: Optional[ServiceSessionResponse] = None


class ServiceStats(BaseModel):
    total_minutes: int
    total_hours: int
    total_sessions: int
    average_minutes: int
    average_hours: int
    is_active: bool
    current_session_start: Optional[datetime] = None


class PeriodStats(BaseModel):
    total_minutes: int = 0
    total_hours: int = 0
    sessions: int = 0


class DetectiveServiceStats(BaseModel):
    employee: EmployeeSummary
    today: PeriodStats
    week: PeriodStats
    month: PeriodStats
    total: PeriodStats
    is_active: bool
    current_session_start: Optional[datetime] = None


class ServiceOverview(BaseModel):
    today: PeriodStats
    week: PeriodStats
    month: PeriodStats
    active_sessions: int
    total_detectives: int
    detectives: List[DetectiveServiceStats]
