"""
Pydantic schemas for bonus payments.
"""
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from personalsystem.features.employees.schemas import EmployeeSummary
from personalsystem.features.users.schemas import UserPublic


BonusCategory = Literal["HR", "ACADEMY", "IA", "DETECTIVE", "GENERAL"]


# ============================================================================
# Config Schemas
# ============================================================================

class BonusConfigResponse(BaseModel):
    id: str
    activity_type: str
    display_name: str
    description: Optional[str] = None
    amount: int
    category: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class BonusConfigCreate(BaseModel):
    activity_type: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    amount: int = Field(0, ge=0)
    category: BonusCategory = "GENERAL"


class BonusConfigUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    amount: Optional[int] = Field(None, ge=0)
    category: Optional[BonusCategory] = None
    is_active: Optional[bool] = None


# ============================================================================
# Payment Schemas
# ============================================================================

class BonusPaymentResponse(BaseModel):
    id: str
    config_id: str
    employee_id: str
    amount: int
    reason: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    status: str
    week_start: datetime
    week_end: datetime
    paid_at: Optional[datetime] = None
    created_at: datetime
    config: BonusConfigResponse
    employee: EmployeeSummary
    paid_by: Optional[UserPublic] = None

    model_config = ConfigDict(from_attributes=True)


class BonusPaymentCreate(BaseModel):
    employee_id: str
    config_id: str
    reason: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None


class WeekSelector(BaseModel):
    """Optional ISO date inside the target week; defaults to the current week."""
    week: Optional[datetime] = None


class PayResult(BaseModel):
    success: bool = True
    updated: int


class ActivitySummary(BaseModel):
    type: str
    display_name: str
    amount: int
    count: int


class EmployeeBonusSummary(BaseModel):
    employee_id: str
    employee_name: str
    total_amount: int = 0
    pending_amount: int = 0
    paid_amount: int = 0
    activities: List[ActivitySummary] = []


class BonusTotals(BaseModel):
    total_amount: int
    pending_amount: int
    paid_amount: int
    payment_count: int
    employee_count: int


class BonusSummaryResponse(BaseModel):
    week_start: datetime
    week_end: datetime
    totals: BonusTotals
    by_employee: List[EmployeeBonusSummary]


class MyBonusSummary(BaseModel):
    total: int = 0
    pending: int = 0
    paid: int = 0
    count: int = 0


class MyBonusResponse(BaseModel):
    payments: List[BonusPaymentResponse] = []
    summary: MyBonusSummary
    week_start: Optional[datetime] = None
    week_end: Optional[datetime] = None


# ============================================================================
# Week Schemas
# ============================================================================

class BonusWeekResponse(BaseModel):
    id: str
    week_start: datetime
    week_end: datetime
    status: str
    total_amount: int
    closed_at: Optional[datetime] = None
    submitted_to_management: bool
    submitted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
