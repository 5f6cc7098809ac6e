"""
Pydantic schemas for detective folders and cases.
"""
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from personalsystem.features.employees.schemas import EmployeeSummary
from personalsystem.features.users.schemas import UserPublic


FolderStatus = Literal["OPEN", "CLOSED"]
CaseStatus = Literal["OPEN", "IN_PROGRESS", "CLOSED", "ARCHIVED"]
CasePriority = Literal["LOW", "NORMAL", "HIGH", "URGENT"]


# ============================================================================
# Folder Schemas
# ============================================================================

class FolderCreate(BaseModel):
    detective_id: str
    description: Optional[str] = None


class FolderUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[FolderStatus] = None


class FolderBrief(BaseModel):
    id: str
    name: str
    status: str
    detective: EmployeeSummary

    model_config = ConfigDict(from_attributes=True)


class FolderResponse(FolderBrief):
    description: Optional[str] = None
    detective_id: str
    closed_at: Optional[datetime] = None
    created_at: datetime
    case_count: int
    created_by: Optional[UserPublic] = None


class CaseBrief(BaseModel):
    id: str
    case_number: str
    title: str
    status: str
    priority: str
    created_at: datetime
    closed_at: Optional[datetime] = None
    image_count: int

    model_config = ConfigDict(from_attributes=True)


class FolderDetail(FolderResponse):
    cases: List[CaseBrief] = []


# ============================================================================
# Case Schemas
# ============================================================================

class CaseCreate(BaseModel):
    title: Optional[str] = None
    folder_id: Optional[str] = None
    description: Optional[str] = None
    priority: CasePriority = "NORMAL"
    suspects: Optional[str] = None
    notes: Optional[str] = None


class CaseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    status: Optional[CaseStatus] = None
    priority: Optional[CasePriority] = None
    suspects: Optional[str] = None
    notes: Optional[str] = None


class CaseImageResponse(BaseModel):
    id: str
    case_id: str
    image_path: str
    description: Optional[str] = None
    created_at: datetime
    uploaded_by: Optional[UserPublic] = None

    model_config = ConfigDict(from_attributes=True)


class CaseResponse(CaseBrief):
    description: Optional[str] = None
    suspects: Optional[str] = None
    notes: Optional[str] = None
    folder_id: str
    updated_at: datetime
    folder: FolderBrief
    created_by: Optional[UserPublic] = None


class CaseDetail(CaseResponse):
    images: List[CaseImageResponse] = []


class CaseStats(BaseModel):
    folders: int
    open: int
    in_progress: int
    closed: int
    archived: int
    total_cases: int
