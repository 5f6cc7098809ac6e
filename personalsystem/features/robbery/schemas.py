"""
Pydantic schemas for the robbery log.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict

from personalsystem.features.employees.schemas import EmployeeSummary
from personalsystem.features.users.schemas import UserPublic


class RobberyResponse(BaseModel):
    id: str
    leader_id: str
    negotiator_id: Optional[str] = None
    image_path: str
    created_at: datetime
    leader: EmployeeSummary
    negotiator: Optional[EmployeeSummary] = None
    created_by: Optional[UserPublic] = None

    model_config = ConfigDict(from_attributes=True)


class RobberyStats(BaseModel):
    week_total: int
    week_start: datetime
    week_end: datetime
