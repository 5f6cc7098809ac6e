"""
Pydantic schemas for the blacklist.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from personalsystem.features.users.schemas import UserPublic


class BlacklistCreate(BaseModel):
    discord_id: str = Field(..., min_length=1, max_length=50)
    username: str = Field(..., min_length=1, max_length=100)
    reason: str = Field(..., min_length=1)
    expires_at: Optional[datetime] = None


class BlacklistUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=1, max_length=100)
    reason: Optional[str] = Field(None, min_length=1)
    expires_at: Optional[datetime] = None


class BlacklistResponse(BaseModel):
    id: str
    discord_id: str
    username: str
    reason: str
    expires_at: Optional[datetime] = None
    created_at: datetime
    added_by: Optional[UserPublic] = None

    model_config = ConfigDict(from_attributes=True)


class BlacklistCheck(BaseModel):
    blacklisted: bool
    expired: Optional[bool] = None
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    username: Optional[str] = None


class BlacklistStats(BaseModel):
    total: int
    permanent: int
    temporary: int
