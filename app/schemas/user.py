"""User, auth and activity schemas"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.common import PaginationMeta
from app.utils.constants import REFERRAL_CODE_PATTERN


class LoginRequest(BaseModel):
    """Optional body of the first login"""
    referral_code: str | None = Field(None, pattern=REFERRAL_CODE_PATTERN)


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    name: str | None
    coins: int
    referral_code: str
    referred_by: int | None
    is_verified: bool
    created_at: datetime

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    user: UserResponse
    is_new_user: bool


class ActivityItem(BaseModel):
    id: Any
    action: str
    details: dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True


class ActivityListResponse(BaseModel):
    activities: list[ActivityItem]
    pagination: PaginationMeta


class UserStatsResponse(BaseModel):
    total_bots: int
    total_deployments: int
    active_deployments: int
    total_actions: int
    total_referrals: int
    total_transactions: int


class ProfileResponse(BaseModel):
    user: UserResponse
    stats: UserStatsResponse
    recent_activity: list[ActivityItem]


class ProfileUpdateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name cannot be blank")
        return value
