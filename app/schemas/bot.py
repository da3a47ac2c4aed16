"""Bot catalog schemas"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import PaginationMeta


class BotSubmitRequest(BaseModel):
    """Submit a GitHub repository as a bot"""
    github_repo: str = Field(..., min_length=3, max_length=200, description="owner/name")
    cost: int = Field(..., ge=1, le=1_000_000)
    branch: str | None = Field(None, max_length=100)


class CheckRepoRequest(BaseModel):
    github_repo: str = Field(..., min_length=3, max_length=200)
    branch: str | None = Field(None, max_length=100)


class BotUpdateRequest(BaseModel):
    """Owner edit; any edit sends the bot back to review"""
    cost: int | None = Field(None, ge=1, le=1_000_000)
    is_active: bool | None = None


class BotRejectRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class BotResponse(BaseModel):
    id: UUID
    owner_id: int
    name: str
    description: str | None
    github_repo: str
    github_branch: str
    env_schema: dict[str, Any]
    logo_url: str | None
    documentation_url: str | None
    cost: int
    is_approved: bool
    is_active: bool
    review_status: str
    rejection_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OwnedBotResponse(BotResponse):
    total_deployments: int = 0
    active_deployments: int = 0


class BotListResponse(BaseModel):
    bots: list[BotResponse]


class OwnedBotListResponse(BaseModel):
    bots: list[OwnedBotResponse]


class BotRequestListResponse(BaseModel):
    bots: list[BotResponse]
    pagination: PaginationMeta


class CheckRepoResponse(BaseModel):
    github_repo: str
    name: str
    description: str
    env: dict[str, Any]
    logo: str | None = None
    documentation_link: str | None = None


BotRequestStatus = Literal["pending", "approved", "rejected", "all"]
