"""Deployment schemas"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field


DeploymentStatus = Literal["pending", "configuring", "active", "failed", "stopped"]


class CreateDeploymentRequest(BaseModel):
    bot_id: UUID
    # Optional client-side price check
    cost: int | None = Field(None, ge=1)


class CreateDeploymentResponse(BaseModel):
    deployment_id: UUID
    app_name: str
    status: DeploymentStatus
    cost: int
    new_balance: int


class UpdateEnvRequest(BaseModel):
    env_variables: dict[str, Any] = Field(default_factory=dict)


class UpdateEnvResponse(BaseModel):
    deployment: "DeploymentResponse"
    new_balance: int


class DeploymentListItem(BaseModel):
    id: UUID
    bot_id: UUID | None
    bot_name: str | None = None
    app_name: str
    status: DeploymentStatus
    cost: int
    env_count: int
    error_message: str | None = None
    created_at: datetime
    activated_at: datetime | None = None


class DeploymentListResponse(BaseModel):
    deployments: list[DeploymentListItem]


class DeploymentResponse(BaseModel):
    id: UUID
    user_id: int
    bot_id: UUID | None
    account_id: int | None
    app_name: str
    heroku_app_id: str | None
    status: DeploymentStatus
    cost: int
    env_variables: dict[str, Any]
    logs: str
    error_message: str | None = None
    activated_at: datetime | None = None
    failed_at: datetime | None = None
    stopped_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DeploymentLogsResponse(BaseModel):
    deployment_id: UUID
    status: DeploymentStatus
    journal: str
    runtime_logs: str | None = None
    runtime_error: str | None = None


class DeleteDeploymentResponse(BaseModel):
    message: str
    teardown_error: str | None = None


# Update forward references
UpdateEnvResponse.model_rebuild()
