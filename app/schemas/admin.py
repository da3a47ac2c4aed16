"""Admin API schemas"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.schemas.common import PaginationMeta
from app.schemas.user import UserResponse
from app.utils.constants import (
    MAX_ACCOUNT_CAPACITY,
    MAX_COIN_AMOUNT,
    MIN_ACCOUNT_CAPACITY,
    MIN_COIN_AMOUNT,
)


class HerokuAccountCreate(BaseModel):
    email: EmailStr
    api_key: str = Field(..., min_length=8)
    max_deployments: int = Field(5, ge=MIN_ACCOUNT_CAPACITY, le=MAX_ACCOUNT_CAPACITY)
    is_active: bool = True


class HerokuAccountUpdate(BaseModel):
    email: EmailStr | None = None
    api_key: str | None = Field(None, min_length=8)
    max_deployments: int | None = Field(None, ge=MIN_ACCOUNT_CAPACITY, le=MAX_ACCOUNT_CAPACITY)
    is_active: bool | None = None


class HerokuAccountUsageUpdate(BaseModel):
    used_count: int = Field(..., ge=0)


class ValidateKeyRequest(BaseModel):
    api_key: str = Field(..., min_length=8)


class ValidateKeyResponse(BaseModel):
    valid: bool
    email: str | None = None
    account_id: str | None = None


class HerokuAccountResponse(BaseModel):
    id: int
    email: str
    masked_api_key: str
    is_active: bool
    used_count: int
    max_deployments: int
    spare_capacity: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AccountPoolStats(BaseModel):
    total_accounts: int
    active_accounts: int
    total_apps: int
    total_capacity: int
    available_capacity: int


class HerokuAccountListResponse(BaseModel):
    accounts: list[HerokuAccountResponse]
    stats: AccountPoolStats


class AddCoinsRequest(BaseModel):
    amount: int = Field(..., ge=MIN_COIN_AMOUNT, le=MAX_COIN_AMOUNT)
    description: str | None = Field(None, max_length=255)


class AddCoinsResponse(BaseModel):
    user_id: int
    amount: int
    new_balance: int


class ReconcileResponse(BaseModel):
    user_id: int
    cached_balance: int
    ledger_balance: int
    corrected: bool


class UserListResponse(BaseModel):
    users: list[UserResponse]
    pagination: PaginationMeta


class MaintenanceRequest(BaseModel):
    is_active: bool
    message: str | None = Field(None, max_length=500)
    # Maintenance switches itself off after this time
    end_time: datetime | None = None


class MaintenanceResponse(BaseModel):
    is_active: bool
    message: str | None
    end_time: datetime | None
    updated_at: datetime

    class Config:
        from_attributes = True


class MaintenanceEventResponse(BaseModel):
    id: int
    is_active: bool
    message: str | None
    end_time: datetime | None
    source: str
    created_at: datetime

    class Config:
        from_attributes = True


class MaintenanceHistoryResponse(BaseModel):
    history: list[MaintenanceEventResponse]


class MaintenancePruneResponse(BaseModel):
    kept: int
    deleted: int


class MaintenanceExpiryResponse(BaseModel):
    auto_disabled: bool


class StopAllError(BaseModel):
    deployment_id: str
    app_name: str
    error: str


class StopAllResponse(BaseModel):
    stopped: int
    errors: list[StopAllError]


class PlatformStats(BaseModel):
    users: int
    verified_users: int
    bots_approved: int
    bots_pending: int
    deployments_by_status: dict[str, int]
    coins_in_circulation: int
    accounts: AccountPoolStats
