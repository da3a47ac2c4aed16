"""Coin ledger schemas"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.schemas.common import PaginationMeta
from app.utils.constants import MAX_COIN_AMOUNT, MIN_COIN_AMOUNT


TransactionTypeName = Literal[
    "deployment", "transfer", "referral", "referral_bonus", "daily", "admin", "refund", "welcome"
]


class TransactionItem(BaseModel):
    id: UUID
    type: TransactionTypeName
    amount: int
    direction: Literal["in", "out"]
    sender_id: int | None
    receiver_id: int | None
    description: str | None
    deployment_id: UUID | None = None
    created_at: datetime


class TransactionListResponse(BaseModel):
    transactions: list[TransactionItem]
    pagination: PaginationMeta


class BalanceResponse(BaseModel):
    balance: int
    sent_count: int
    received_count: int
    last_daily_claim: datetime | None
    can_claim_daily: bool


class DailyStatusResponse(BaseModel):
    can_claim: bool
    hours_remaining: int
    next_claim_time: datetime | None
    daily_reward: int


class DailyClaimResponse(BaseModel):
    coins_added: int
    new_balance: int
    next_claim_available: datetime


class TransferRequest(BaseModel):
    receiver_email: EmailStr
    amount: int = Field(..., ge=MIN_COIN_AMOUNT, le=MAX_COIN_AMOUNT)
    description: str | None = Field(None, max_length=255)


class TransferResponse(BaseModel):
    transaction_id: UUID
    amount: int
    receiver_email: EmailStr
    new_balance: int
