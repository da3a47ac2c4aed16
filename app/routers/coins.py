"""Coins router: balance, ledger history, daily reward and transfers"""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db import get_db
from app.models import User
from app.models.coin_transaction import TransactionType
from app.schemas.coin import (
    BalanceResponse,
    DailyClaimResponse,
    DailyStatusResponse,
    TransactionItem,
    TransactionListResponse,
    TransferRequest,
    TransferResponse,
)
from app.schemas.common import PaginationMeta
from app.services.firebase import get_current_user
from app.services.ledger_service import ledger_service
from app.utils.constants import DAILY_CLAIM_COOLDOWN_HOURS, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(prefix="/coins", tags=["Coins"])


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return BalanceResponse(**await ledger_service.balance_summary(db, user.id))


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    type: Optional[TransactionType] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Ledger entries sent or received by the user, newest first."""
    entries, total = await ledger_service.list_transactions(db, user.id, page, limit, type)
    return TransactionListResponse(
        transactions=[
            TransactionItem(
                id=entry.id,
                type=entry.type,
                amount=entry.amount,
                direction=entry.direction_for(user.id),
                sender_id=entry.sender_id,
                receiver_id=entry.receiver_id,
                description=entry.description,
                deployment_id=entry.deployment_id,
                created_at=entry.created_at,
            )
            for entry in entries
        ],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get("/daily/status", response_model=DailyStatusResponse)
async def daily_status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    status = await ledger_service.daily_status(db, user.id)
    return DailyStatusResponse(
        can_claim=status["can_claim"],
        hours_remaining=status["hours_remaining"],
        next_claim_time=status["next_claim_time"],
        daily_reward=settings.coin_daily_reward,
    )


@router.post("/daily/claim", response_model=DailyClaimResponse)
async def claim_daily(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Claim the daily reward (once every 24 hours)."""
    entry, new_balance = await ledger_service.claim_daily(db, user.id)
    return DailyClaimResponse(
        coins_added=entry.amount,
        new_balance=new_balance,
        next_claim_available=entry.created_at + timedelta(hours=DAILY_CLAIM_COOLDOWN_HOURS),
    )


@router.post("/transfer", response_model=TransferResponse)
async def transfer_coins(
    data: TransferRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Send coins to another verified user."""
    entry, new_balance, receiver = await ledger_service.transfer(
        db, user, data.receiver_email, data.amount, data.description
    )
    return TransferResponse(
        transaction_id=entry.id,
        amount=entry.amount,
        receiver_email=receiver.email,
        new_balance=new_balance,
    )
