"""Coin ledger.

The ledger is the source of truth for coins. ``User.coins`` is a cached
projection updated in the same transaction as every entry, with debits guarded
by a conditional UPDATE so a balance can never go below zero.
"""

import math
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    DailyClaimCooldown,
    InsufficientBalance,
    NotFound,
    ValidationError,
)
from app.models.coin_transaction import CoinTransaction, TransactionType
from app.models.user import User
from app.services.activity_service import activity_service
from app.services.email import CoinTransferData, get_email_service
from app.utils.constants import DAILY_CLAIM_COOLDOWN_HOURS, MAX_COIN_AMOUNT, MIN_COIN_AMOUNT
from app.utils.logger import get_logger

logger = get_logger("ledger")


def validate_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValidationError("Amount must be an integer")
    if amount < MIN_COIN_AMOUNT or amount > MAX_COIN_AMOUNT:
        raise ValidationError(
            f"Amount must be between {MIN_COIN_AMOUNT} and {MAX_COIN_AMOUNT}",
            {"amount": amount},
        )


class LedgerService:
    """Coin movements between users and the system."""

    async def get_balance(self, db: AsyncSession, user_id: int) -> int:
        """Cached balance read straight from the database."""
        balance = (await db.execute(select(User.coins).where(User.id == user_id))).scalar_one_or_none()
        if balance is None:
            raise NotFound("User")
        return balance

    async def _debit(self, db: AsyncSession, user_id: int, amount: int) -> None:
        result = await db.execute(
            update(User)
            .where(User.id == user_id, User.coins >= amount)
            .values(coins=User.coins - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InsufficientBalance(required=amount, available=await self.get_balance(db, user_id))

    async def _credit(self, db: AsyncSession, user_id: int, amount: int) -> None:
        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(coins=User.coins + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFound("User")

    async def append_entry(
        self,
        db: AsyncSession,
        *,
        amount: int,
        type: TransactionType,
        sender_id: Optional[int] = None,
        receiver_id: Optional[int] = None,
        description: Optional[str] = None,
        deployment_id: Optional[UUID] = None,
        idempotency_key: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> CoinTransaction:
        """Write one ledger entry and apply it to the cached balances.

        Nothing is committed: the entry and the balance updates belong to the
        caller's transaction. Replaying an ``idempotency_key`` returns the
        entry written the first time without moving coins again.
        """
        if amount <= 0:
            raise ValidationError("Ledger amounts must be positive", {"amount": amount})
        if sender_id is None and receiver_id is None:
            raise ValidationError("A ledger entry needs a sender or a receiver")

        if idempotency_key:
            existing = (
                await db.execute(
                    select(CoinTransaction).where(CoinTransaction.idempotency_key == idempotency_key)
                )
            ).scalar_one_or_none()
            if existing is not None:
                logger.info(f"Ledger entry {idempotency_key} already recorded, skipping")
                return existing

        if sender_id is not None:
            await self._debit(db, sender_id, amount)
        if receiver_id is not None:
            await self._credit(db, receiver_id, amount)

        entry = CoinTransaction(
            sender_id=sender_id,
            receiver_id=receiver_id,
            amount=amount,
            type=TransactionType(type).value,
            description=description,
            deployment_id=deployment_id,
            idempotency_key=idempotency_key,
            created_at=created_at or datetime.utcnow(),
        )
        db.add(entry)
        await db.flush()

        logger.info(
            f"Ledger {entry.type}: {amount} coins "
            f"{sender_id if sender_id is not None else 'system'} -> "
            f"{receiver_id if receiver_id is not None else 'system'}"
        )
        return entry

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: int,
        page: int,
        limit: int,
        type: Optional[TransactionType] = None,
    ) -> tuple[list[CoinTransaction], int]:
        """Entries where the user is sender or receiver, newest first."""
        query = select(CoinTransaction).where(
            or_(CoinTransaction.sender_id == user_id, CoinTransaction.receiver_id == user_id)
        )
        if type is not None:
            query = query.where(CoinTransaction.type == TransactionType(type).value)

        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
        result = await db.execute(
            query.order_by(CoinTransaction.created_at.desc(), CoinTransaction.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def _last_daily_claim(self, db: AsyncSession, user_id: int) -> Optional[datetime]:
        result = await db.execute(
            select(CoinTransaction.created_at)
            .where(
                CoinTransaction.receiver_id == user_id,
                CoinTransaction.type == TransactionType.DAILY.value,
            )
            .order_by(CoinTransaction.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def daily_status(self, db: AsyncSession, user_id: int, now: Optional[datetime] = None) -> dict:
        now = now or datetime.utcnow()
        last_claim = await self._last_daily_claim(db, user_id)
        next_claim = last_claim + timedelta(hours=DAILY_CLAIM_COOLDOWN_HOURS) if last_claim else None
        can_claim = next_claim is None or now >= next_claim

        hours_remaining = 0
        if not can_claim:
            hours_remaining = math.ceil((next_claim - now).total_seconds() / 3600)

        return {
            "can_claim": can_claim,
            "last_claim": last_claim,
            "next_claim_time": None if can_claim else next_claim,
            "hours_remaining": hours_remaining,
            "daily_reward": settings.coin_daily_reward,
        }

    async def claim_daily(
        self, db: AsyncSession, user_id: int, now: Optional[datetime] = None
    ) -> tuple[CoinTransaction, int]:
        """Credit the daily reward if the last claim is at least 24h old.

        Returns:
            (ledger entry, new balance)
        """
        now = now or datetime.utcnow()
        status = await self.daily_status(db, user_id, now)
        if not status["can_claim"]:
            raise DailyClaimCooldown(
                hours_remaining=status["hours_remaining"],
                next_claim_time=status["next_claim_time"].isoformat(),
            )

        reward = settings.coin_daily_reward
        # Keyed on the previous claim so two concurrent claims collide
        previous = status["last_claim"].isoformat() if status["last_claim"] else "first"
        try:
            entry = await self.append_entry(
                db,
                amount=reward,
                type=TransactionType.DAILY,
                receiver_id=user_id,
                description="Daily reward",
                idempotency_key=f"daily:{user_id}:{previous}",
                created_at=now,
            )
            activity_service.record(db, "daily_claim", user_id, {"coins_added": reward})
            await db.commit()
        except IntegrityError:
            await db.rollback()
            next_claim = now + timedelta(hours=DAILY_CLAIM_COOLDOWN_HOURS)
            raise DailyClaimCooldown(
                hours_remaining=DAILY_CLAIM_COOLDOWN_HOURS, next_claim_time=next_claim.isoformat()
            )

        return entry, await self.get_balance(db, user_id)

    async def transfer(
        self,
        db: AsyncSession,
        sender: User,
        receiver_email: str,
        amount: int,
        description: Optional[str] = None,
    ) -> tuple[CoinTransaction, int, User]:
        """Move coins between two users.

        Returns:
            (ledger entry, sender's new balance, receiver)
        """
        validate_amount(amount)
        receiver_email = receiver_email.strip().lower()
        if receiver_email == sender.email.lower():
            raise ValidationError("You cannot send coins to yourself")

        receiver = (
            await db.execute(select(User).where(func.lower(User.email) == receiver_email))
        ).scalar_one_or_none()
        if receiver is None:
            raise NotFound("Receiver", "No user with this email")
        if not receiver.is_verified:
            raise ValidationError("The receiver has not verified their account yet")

        description = description or f"Transfer of {amount} coins"
        entry = await self.append_entry(
            db,
            amount=amount,
            type=TransactionType.TRANSFER,
            sender_id=sender.id,
            receiver_id=receiver.id,
            description=description,
        )
        activity_service.record(
            db, "coin_transfer", sender.id, {"receiver_id": receiver.id, "amount": amount}
        )
        await db.commit()

        new_balance = await self.get_balance(db, sender.id)
        await get_email_service().send_coins_received_email(
            receiver.email,
            CoinTransferData(
                receiver_name=receiver.name or receiver.email,
                sender_email=sender.email,
                amount=amount,
                description=description,
            ),
        )
        return entry, new_balance, receiver

    async def admin_credit(
        self, db: AsyncSession, user_id: int, amount: int, description: Optional[str] = None
    ) -> tuple[CoinTransaction, int]:
        validate_amount(amount)
        entry = await self.append_entry(
            db,
            amount=amount,
            type=TransactionType.ADMIN,
            receiver_id=user_id,
            description=description or "Credit from administrator",
        )
        activity_service.record(db, "admin_add_coins", None, {"user_id": user_id, "amount": amount})
        await db.commit()
        return entry, await self.get_balance(db, user_id)

    async def balance_summary(self, db: AsyncSession, user_id: int) -> dict:
        sent = (
            await db.execute(select(func.count()).where(CoinTransaction.sender_id == user_id))
        ).scalar() or 0
        received = (
            await db.execute(select(func.count()).where(CoinTransaction.receiver_id == user_id))
        ).scalar() or 0
        daily = await self.daily_status(db, user_id)
        return {
            "balance": await self.get_balance(db, user_id),
            "sent_count": sent,
            "received_count": received,
            "last_daily_claim": daily["last_claim"],
            "can_claim_daily": daily["can_claim"],
        }

    async def ledger_balance(self, db: AsyncSession, user_id: int) -> int:
        """Balance derived from the ledger alone."""
        signed = case(
            (CoinTransaction.receiver_id == user_id, CoinTransaction.amount),
            else_=-CoinTransaction.amount,
        )
        result = await db.execute(
            select(func.coalesce(func.sum(signed), 0)).where(
                or_(CoinTransaction.sender_id == user_id, CoinTransaction.receiver_id == user_id)
            )
        )
        return int(result.scalar() or 0)

    async def reconcile_balance(self, db: AsyncSession, user_id: int) -> tuple[int, int]:
        """Rewrite the cached balance from the ledger when they disagree.

        Returns:
            (cached balance before, ledger balance)
        """
        cached = await self.get_balance(db, user_id)
        computed = await self.ledger_balance(db, user_id)
        if cached != computed:
            logger.warning(f"Balance drift for user {user_id}: cached={cached}, ledger={computed}")
            await db.execute(
                update(User)
                .where(User.id == user_id)
                .values(coins=computed)
                .execution_options(synchronize_session=False)
            )
            activity_service.record(
                db, "balance_reconciled", None, {"user_id": user_id, "cached": cached, "ledger": computed}
            )
            await db.commit()
        return cached, computed


ledger_service = LedgerService()
