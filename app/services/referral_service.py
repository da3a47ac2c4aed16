"""Referral codes and rewards.

Rewards are paid once, when the referred user verifies their email: the
referrer gets a ``referral`` credit and the new user a ``referral_bonus``.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.coin_transaction import CoinTransaction, TransactionType
from app.models.referral import Referral, ReferralStatus
from app.models.user import User
from app.services.activity_service import activity_service
from app.services.email import ReferralRewardData, get_email_service
from app.services.ledger_service import ledger_service
from app.utils.constants import REFERRAL_CODE_LENGTH
from app.utils.logger import get_logger

logger = get_logger("referral")


class ReferralService:
    async def generate_code(self, db: AsyncSession) -> str:
        """Unused 8-character upper-case code."""
        while True:
            code = uuid.uuid4().hex[:REFERRAL_CODE_LENGTH].upper()
            taken = (
                await db.execute(select(User.id).where(User.referral_code == code))
            ).scalar_one_or_none()
            if taken is None:
                return code

    async def find_referrer(self, db: AsyncSession, code: Optional[str]) -> Optional[User]:
        """Verified owner of ``code``, or None."""
        if not code:
            return None
        referrer = (
            await db.execute(select(User).where(User.referral_code == code.strip().upper()))
        ).scalar_one_or_none()
        if referrer is None or not referrer.is_verified:
            return None
        return referrer

    def attach(self, db: AsyncSession, referrer: User, referred: User) -> Referral:
        """Stage a pending referral for a new user (caller commits)."""
        referred.referred_by = referrer.id
        referral = Referral(referrer_id=referrer.id, referred_id=referred.id)
        db.add(referral)
        return referral

    async def complete(self, db: AsyncSession, referred: User) -> Optional[Referral]:
        """Pay both sides of a pending referral. Safe to call more than once."""
        referral = (
            await db.execute(
                select(Referral).where(
                    Referral.referred_id == referred.id,
                    Referral.status == ReferralStatus.PENDING.value,
                )
            )
        ).scalar_one_or_none()
        if referral is None:
            return None

        referrer = await db.get(User, referral.referrer_id)
        reward = settings.coin_referral_reward
        bonus = settings.coin_referral_bonus

        await ledger_service.append_entry(
            db,
            amount=reward,
            type=TransactionType.REFERRAL,
            receiver_id=referral.referrer_id,
            description=f"Referral of {referred.email}",
            idempotency_key=f"referral:{referral.id}:referrer",
        )
        if bonus > 0:
            await ledger_service.append_entry(
                db,
                amount=bonus,
                type=TransactionType.REFERRAL_BONUS,
                receiver_id=referred.id,
                description="Welcome bonus for joining with a referral code",
                idempotency_key=f"referral:{referral.id}:referred",
            )

        referral.status = ReferralStatus.COMPLETED.value
        referral.reward_given = True
        referral.completed_at = datetime.utcnow()
        activity_service.record(
            db, "referral_completed", referral.referrer_id, {"referred_id": referred.id, "reward": reward}
        )
        await db.commit()
        logger.info(f"Referral {referral.id} completed: user {referral.referrer_id} rewarded {reward} coins")

        if referrer is not None:
            await get_email_service().send_referral_reward_email(
                referrer.email,
                ReferralRewardData(
                    referrer_name=referrer.name or referrer.email,
                    referred_email=referred.email,
                    reward=reward,
                    new_balance=await ledger_service.get_balance(db, referrer.id),
                ),
            )
        return referral

    async def stats(self, db: AsyncSession, user: User) -> dict:
        referrals = (
            await db.execute(
                select(Referral, User.email, User.name)
                .join(User, User.id == Referral.referred_id)
                .where(Referral.referrer_id == user.id)
                .order_by(Referral.created_at.desc())
            )
        ).all()
        earned = (
            await db.execute(
                select(func.coalesce(func.sum(CoinTransaction.amount), 0)).where(
                    CoinTransaction.receiver_id == user.id,
                    CoinTransaction.type == TransactionType.REFERRAL.value,
                )
            )
        ).scalar()

        rewarded = sum(1 for referral, _, _ in referrals if referral.reward_given)
        return {
            "referral_code": user.referral_code,
            "total_referrals": len(referrals),
            "rewarded_referrals": rewarded,
            "pending_referrals": len(referrals) - rewarded,
            "total_coins_earned": int(earned or 0),
            "referral_reward": settings.coin_referral_reward,
            "referrals": [
                {
                    "email": email,
                    "name": name,
                    "status": referral.status,
                    "reward_given": referral.reward_given,
                    "created_at": referral.created_at,
                    "completed_at": referral.completed_at,
                }
                for referral, email, name in referrals
            ],
        }

    async def regenerate_code(self, db: AsyncSession, user: User) -> str:
        user.referral_code = await self.generate_code(db)
        activity_service.record(db, "referral_code_generated", user.id, {"code": user.referral_code})
        await db.commit()
        return user.referral_code

    def referral_link(self, user: User) -> str:
        return f"{settings.app_url.rstrip('/')}/signup?ref={user.referral_code}"


referral_service = ReferralService()
