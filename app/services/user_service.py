"""User provisioning and verification"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import NotFound
from app.models.activity_log import ActivityLog
from app.models.bot import Bot
from app.models.coin_transaction import CoinTransaction, TransactionType
from app.models.deployment import Deployment, DeploymentStatus
from app.models.referral import Referral
from app.models.user import User
from app.services.activity_service import activity_service
from app.services.ledger_service import ledger_service
from app.services.referral_service import referral_service
from app.utils.logger import get_logger
from app.utils.sentry_utils import capture_exception

logger = get_logger("users")


class UserService:
    async def get_by_firebase_uid(self, db: AsyncSession, firebase_uid: str) -> Optional[User]:
        return (
            await db.execute(select(User).where(User.firebase_uid == firebase_uid))
        ).scalar_one_or_none()

    async def get(self, db: AsyncSession, user_id: int) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFound("User")
        return user

    async def provision(
        self,
        db: AsyncSession,
        firebase_uid: str,
        email: str,
        name: Optional[str] = None,
        referral_code: Optional[str] = None,
    ) -> User:
        """Create the local user on first login.

        The welcome bonus goes through the ledger. A referral code of a
        verified user (other than the new one) links the two with a pending
        referral; it pays out on verification.
        """
        user = User(
            firebase_uid=firebase_uid,
            email=email.lower(),
            name=name,
            coins=0,
            referral_code=await referral_service.generate_code(db),
        )
        db.add(user)
        await db.flush()

        if settings.coin_welcome_bonus > 0:
            await ledger_service.append_entry(
                db,
                amount=settings.coin_welcome_bonus,
                type=TransactionType.WELCOME,
                receiver_id=user.id,
                description="Welcome bonus",
                idempotency_key=f"welcome:{user.id}",
            )

        referrer = await referral_service.find_referrer(db, referral_code)
        if referrer is not None and referrer.id != user.id:
            referral_service.attach(db, referrer, user)
        elif referral_code:
            logger.info(f"Ignoring unusable referral code {referral_code!r} for {email}")

        activity_service.record(
            db, "signup", user.id, {"referred_by": user.referred_by}
        )
        await db.commit()
        await db.refresh(user)
        logger.info(f"Provisioned user {user.id} ({user.email})")
        return user

    async def mark_verified(self, db: AsyncSession, user: User) -> bool:
        """Verify the user once and pay any pending referral.

        Returns:
            False if the user was already verified
        """
        if user.is_verified:
            return False

        user.is_verified = True
        user.verified_at = datetime.utcnow()
        activity_service.record(db, "email_verified", user.id)
        await db.commit()
        logger.info(f"User {user.id} verified")

        try:
            await referral_service.complete(db, user)
        except Exception as e:
            # verification stands even when the reward could not be paid
            await db.rollback()
            logger.error(f"Referral reward for user {user.id} failed: {e}", exc_info=True)
            capture_exception(e)
        await db.refresh(user)
        return True

    async def stats(self, db: AsyncSession, user_id: int) -> dict:
        """Counts of the user's bots, deployments, actions, referrals and coin transactions."""

        async def count(query) -> int:
            return (await db.execute(query)).scalar() or 0

        return {
            "total_bots": await count(select(func.count(Bot.id)).where(Bot.owner_id == user_id)),
            "total_deployments": await count(
                select(func.count(Deployment.id)).where(Deployment.user_id == user_id)
            ),
            "active_deployments": await count(
                select(func.count(Deployment.id)).where(
                    Deployment.user_id == user_id, Deployment.status == DeploymentStatus.ACTIVE.value
                )
            ),
            "total_actions": await count(select(func.count(ActivityLog.id)).where(ActivityLog.user_id == user_id)),
            "total_referrals": await count(select(func.count(Referral.id)).where(Referral.referrer_id == user_id)),
            "total_transactions": await count(
                select(func.count(CoinTransaction.id)).where(
                    or_(CoinTransaction.sender_id == user_id, CoinTransaction.receiver_id == user_id)
                )
            ),
        }

    async def update_profile(self, db: AsyncSession, user: User, name: str) -> User:
        """Change the display name. The email stays the one Firebase verified."""
        user.name = name
        activity_service.record(db, "profile_updated", user.id, {"name": name})
        await db.commit()
        await db.refresh(user)
        return user

    async def list_users(
        self, db: AsyncSession, page: int, limit: int, search: Optional[str] = None
    ) -> tuple[list[User], int]:
        query = select(User)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(func.lower(User.email).like(pattern), func.lower(User.name).like(pattern)))
        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
        result = await db.execute(
            query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit)
        )
        return list(result.scalars().all()), total


user_service = UserService()
