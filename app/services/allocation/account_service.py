"""Hosting account administration"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvalidDeploymentState, NotFound, ValidationError
from app.models.deployment import Deployment, DeploymentStatus
from app.models.heroku_account import HerokuAccount
from app.services.activity_service import activity_service
from app.services.allocation.account_allocator import load_pool, select_account
from app.services.heroku import validate_api_key
from app.utils.logger import get_logger

logger = get_logger("accounts")

LIVE_STATUSES = (
    DeploymentStatus.PENDING.value,
    DeploymentStatus.CONFIGURING.value,
    DeploymentStatus.ACTIVE.value,
)


class AccountService:
    async def list_accounts(self, db: AsyncSession) -> list[HerokuAccount]:
        result = await db.execute(select(HerokuAccount).order_by(HerokuAccount.id))
        return list(result.scalars().all())

    def pool_stats(self, accounts: list[HerokuAccount]) -> dict:
        active = [account for account in accounts if account.is_active]
        total_capacity = sum(account.max_deployments for account in active)
        total_apps = sum(account.used_count for account in accounts)
        return {
            "total_accounts": len(accounts),
            "active_accounts": len(active),
            "total_apps": total_apps,
            "total_capacity": total_capacity,
            "available_capacity": sum(max(0, account.spare_capacity) for account in active),
        }

    async def get(self, db: AsyncSession, account_id: int) -> HerokuAccount:
        account = await db.get(HerokuAccount, account_id)
        if account is None:
            raise NotFound("Hosting account")
        return account

    async def _ensure_email_free(self, db: AsyncSession, email: str, exclude_id: Optional[int] = None) -> None:
        query = select(HerokuAccount.id).where(func.lower(HerokuAccount.email) == email.lower())
        if exclude_id is not None:
            query = query.where(HerokuAccount.id != exclude_id)
        if (await db.execute(query)).scalar_one_or_none() is not None:
            raise ValidationError("A hosting account with this email already exists", {"email": email})

    async def _ensure_valid_key(self, api_key: str) -> dict:
        info = await validate_api_key(api_key)
        if info is None:
            raise ValidationError("Heroku rejected this API key")
        return info

    async def create(
        self,
        db: AsyncSession,
        email: str,
        api_key: str,
        max_deployments: int,
        is_active: bool = True,
    ) -> HerokuAccount:
        await self._ensure_email_free(db, email)
        await self._ensure_valid_key(api_key)

        account = HerokuAccount(
            email=email.lower(),
            api_key=api_key,
            max_deployments=max_deployments,
            used_count=0,
            is_active=is_active,
        )
        db.add(account)
        await db.flush()
        activity_service.record(db, "heroku_account_added", None, {"account_id": account.id, "email": account.email})
        await db.commit()
        await db.refresh(account)
        logger.info(f"Hosting account {account.id} ({account.email}) added")
        return account

    async def update(
        self,
        db: AsyncSession,
        account: HerokuAccount,
        email: Optional[str] = None,
        api_key: Optional[str] = None,
        max_deployments: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> HerokuAccount:
        if email is not None and email.lower() != account.email:
            await self._ensure_email_free(db, email, exclude_id=account.id)
            account.email = email.lower()
        if api_key is not None and api_key != account.api_key:
            await self._ensure_valid_key(api_key)
            account.api_key = api_key
        if max_deployments is not None:
            account.max_deployments = max_deployments
        if is_active is not None:
            account.is_active = is_active

        activity_service.record(db, "heroku_account_updated", None, {"account_id": account.id})
        await db.commit()
        await db.refresh(account)
        return account

    async def toggle(self, db: AsyncSession, account: HerokuAccount) -> HerokuAccount:
        account.is_active = not account.is_active
        activity_service.record(
            db, "heroku_account_toggled", None, {"account_id": account.id, "is_active": account.is_active}
        )
        await db.commit()
        await db.refresh(account)
        logger.info(f"Hosting account {account.id} {'enabled' if account.is_active else 'disabled'}")
        return account

    async def delete(self, db: AsyncSession, account: HerokuAccount) -> None:
        live = (
            await db.execute(
                select(func.count()).where(
                    Deployment.account_id == account.id, Deployment.status.in_(LIVE_STATUSES)
                )
            )
        ).scalar() or 0
        if live:
            raise InvalidDeploymentState(
                "This account still hosts running deployments", {"live_deployments": live}
            )
        activity_service.record(db, "heroku_account_deleted", None, {"account_id": account.id, "email": account.email})
        await db.delete(account)
        await db.commit()
        logger.info(f"Hosting account {account.id} deleted")

    async def preview_allocation(self, db: AsyncSession) -> HerokuAccount:
        """Account the next deployment would be placed on (no reservation)."""
        choice = select_account(await load_pool(db))
        return await self.get(db, choice.id)


account_service = AccountService()
