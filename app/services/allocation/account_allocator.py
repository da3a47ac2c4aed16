"""Hosting account allocation.

Selection is a pure function over an immutable snapshot of the pool so it can
be reasoned about (and tested) without a database. Capacity bookkeeping is done
separately with conditional UPDATEs so that two concurrent requests can never
both take the last slot of an account.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NoCapacityAvailable
from app.models.heroku_account import HerokuAccount
from app.utils.logger import get_logger

logger = get_logger("allocator")

RESERVE_ATTEMPTS = 3


@dataclass(frozen=True)
class AccountSnapshot:
    id: int
    used_count: int
    max_deployments: int
    is_active: bool = True

    @property
    def spare_capacity(self) -> int:
        return self.max_deployments - self.used_count

    @property
    def has_capacity(self) -> bool:
        return self.used_count < self.max_deployments

    @classmethod
    def from_account(cls, account: HerokuAccount) -> "AccountSnapshot":
        return cls(
            id=account.id,
            used_count=account.used_count,
            max_deployments=account.max_deployments,
            is_active=account.is_active,
        )


def select_account(pool: Sequence[AccountSnapshot]) -> AccountSnapshot:
    """Pick an account for a new deployment.

    Active accounts are scanned least-used first and the first one below its
    ceiling wins. When every account is saturated the one with the most spare
    capacity is returned anyway (soft guarantee); the caller's conditional
    reservation decides whether it can really be used.

    Raises:
        NoCapacityAvailable: the pool has no active account
    """
    candidates = [account for account in pool if account.is_active]
    if not candidates:
        raise NoCapacityAvailable("No active hosting account is configured")

    ordered = sorted(candidates, key=lambda account: account.used_count)
    for account in ordered:
        if account.has_capacity:
            return account

    return max(ordered, key=lambda account: account.spare_capacity)


async def load_pool(db: AsyncSession) -> list[AccountSnapshot]:
    result = await db.execute(
        select(HerokuAccount)
        .where(HerokuAccount.is_active.is_(True))
        .order_by(HerokuAccount.used_count.asc(), HerokuAccount.id.asc())
    )
    return [AccountSnapshot.from_account(account) for account in result.scalars().all()]


async def try_increment(db: AsyncSession, account_id: int) -> bool:
    """Take one slot on the account if it still has one. No commit."""
    result = await db.execute(
        update(HerokuAccount)
        .where(
            HerokuAccount.id == account_id,
            HerokuAccount.is_active.is_(True),
            HerokuAccount.used_count < HerokuAccount.max_deployments,
        )
        .values(used_count=HerokuAccount.used_count + 1, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_slot(db: AsyncSession, account_id: int) -> bool:
    """Give one slot back, never going below zero. No commit."""
    result = await db.execute(
        update(HerokuAccount)
        .where(HerokuAccount.id == account_id, HerokuAccount.used_count > 0)
        .values(used_count=HerokuAccount.used_count - 1, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    released = result.rowcount == 1
    if not released:
        logger.warning(f"Account {account_id} already at zero usage, nothing to release")
    return released


async def reserve_account(db: AsyncSession) -> HerokuAccount:
    """Select an account and atomically take a slot on it.

    Retries with a fresh snapshot when another request won the race for the
    selected account. The increment is part of the caller's transaction.

    Raises:
        NoCapacityAvailable: empty pool or every account saturated
    """
    for attempt in range(1, RESERVE_ATTEMPTS + 1):
        choice = select_account(await load_pool(db))
        if not choice.has_capacity:
            raise NoCapacityAvailable(
                "All hosting accounts are at capacity",
                details={"account_id": choice.id, "spare_capacity": choice.spare_capacity},
            )

        if await try_increment(db, choice.id):
            account = await db.get(HerokuAccount, choice.id, populate_existing=True)
            logger.info(
                f"Reserved slot on account {account.id} "
                f"({account.used_count}/{account.max_deployments})"
            )
            return account

        logger.info(f"Account {choice.id} filled up concurrently, retrying ({attempt}/{RESERVE_ATTEMPTS})")

    raise NoCapacityAvailable("Hosting accounts are busy, try again")


async def set_usage(db: AsyncSession, account: HerokuAccount, used_count: int) -> HerokuAccount:
    """Operator correction of the usage counter, clamped at zero."""
    account.used_count = max(0, used_count)
    await db.commit()
    await db.refresh(account)
    logger.info(f"Account {account.id} usage set to {account.used_count}")
    return account
