"""Tests for hosting account selection and slot bookkeeping."""
import pytest
from sqlalchemy import select

from app.exceptions import NoCapacityAvailable
from app.models import HerokuAccount
from app.services.allocation import (
    AccountSnapshot,
    load_pool,
    release_slot,
    reserve_account,
    select_account,
    set_usage,
)


def test_least_used_account_with_capacity_wins():
    pool = [AccountSnapshot(1, 5, 5), AccountSnapshot(2, 2, 5)]
    assert select_account(pool).id == 2


def test_saturated_pool_falls_back_to_some_account():
    pool = [AccountSnapshot(1, 5, 5), AccountSnapshot(2, 5, 5)]
    choice = select_account(pool)
    assert choice.id in (1, 2)
    assert not choice.has_capacity


def test_fallback_prefers_most_spare_capacity():
    # both over their ceiling, the second one less so
    pool = [AccountSnapshot(1, 7, 5), AccountSnapshot(2, 6, 5)]
    assert select_account(pool).id == 2


def test_inactive_accounts_are_ignored():
    pool = [AccountSnapshot(1, 0, 5, is_active=False), AccountSnapshot(2, 4, 5)]
    assert select_account(pool).id == 2


def test_empty_pool_raises():
    with pytest.raises(NoCapacityAvailable):
        select_account([])
    with pytest.raises(NoCapacityAvailable):
        select_account([AccountSnapshot(1, 0, 5, is_active=False)])


def test_any_account_with_capacity_beats_fallback():
    pool = [
        AccountSnapshot(1, 9, 9),
        AccountSnapshot(2, 3, 3),
        AccountSnapshot(3, 4, 10),
        AccountSnapshot(4, 1, 1),
    ]
    choice = select_account(pool)
    assert choice.id == 3
    assert choice.used_count < choice.max_deployments


async def test_reserve_increments_least_used_account(db, make_account):
    busy = await make_account(used=4, capacity=5)
    idle = await make_account(used=1, capacity=5)

    account = await reserve_account(db)
    await db.commit()

    assert account.id == idle.id
    assert account.used_count == 2
    await db.refresh(busy)
    assert busy.used_count == 4


async def test_reserve_refuses_saturated_pool(db, make_account):
    await make_account(used=5, capacity=5)
    await make_account(used=3, capacity=3)

    with pytest.raises(NoCapacityAvailable):
        await reserve_account(db)


async def test_reserve_fills_accounts_up_to_ceiling(db, make_account):
    await make_account(used=0, capacity=2)
    await make_account(used=0, capacity=1)

    for _ in range(3):
        await reserve_account(db)
    await db.commit()

    with pytest.raises(NoCapacityAvailable):
        await reserve_account(db)

    counts = (await db.execute(select(HerokuAccount.used_count, HerokuAccount.max_deployments))).all()
    assert all(used == ceiling for used, ceiling in counts)


async def test_release_never_goes_below_zero(db, make_account):
    account = await make_account(used=1, capacity=5)

    assert await release_slot(db, account.id) is True
    assert await release_slot(db, account.id) is False
    await db.commit()

    await db.refresh(account)
    assert account.used_count == 0


async def test_set_usage_clamps_at_zero(db, make_account):
    account = await make_account(used=3, capacity=5)
    account = await set_usage(db, account, -4)
    assert account.used_count == 0


async def test_load_pool_skips_inactive(db, make_account):
    active = await make_account(used=2)
    await make_account(used=0, active=False)

    pool = await load_pool(db)
    assert [snapshot.id for snapshot in pool] == [active.id]
