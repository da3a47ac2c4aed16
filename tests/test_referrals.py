"""Tests for signup provisioning and referral rewards."""
from sqlalchemy import select

from app.models import CoinTransaction, Referral, ReferralStatus, TransactionType
from app.services.ledger_service import ledger_service
from app.services.referral_service import referral_service
from app.services.user_service import user_service


async def test_signup_gets_welcome_bonus_through_ledger(db):
    user = await user_service.provision(db, "uid-new", "New@Mail.com", "Newcomer")

    assert user.email == "new@mail.com"
    assert user.coins == 10
    assert len(user.referral_code) == 8
    assert await ledger_service.ledger_balance(db, user.id) == 10


async def test_referral_pays_both_sides_on_verification(db, make_user):
    referrer = await make_user(coins=0)

    user = await user_service.provision(
        db, "uid-referred", "friend@mail.com", "Friend", referral_code=referrer.referral_code.lower()
    )
    assert user.referred_by == referrer.id
    # nothing is paid at signup
    assert await ledger_service.get_balance(db, referrer.id) == 0

    assert await user_service.mark_verified(db, user) is True

    assert await ledger_service.get_balance(db, referrer.id) == 10
    assert await ledger_service.get_balance(db, user.id) == 20
    referral = (await db.execute(select(Referral).where(Referral.referred_id == user.id))).scalar_one()
    assert referral.status == ReferralStatus.COMPLETED.value
    assert referral.reward_given is True

    types = set((await db.execute(select(CoinTransaction.type))).scalars().all())
    assert {TransactionType.REFERRAL.value, TransactionType.REFERRAL_BONUS.value} <= types


async def test_verification_pays_referral_only_once(db, make_user):
    referrer = await make_user(coins=0)
    user = await user_service.provision(
        db, "uid-once", "once@mail.com", referral_code=referrer.referral_code
    )

    await user_service.mark_verified(db, user)
    assert await user_service.mark_verified(db, user) is False
    assert await referral_service.complete(db, user) is None

    assert await ledger_service.get_balance(db, referrer.id) == 10


async def test_unverified_referrer_code_is_ignored(db, make_user):
    referrer = await make_user(coins=0, verified=False)

    user = await user_service.provision(
        db, "uid-ignored", "ignored@mail.com", referral_code=referrer.referral_code
    )

    assert user.referred_by is None
    assert (await db.execute(select(Referral))).first() is None


async def test_stats_and_code_regeneration(db, make_user):
    referrer = await make_user(coins=0)
    user = await user_service.provision(
        db, "uid-stats", "stats@mail.com", referral_code=referrer.referral_code
    )
    await user_service.provision(db, "uid-other", "other@mail.com", referral_code=referrer.referral_code)
    await user_service.mark_verified(db, user)

    stats = await referral_service.stats(db, referrer)
    assert stats["total_referrals"] == 2
    assert stats["rewarded_referrals"] == 1
    assert stats["pending_referrals"] == 1
    assert stats["total_coins_earned"] == 10

    old_code = referrer.referral_code
    new_code = await referral_service.regenerate_code(db, referrer)
    assert new_code != old_code
    assert referral_service.referral_link(referrer).endswith(f"?ref={new_code}")
