"""HTTP-level tests: error envelope, deploy flow, coins and the admin API."""
import importlib

import pytest

from app.services.bots.manifest import BotManifest
from app.utils.constants import API_PREFIX

from tests.conftest import ADMIN_HEADERS, FakeHerokuClient


async def test_unauthenticated_request_uses_error_envelope(api_client):
    response = await api_client.get(f"{API_PREFIX}/auth/me")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


async def test_login_provisions_user_once(api_client, make_user):
    referrer = await make_user(coins=0)
    api_client.login_as(uid="uid-fresh", email="fresh@mail.com", verified=False)

    response = await api_client.post(
        f"{API_PREFIX}/auth/login", json={"referral_code": referrer.referral_code}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["is_new_user"] is True
    assert body["user"]["coins"] == 10
    assert body["user"]["referred_by"] == referrer.id
    assert body["user"]["is_verified"] is False

    # verified on a later login: referral pays out
    api_client.login_as(uid="uid-fresh", email="fresh@mail.com", verified=True)
    response = await api_client.post(f"{API_PREFIX}/auth/login")
    body = response.json()
    assert body["is_new_user"] is False
    assert body["user"]["is_verified"] is True
    assert body["user"]["coins"] == 20


async def test_unverified_email_cannot_claim_existing_account(api_client, make_user):
    victim = await make_user(coins=500, email="victim@mail.com")
    api_client.login_as(uid="other-uid", email="victim@mail.com", verified=False)

    response = await api_client.post(f"{API_PREFIX}/auth/login")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "EMAIL_ALREADY_REGISTERED"
    api_client.login_as(victim)
    me = await api_client.get(f"{API_PREFIX}/auth/me")
    assert me.json()["coins"] == 500


async def test_verified_email_relinks_existing_account(api_client, make_user):
    user = await make_user(coins=40, email="moved@mail.com")
    api_client.login_as(uid="new-provider-uid", email="moved@mail.com", verified=True)

    response = await api_client.post(f"{API_PREFIX}/auth/login")

    assert response.status_code == 200
    assert response.json()["is_new_user"] is False
    assert response.json()["user"]["id"] == user.id
    assert response.json()["user"]["coins"] == 40


async def test_unknown_user_must_log_in_first(api_client):
    api_client.login_as(uid="uid-ghost", email="ghost@mail.com")

    response = await api_client.get(f"{API_PREFIX}/coins/balance")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


async def test_deploy_flow_runs_provisioning_in_background(
    api_client, make_user, make_bot, make_account, fake_heroku
):
    owner = await make_user()
    user = await make_user(coins=15)
    bot = await make_bot(owner, cost=10)
    await make_account()
    api_client.login_as(user)

    response = await api_client.post(f"{API_PREFIX}/deploy", json={"bot_id": str(bot.id)})

    assert response.status_code == 202
    body = response.json()
    assert body["new_balance"] == 5
    assert body["status"] == "pending"

    detail = await api_client.get(f"{API_PREFIX}/deploy/deployments/{body['deployment_id']}")
    assert detail.status_code == 200
    assert detail.json()["status"] == "active"
    assert detail.json()["env_variables"] == {"PREFIX": "."}

    listing = await api_client.get(f"{API_PREFIX}/deploy/deployments")
    [item] = listing.json()["deployments"]
    assert item["bot_name"] == bot.name
    assert item["env_count"] == 1


async def test_failed_background_provisioning_is_refunded(
    api_client, make_user, make_bot, make_account, fake_heroku
):
    owner = await make_user()
    user = await make_user(coins=15)
    bot = await make_bot(owner, cost=10)
    await make_account()
    api_client.login_as(user)
    FakeHerokuClient.fail_on = {"create_app"}

    response = await api_client.post(f"{API_PREFIX}/deploy", json={"bot_id": str(bot.id)})
    assert response.status_code == 202

    detail = await api_client.get(f"{API_PREFIX}/deploy/deployments/{response.json()['deployment_id']}")
    assert detail.json()["status"] == "failed"
    assert "create_app refused" in detail.json()["logs"]

    balance = await api_client.get(f"{API_PREFIX}/coins/balance")
    assert balance.json()["balance"] == 15


@pytest.mark.parametrize(
    "coins, approved, accounts, status_code, code",
    [
        (5, True, 1, 402, "INSUFFICIENT_BALANCE"),
        (50, False, 1, 403, "BOT_NOT_APPROVED"),
        (50, True, 0, 503, "NO_CAPACITY_AVAILABLE"),
    ],
)
async def test_deploy_rejections(
    api_client, make_user, make_bot, make_account, fake_heroku, coins, approved, accounts, status_code, code
):
    owner = await make_user()
    user = await make_user(coins=coins)
    bot = await make_bot(owner, cost=10, approved=approved)
    for _ in range(accounts):
        await make_account()
    api_client.login_as(user)

    response = await api_client.post(f"{API_PREFIX}/deploy", json={"bot_id": str(bot.id)})

    assert response.status_code == status_code
    assert response.json()["error"]["code"] == code


async def test_malformed_body_is_validation_error(api_client, make_user):
    user = await make_user()
    api_client.login_as(user)

    response = await api_client.post(f"{API_PREFIX}/deploy", json={"bot_id": "not-a-uuid"})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_daily_claim_then_cooldown(api_client, make_user):
    user = await make_user(coins=0)
    api_client.login_as(user)

    first = await api_client.post(f"{API_PREFIX}/coins/daily/claim")
    assert first.status_code == 200
    assert first.json()["new_balance"] == 10

    second = await api_client.post(f"{API_PREFIX}/coins/daily/claim")
    assert second.status_code == 429
    assert second.json()["error"]["code"] == "DAILY_CLAIM_COOLDOWN"


async def test_transfer_endpoint(api_client, make_user):
    alice = await make_user(coins=30)
    bob = await make_user(coins=0)
    api_client.login_as(alice)

    response = await api_client.post(
        f"{API_PREFIX}/coins/transfer", json={"receiver_email": bob.email, "amount": 12}
    )

    assert response.status_code == 200
    assert response.json()["new_balance"] == 18

    history = await api_client.get(f"{API_PREFIX}/coins/transactions", params={"type": "transfer"})
    [entry] = history.json()["transactions"]
    assert entry["direction"] == "out"
    assert entry["amount"] == 12


async def test_admin_api_requires_key(api_client):
    assert (await api_client.get(f"{API_PREFIX}/admin/accounts")).status_code == 401
    response = await api_client.get(f"{API_PREFIX}/admin/accounts", headers={"X-API-Key": "wrong"})
    assert response.status_code == 401


async def test_admin_manages_hosting_accounts(api_client, monkeypatch):
    async def fake_validate(api_key, config=None):
        return {"id": "heroku-account-1", "email": "ops@mail.com"} if api_key != "rejected-key" else None

    monkeypatch.setattr(
        importlib.import_module("app.services.allocation.account_service"), "validate_api_key", fake_validate
    )

    created = await api_client.post(
        f"{API_PREFIX}/admin/accounts",
        json={"email": "ops@mail.com", "api_key": "heroku-secret-key", "max_deployments": 3},
        headers=ADMIN_HEADERS,
    )
    assert created.status_code == 201
    account = created.json()
    assert account["masked_api_key"] != "heroku-secret-key"
    assert account["spare_capacity"] == 3

    rejected = await api_client.post(
        f"{API_PREFIX}/admin/accounts",
        json={"email": "bad@mail.com", "api_key": "rejected-key"},
        headers=ADMIN_HEADERS,
    )
    assert rejected.status_code == 400

    usage = await api_client.put(
        f"{API_PREFIX}/admin/accounts/{account['id']}/usage", json={"used_count": 2}, headers=ADMIN_HEADERS
    )
    assert usage.json()["used_count"] == 2

    listing = await api_client.get(f"{API_PREFIX}/admin/accounts", headers=ADMIN_HEADERS)
    stats = listing.json()["stats"]
    assert stats["total_accounts"] == 1
    assert stats["available_capacity"] == 1

    preview = await api_client.get(f"{API_PREFIX}/admin/accounts/available", headers=ADMIN_HEADERS)
    assert preview.json()["id"] == account["id"]


async def test_bot_submission_and_moderation(api_client, make_user, monkeypatch):
    owner = await make_user()
    api_client.login_as(owner)

    async def fake_fetch(repo, branch=None):
        return BotManifest(
            name="Kerm MD", description="WhatsApp bot", env={"SESSION_ID": {"required": True}}
        )

    monkeypatch.setattr(importlib.import_module("app.services.bots.bot_service"), "fetch_manifest", fake_fetch)

    submitted = await api_client.post(
        f"{API_PREFIX}/bots", json={"github_repo": "https://github.com/kerm-dev/kerm-md", "cost": 7}
    )
    assert submitted.status_code == 201
    bot = submitted.json()
    assert bot["github_repo"] == "kerm-dev/kerm-md"
    assert bot["review_status"] == "pending"

    available = await api_client.get(f"{API_PREFIX}/bots/available")
    assert available.json()["bots"] == []

    pending = await api_client.get(f"{API_PREFIX}/admin/bots", headers=ADMIN_HEADERS)
    assert [b["id"] for b in pending.json()["bots"]] == [bot["id"]]

    approved = await api_client.post(f"{API_PREFIX}/admin/bots/{bot['id']}/approve", headers=ADMIN_HEADERS)
    assert approved.json()["is_approved"] is True

    available = await api_client.get(f"{API_PREFIX}/bots/available")
    assert [b["id"] for b in available.json()["bots"]] == [bot["id"]]

    # owner edits send the bot back to review
    edited = await api_client.put(f"{API_PREFIX}/bots/{bot['id']}", json={"cost": 9})
    assert edited.json()["is_approved"] is False
    assert edited.json()["review_status"] == "pending"


async def test_admin_credit_and_maintenance(api_client, make_user, make_bot, make_account, fake_heroku):
    owner = await make_user()
    user = await make_user(coins=0)
    bot = await make_bot(owner, cost=10)
    await make_account()

    credited = await api_client.post(
        f"{API_PREFIX}/admin/users/{user.id}/coins", json={"amount": 25}, headers=ADMIN_HEADERS
    )
    assert credited.json()["new_balance"] == 25

    reconcile = await api_client.post(f"{API_PREFIX}/admin/users/{user.id}/reconcile", headers=ADMIN_HEADERS)
    assert reconcile.json()["ledger_balance"] == 25
    assert reconcile.json()["corrected"] is False

    maintenance = await api_client.put(
        f"{API_PREFIX}/admin/maintenance", json={"is_active": True, "message": "Upgrading"}, headers=ADMIN_HEADERS
    )
    assert maintenance.json()["is_active"] is True

    api_client.login_as(user)
    response = await api_client.post(f"{API_PREFIX}/deploy", json={"bot_id": str(bot.id)})
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "MAINTENANCE"
    assert response.json()["error"]["message"] == "Upgrading"


async def test_health(api_client):
    response = await api_client.get("/health")

    assert response.status_code == 200
    assert response.json()["database"] == "connected"


async def test_profile_and_stats(api_client, make_user, make_bot, make_account, fake_heroku):
    user = await make_user(coins=30)
    friend = await make_user(coins=0)
    bot = await make_bot(user, cost=10)
    await make_account()
    api_client.login_as(user)

    await api_client.post(f"{API_PREFIX}/deploy", json={"bot_id": str(bot.id)})
    await api_client.post(f"{API_PREFIX}/coins/transfer", json={"receiver_email": friend.email, "amount": 5})

    stats = (await api_client.get(f"{API_PREFIX}/users/stats")).json()
    assert stats["total_bots"] == 1
    assert stats["total_deployments"] == 1
    assert stats["active_deployments"] == 1
    assert stats["total_referrals"] == 0
    # deployment charge and transfer
    assert stats["total_transactions"] == 2
    assert stats["total_actions"] >= 2

    renamed = await api_client.put(f"{API_PREFIX}/users/profile", json={"name": "  Kerm  "})
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Kerm"

    profile = (await api_client.get(f"{API_PREFIX}/users/profile")).json()
    assert profile["user"]["name"] == "Kerm"
    assert profile["user"]["coins"] == 15
    assert profile["stats"]["total_actions"] == stats["total_actions"] + 1
    assert profile["recent_activity"][0]["action"] == "profile_updated"
    assert len(profile["recent_activity"]) <= 10


async def test_blank_profile_name_rejected(api_client, make_user):
    user = await make_user()
    api_client.login_as(user)

    response = await api_client.put(f"{API_PREFIX}/users/profile", json={"name": "   "})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
