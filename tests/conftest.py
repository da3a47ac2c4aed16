"""
Shared test fixtures for the KermHost backend.
"""
import os
import tempfile
import uuid
from itertools import count

import pytest
import pytest_asyncio

# Force test settings before any app import
_db_dir = tempfile.mkdtemp(prefix="kermhost-tests-")
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["EMAIL_PROVIDER"] = "disabled"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ.pop("SENTRY_DSN", None)

from app.db.database import AsyncSessionLocal, Base, async_engine
import app.models  # noqa: F401 - registers all models
from app.exceptions import ExternalServiceFailure

ADMIN_HEADERS = {"X-API-Key": "test-admin-key"}

_seq = count(1)


class FakeHerokuClient:
    """In-memory stand-in for HerokuClient; records every call."""

    calls: list[tuple] = []
    fail_on: set[str] = set()
    apps: set[str] = set()

    def __init__(self, api_key: str, config=None):
        self.api_key = api_key

    @classmethod
    def reset(cls):
        cls.calls = []
        cls.fail_on = set()
        cls.apps = set()

    def _record(self, op: str, *args):
        self.calls.append((op, *args))
        if op in self.fail_on:
            raise ExternalServiceFailure("heroku", f"{op} refused", 422)

    async def create_app(self, name, region=None):
        self._record("create_app", name)
        self.apps.add(name)
        return {"id": f"app-{name}", "name": name}

    async def deploy_from_source(self, app_name, github_repo, branch=None):
        self._record("deploy_from_source", app_name, github_repo, branch)
        return {"id": "build-1", "status": "pending"}

    async def set_config_vars(self, app_name, config_vars):
        self._record("set_config_vars", app_name, dict(config_vars))
        return dict(config_vars)

    async def restart_app(self, app_name):
        self._record("restart_app", app_name)

    async def delete_app(self, app_name):
        self._record("delete_app", app_name)
        if app_name not in self.apps:
            raise ExternalServiceFailure("heroku", "Couldn't find that app.", 404)
        self.apps.discard(app_name)

    async def fetch_recent_logs(self, app_name, lines=None):
        self._record("fetch_recent_logs", app_name)
        return "2026-10-01T00:00:00 app[worker.1]: bot online\n"

    @classmethod
    def ops(cls) -> list[str]:
        return [call[0] for call in cls.calls]


@pytest_asyncio.fixture()
async def db():
    """Fresh schema per test and a session on it."""
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as session:
        yield session
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture()
def fake_heroku(monkeypatch):
    from app.services.deployment import deployment_service

    FakeHerokuClient.reset()
    monkeypatch.setattr(deployment_service, "client_factory", FakeHerokuClient)
    return FakeHerokuClient


@pytest.fixture()
def make_user(db):
    from app.models import User

    async def _make_user(coins: int = 0, verified: bool = True, email: str | None = None) -> User:
        n = next(_seq)
        user = User(
            firebase_uid=f"uid-{n}-{uuid.uuid4().hex[:6]}",
            email=email or f"user{n}@mail.com",
            name=f"User {n}",
            coins=coins,
            referral_code=f"REF{n:05d}",
            is_verified=verified,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def make_bot(db):
    from app.models import Bot

    async def _make_bot(owner, cost: int = 5, approved: bool = True, env_schema: dict | None = None) -> Bot:
        n = next(_seq)
        bot = Bot(
            owner_id=owner.id,
            name=f"Bot {n}",
            description="A test bot",
            github_repo=f"kerm-dev/bot-{n}",
            github_branch="main",
            env_schema=env_schema if env_schema is not None else {
                "SESSION_ID": {"description": "WhatsApp session", "required": True},
                "PREFIX": {"value": "."},
            },
            cost=cost,
            is_approved=approved,
            review_status="approved" if approved else "pending",
        )
        db.add(bot)
        await db.commit()
        await db.refresh(bot)
        return bot

    return _make_bot


@pytest.fixture()
def make_account(db):
    from app.models import HerokuAccount

    async def _make_account(used: int = 0, capacity: int = 5, active: bool = True) -> HerokuAccount:
        n = next(_seq)
        account = HerokuAccount(
            email=f"heroku{n}@mail.com",
            api_key=f"heroku-key-{n:04d}",
            used_count=used,
            max_deployments=capacity,
            is_active=active,
        )
        db.add(account)
        await db.commit()
        await db.refresh(account)
        return account

    return _make_account


@pytest_asyncio.fixture()
async def api_client(db):
    """HTTP client against the app; ``client.login_as(user)`` sets the caller."""
    from httpx import ASGITransport, AsyncClient

    from app.services.firebase import TokenData, get_token_data
    from main import app

    current: dict = {}

    async def _token_data() -> TokenData:
        if "token" not in current:
            from fastapi import HTTPException

            raise HTTPException(status_code=401, detail="Authorization header missing")
        return current["token"]

    app.dependency_overrides[get_token_data] = _token_data

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:

        def login_as(user=None, *, uid=None, email=None, verified=True):
            current["token"] = TokenData(
                uid=uid or user.firebase_uid,
                email=email or user.email,
                name=getattr(user, "name", None),
                email_verified=verified,
            )

        client.login_as = login_as
        yield client

    app.dependency_overrides.clear()
