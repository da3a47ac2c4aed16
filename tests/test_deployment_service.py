"""Tests for the deployment lifecycle: charge, provision, compensation and teardown."""
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy import func, select, update

from app.db.database import AsyncSessionLocal
from app.exceptions import (
    BotNotApproved,
    ExternalServiceFailure,
    InsufficientBalance,
    InvalidDeploymentState,
    MaintenanceActive,
    NoCapacityAvailable,
    ValidationError,
)
from app.models import CoinTransaction, Deployment, DeploymentStatus, User
from app.services.deployment import deployment_service, generate_app_name, resolve_env
from app.services.ledger_service import ledger_service
from app.services.maintenance_service import maintenance_service
from app.services.scheduler.scheduler_service import SchedulerService
from app.utils.constants import MAX_APP_NAME_LENGTH

from tests.conftest import FakeHerokuClient


@pytest_asyncio.fixture()
async def setup(db, make_user, make_bot, make_account, fake_heroku):
    owner = await make_user()
    user = await make_user(coins=15)
    bot = await make_bot(owner, cost=10)
    account = await make_account(used=0, capacity=5)
    return user, bot, account


async def _entries(db, deployment_id, type_=None):
    query = select(CoinTransaction).where(CoinTransaction.deployment_id == deployment_id)
    if type_:
        query = query.where(CoinTransaction.type == type_)
    return list((await db.execute(query)).scalars().all())


def test_app_names_fit_heroku_limit():
    name = generate_app_name("a-very-long-platform-prefix-for-apps")
    assert len(name) <= MAX_APP_NAME_LENGTH
    assert name == name.lower()
    assert generate_app_name() != generate_app_name()


def test_resolve_env_merges_defaults_and_checks_required():
    schema = {"SESSION_ID": {"required": True}, "PREFIX": {"value": "."}, "OPTIONAL": {"required": False}}
    assert resolve_env(schema, {"SESSION_ID": "abc"}) == {"SESSION_ID": "abc", "PREFIX": ".", "OPTIONAL": ""}

    with pytest.raises(ValidationError) as exc:
        resolve_env(schema, {})
    assert exc.value.details["missing"] == ["SESSION_ID"]

    assert "NOT_DECLARED" not in resolve_env(schema, {"SESSION_ID": "abc", "NOT_DECLARED": "x"})


async def test_create_charges_and_reserves_slot(db, setup):
    user, bot, account = setup

    deployment = await deployment_service.create(db, user, bot.id)

    assert deployment.status == DeploymentStatus.PENDING.value
    assert deployment.cost == 10
    assert deployment.account_id == account.id
    assert await ledger_service.get_balance(db, user.id) == 5
    await db.refresh(account)
    assert account.used_count == 1

    charges = await _entries(db, deployment.id, "deployment")
    assert len(charges) == 1
    assert charges[0].sender_id == user.id and charges[0].receiver_id is None


async def test_provision_activates_with_default_env(db, setup):
    user, bot, _ = setup
    deployment = await deployment_service.create(db, user, bot.id)

    deployment = await deployment_service.provision(db, deployment.id)

    assert deployment.status == DeploymentStatus.ACTIVE.value
    assert deployment.env_variables == {"PREFIX": "."}
    assert deployment.heroku_app_id == f"app-{deployment.app_name}"
    assert deployment.activated_at is not None
    assert FakeHerokuClient.ops() == ["create_app", "deploy_from_source", "set_config_vars"]
    assert "Deployment is active" in deployment.logs


async def test_failed_provisioning_refunds_and_releases(db, setup):
    user, bot, account = setup
    FakeHerokuClient.fail_on = {"deploy_from_source"}

    deployment = await deployment_service.create(db, user, bot.id)
    assert await ledger_service.get_balance(db, user.id) == 5

    deployment = await deployment_service.provision(db, deployment.id)

    assert deployment.status == DeploymentStatus.FAILED.value
    assert "deploy_from_source refused" in deployment.error_message
    assert "Deployment failed" in deployment.logs
    assert await ledger_service.get_balance(db, user.id) == 15
    await db.refresh(account)
    assert account.used_count == 0
    assert deployment.account_released is True
    # the half-created app is torn down
    assert "delete_app" in FakeHerokuClient.ops()
    assert deployment.app_name not in FakeHerokuClient.apps
    assert len(await _entries(db, deployment.id, "refund")) == 1


async def test_fail_compensates_only_once(db, setup):
    user, bot, account = setup
    deployment = await deployment_service.create(db, user, bot.id)

    assert await deployment_service.fail(db, deployment.id, "boom") is True
    assert await deployment_service.fail(db, deployment.id, "boom again") is False

    assert await ledger_service.get_balance(db, user.id) == 15
    await db.refresh(account)
    assert account.used_count == 0
    assert len(await _entries(db, deployment.id, "refund")) == 1


async def test_create_rejects_insufficient_balance(db, make_user, make_bot, make_account, fake_heroku):
    owner = await make_user()
    user = await make_user(coins=3)
    bot = await make_bot(owner, cost=10)
    account = await make_account()

    with pytest.raises(InsufficientBalance) as exc:
        await deployment_service.create(db, user, bot.id)

    assert exc.value.details == {"required": 10, "available": 3}
    await db.refresh(account)
    assert account.used_count == 0
    assert (await db.execute(select(func.count(Deployment.id)))).scalar() == 0


async def test_create_rejects_unapproved_bot(db, make_user, make_bot, make_account, fake_heroku):
    owner = await make_user()
    user = await make_user(coins=50)
    bot = await make_bot(owner, approved=False)
    await make_account()

    with pytest.raises(BotNotApproved):
        await deployment_service.create(db, user, bot.id)


async def test_no_capacity_leaves_balance_untouched(db, make_user, make_bot, make_account, fake_heroku):
    owner = await make_user()
    user = await make_user(coins=50)
    user_id = user.id
    bot = await make_bot(owner, cost=10)
    await make_account(used=2, capacity=2)

    with pytest.raises(NoCapacityAvailable):
        await deployment_service.create(db, user, bot.id)

    assert await ledger_service.get_balance(db, user_id) == 50
    assert (await db.execute(select(func.count(Deployment.id)))).scalar() == 0


async def test_maintenance_blocks_new_deployments(db, setup):
    user, bot, _ = setup
    await maintenance_service.set_state(db, True, "Upgrading")

    with pytest.raises(MaintenanceActive):
        await deployment_service.create(db, user, bot.id)


async def test_update_env_charges_again_and_restarts(db, setup):
    user, bot, _ = setup
    user.coins = 30
    await db.commit()
    deployment = await deployment_service.create(db, user, bot.id)
    await deployment_service.provision(db, deployment.id)
    FakeHerokuClient.calls = []

    deployment, new_balance = await deployment_service.update_env(
        db, user, deployment.id, {"SESSION_ID": "wa-session"}
    )

    assert new_balance == 10
    assert deployment.env_variables == {"SESSION_ID": "wa-session", "PREFIX": "."}
    assert FakeHerokuClient.ops() == ["set_config_vars", "restart_app"]
    assert len(await _entries(db, deployment.id, "deployment")) == 2


async def test_update_env_requires_declared_variables(db, setup):
    user, bot, _ = setup
    deployment = await deployment_service.create(db, user, bot.id)
    await deployment_service.provision(db, deployment.id)

    with pytest.raises(ValidationError):
        await deployment_service.update_env(db, user, deployment.id, {"PREFIX": "!"})
    assert await ledger_service.get_balance(db, user.id) == 5


async def test_update_env_rolls_back_charge_when_heroku_refuses(db, setup):
    user, bot, _ = setup
    user.coins = 30
    await db.commit()
    user_id = user.id
    deployment = await deployment_service.create(db, user, bot.id)
    deployment_id = deployment.id
    await deployment_service.provision(db, deployment_id)
    FakeHerokuClient.fail_on = {"set_config_vars"}

    with pytest.raises(ExternalServiceFailure):
        await deployment_service.update_env(db, user, deployment_id, {"SESSION_ID": "abc"})

    assert await ledger_service.get_balance(db, user_id) == 20
    assert len(await _entries(db, deployment_id, "deployment")) == 1


async def test_update_env_only_on_active(db, setup):
    user, bot, _ = setup
    deployment = await deployment_service.create(db, user, bot.id)

    with pytest.raises(InvalidDeploymentState):
        await deployment_service.update_env(db, user, deployment.id, {"SESSION_ID": "abc"})


async def test_delete_releases_slot_without_refund(db, setup):
    user, bot, account = setup
    deployment = await deployment_service.create(db, user, bot.id)
    await deployment_service.provision(db, deployment.id)

    teardown_error = await deployment_service.delete(db, user, deployment.id)

    assert teardown_error is None
    assert deployment.app_name not in FakeHerokuClient.apps
    assert await ledger_service.get_balance(db, user.id) == 5
    await db.refresh(account)
    assert account.used_count == 0
    assert await db.get(Deployment, deployment.id) is None


async def test_delete_tolerates_teardown_failure(db, setup):
    user, bot, account = setup
    deployment = await deployment_service.create(db, user, bot.id)
    await deployment_service.provision(db, deployment.id)
    FakeHerokuClient.fail_on = {"delete_app"}

    teardown_error = await deployment_service.delete(db, user, deployment.id)

    assert "delete_app refused" in teardown_error
    await db.refresh(account)
    assert account.used_count == 0


async def test_delete_while_provisioning_refunds_and_releases(db, setup):
    user, bot, account = setup
    user_id = user.id
    deployment = await deployment_service.create(db, user, bot.id)
    deployment_id = deployment.id

    assert await deployment_service.delete(db, user, deployment_id) is None

    assert await db.get(Deployment, deployment_id) is None
    assert await ledger_service.get_balance(db, user_id) == 15
    await db.refresh(account)
    assert account.used_count == 0
    assert await deployment_service.provision(db, deployment_id) is None
    assert FakeHerokuClient.ops() == []


async def test_restart_keeps_status(db, setup):
    user, bot, _ = setup
    deployment = await deployment_service.create(db, user, bot.id)
    await deployment_service.provision(db, deployment.id)

    deployment = await deployment_service.restart(db, user, deployment.id)

    assert deployment.status == DeploymentStatus.ACTIVE.value
    assert FakeHerokuClient.ops()[-1] == "restart_app"


async def test_runtime_logs_include_journal_and_heroku_tail(db, setup):
    user, bot, _ = setup
    deployment = await deployment_service.create(db, user, bot.id)
    await deployment_service.provision(db, deployment.id)

    logs = await deployment_service.runtime_logs(db, user, deployment.id)

    assert "Creating Heroku app" in logs["journal"]
    assert "bot online" in logs["runtime_logs"]
    assert logs["runtime_error"] is None


async def test_stop_all_tears_down_active_deployments(db, setup):
    user, bot, account = setup
    first = await deployment_service.create(db, user, bot.id)
    await deployment_service.provision(db, first.id)

    result = await deployment_service.stop_all(db)

    assert result == {"stopped": 1, "errors": []}
    stopped = await db.get(Deployment, first.id, populate_existing=True)
    assert stopped.status == DeploymentStatus.STOPPED.value
    assert stopped.stopped_at is not None
    await db.refresh(account)
    assert account.used_count == 0


async def test_fail_stuck_fails_only_old_in_progress(db, setup):
    user, bot, account = setup
    user.coins = 30
    await db.commit()
    stuck = await deployment_service.create(db, user, bot.id)
    fresh = await deployment_service.create(db, user, bot.id)
    await db.execute(
        update(Deployment)
        .where(Deployment.id == stuck.id)
        .values(updated_at=datetime.utcnow() - timedelta(hours=2))
    )
    await db.commit()

    assert await deployment_service.fail_stuck(db, timeout_minutes=30) == 1
    assert await deployment_service.fail_stuck(db, timeout_minutes=30) == 0

    stuck = await db.get(Deployment, stuck.id, populate_existing=True)
    fresh = await db.get(Deployment, fresh.id, populate_existing=True)
    assert stuck.status == DeploymentStatus.FAILED.value
    assert "timed out" in stuck.error_message
    assert fresh.status == DeploymentStatus.PENDING.value
    assert await ledger_service.get_balance(db, user.id) == 20
    await db.refresh(account)
    assert account.used_count == 1


async def test_supervisor_pass_uses_its_own_session(db, setup):
    user, bot, _ = setup
    deployment = await deployment_service.create(db, user, bot.id)
    await db.execute(
        update(Deployment)
        .where(Deployment.id == deployment.id)
        .values(updated_at=datetime.utcnow() - timedelta(days=1))
    )
    await db.commit()

    assert await SchedulerService(check_interval=1).run_once() == 1
    assert await ledger_service.get_balance(db, user.id) == 15


async def test_provisioning_stops_when_failed_concurrently(db, setup, monkeypatch):
    user, bot, account = setup

    class SupervisedHerokuClient(FakeHerokuClient):
        async def create_app(self, name, region=None):
            app = await super().create_app(name, region)
            # the supervisor gives up on the deployment while Heroku is working
            async with AsyncSessionLocal() as other:
                deployment_id = (
                    await other.execute(select(Deployment.id).where(Deployment.app_name == name))
                ).scalar_one()
                await deployment_service.fail(other, deployment_id, "Provisioning timed out")
            return app

    monkeypatch.setattr(deployment_service, "client_factory", SupervisedHerokuClient)
    deployment = await deployment_service.create(db, user, bot.id)

    deployment = await deployment_service.provision(db, deployment.id)

    assert deployment.status == DeploymentStatus.FAILED.value
    assert "deploy_from_source" not in FakeHerokuClient.ops()
    assert deployment.app_name not in FakeHerokuClient.apps
    assert await ledger_service.get_balance(db, user.id) == 15
    await db.refresh(account)
    assert account.used_count == 0
    assert len(await _entries(db, deployment.id, "refund")) == 1


async def test_late_failure_is_not_overwritten_by_activation(db, setup, monkeypatch):
    user, bot, account = setup

    class SlowConfigHerokuClient(FakeHerokuClient):
        async def set_config_vars(self, app_name, config_vars):
            result = await super().set_config_vars(app_name, config_vars)
            async with AsyncSessionLocal() as other:
                deployment_id = (
                    await other.execute(select(Deployment.id).where(Deployment.app_name == app_name))
                ).scalar_one()
                await deployment_service.fail(other, deployment_id, "Provisioning timed out")
            return result

    monkeypatch.setattr(deployment_service, "client_factory", SlowConfigHerokuClient)
    deployment = await deployment_service.create(db, user, bot.id)

    deployment = await deployment_service.provision(db, deployment.id)

    assert deployment.status == DeploymentStatus.FAILED.value
    assert deployment.activated_at is None
    assert "Provisioning timed out" in deployment.logs
    assert deployment.app_name not in FakeHerokuClient.apps
    assert await ledger_service.get_balance(db, user.id) == 15


async def test_delete_during_provisioning_cleans_up_created_app(db, setup, monkeypatch):
    user, bot, account = setup
    user_id = user.id

    class DeletedMidwayHerokuClient(FakeHerokuClient):
        async def create_app(self, name, region=None):
            app = await super().create_app(name, region)
            async with AsyncSessionLocal() as other:
                deployment_id = (
                    await other.execute(select(Deployment.id).where(Deployment.app_name == name))
                ).scalar_one()
                owner = await other.get(User, user_id)
                await deployment_service.delete(other, owner, deployment_id)
            return app

    monkeypatch.setattr(deployment_service, "client_factory", DeletedMidwayHerokuClient)
    deployment = await deployment_service.create(db, user, bot.id)
    app_name = deployment.app_name

    assert await deployment_service.provision(db, deployment.id) is None

    assert app_name not in FakeHerokuClient.apps
    assert "deploy_from_source" not in FakeHerokuClient.ops()
    assert await ledger_service.get_balance(db, user_id) == 15
    await db.refresh(account)
    assert account.used_count == 0
