"""Deployment lifecycle.

Create runs in one transaction (account slot, deployment row, coin debit).
Provisioning runs afterwards in a background task with its own session and
moves the deployment pending -> configuring -> active. Any error on the way
marks it failed and compensates: the cost is refunded through a ledger entry
keyed on the deployment id and the account slot is released once, guarded by
``Deployment.account_released``. Both are safe to repeat, so the supervisor
can re-run the compensation for a deployment that got stuck half way.
"""

import secrets
import time
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    BotNotApproved,
    ExternalServiceFailure,
    InsufficientBalance,
    InvalidDeploymentState,
    NotFound,
    ValidationError,
)
from app.models.bot import Bot
from app.models.coin_transaction import TransactionType
from app.models.deployment import IN_PROGRESS_STATUSES, Deployment, DeploymentStatus, extend_journal
from app.models.heroku_account import HerokuAccount
from app.models.user import User
from app.services.activity_service import activity_service
from app.services.allocation import release_slot, reserve_account
from app.services.heroku import HerokuClient, heroku_settings
from app.services.ledger_service import ledger_service
from app.services.maintenance_service import maintenance_service
from app.utils.constants import MAX_APP_NAME_LENGTH
from app.utils.logger import get_logger
from app.utils.sentry_utils import capture_exception

logger = get_logger("deployments")


class ProvisioningCancelled(Exception):
    """The deployment left the provisioning path while we were working on it."""


def generate_app_name(prefix: Optional[str] = None) -> str:
    """Unique Heroku app name: ``<prefix>-<hex timestamp>-<6 hex>``."""
    prefix = (prefix or heroku_settings.app_name_prefix).lower()
    suffix = f"-{int(time.time()):x}-{secrets.token_hex(3)}"
    return f"{prefix[: MAX_APP_NAME_LENGTH - len(suffix)]}{suffix}"


def default_env(env_schema: dict[str, Any]) -> dict[str, str]:
    """Variables that have a default value in the bot's schema."""
    return {
        key: str(config["value"])
        for key, config in (env_schema or {}).items()
        if isinstance(config, dict) and config.get("value") not in (None, "")
    }


def resolve_env(env_schema: dict[str, Any], provided: dict[str, Any]) -> dict[str, str]:
    """Merge user values with schema defaults and check required variables.

    Variables the bot does not declare are dropped.

    Raises:
        ValidationError: required variables left empty
    """
    schema = env_schema or {}

    resolved: dict[str, str] = {}
    missing: list[str] = []
    for key, config in schema.items():
        config = config or {}
        value = provided.get(key)
        if value in (None, ""):
            value = config.get("value")
        value = "" if value is None else str(value)
        if config.get("required", True) is not False and value == "":
            missing.append(key)
        resolved[key] = value

    if missing:
        raise ValidationError("Required environment variables are missing", {"missing": missing})
    return resolved


class DeploymentService:
    # Replaced in tests with a fake Heroku client
    client_factory = HerokuClient

    def _client(self, account: HerokuAccount):
        return self.client_factory(account.api_key)

    async def create(
        self, db: AsyncSession, user: User, bot_id: UUID, cost: Optional[int] = None
    ) -> Deployment:
        """Charge the user and reserve capacity for a new deployment.

        Provisioning is not started here; the caller schedules ``provision``.
        """
        await maintenance_service.ensure_open(db)

        bot = await db.get(Bot, bot_id)
        if bot is None:
            raise NotFound("Bot")
        if not bot.is_approved or not bot.is_active:
            raise BotNotApproved()
        if cost is not None and cost != bot.cost:
            raise ValidationError("Cost does not match the bot's price", {"expected": bot.cost, "received": cost})

        balance = await ledger_service.get_balance(db, user.id)
        if balance < bot.cost:
            raise InsufficientBalance(required=bot.cost, available=balance)

        try:
            account = await reserve_account(db)
            deployment = Deployment(
                id=uuid.uuid4(),
                user_id=user.id,
                bot_id=bot.id,
                account_id=account.id,
                status=DeploymentStatus.PENDING.value,
                cost=bot.cost,
                env_variables={},
                logs="",
                app_name=generate_app_name(),
            )
            deployment.append_log(f"Deployment of {bot.name} requested")
            db.add(deployment)
            await db.flush()

            await ledger_service.append_entry(
                db,
                amount=bot.cost,
                type=TransactionType.DEPLOYMENT,
                sender_id=user.id,
                description=f"Deployment of {bot.name}",
                deployment_id=deployment.id,
                idempotency_key=f"deployment:{deployment.id}:charge",
            )
            activity_service.record(
                db,
                "deployment_created",
                user.id,
                {"deployment_id": str(deployment.id), "bot_id": str(bot.id), "cost": bot.cost},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Deployment {deployment.id} ({deployment.app_name}) created for user {user.id} "
            f"on account {account.id}, charged {bot.cost} coins"
        )
        return deployment

    async def _advance(self, db: AsyncSession, deployment: Deployment, line: str, **values: Any) -> None:
        """Journal a provisioning step and apply ``values``, only while still in progress.

        The status check and the write are one conditional UPDATE, so a fail()
        or delete() that lands first is never overwritten.

        Raises:
            ProvisioningCancelled: the deployment is no longer pending or configuring
        """
        result = await db.execute(
            update(Deployment)
            .where(Deployment.id == deployment.id, Deployment.status.in_(IN_PROGRESS_STATUSES))
            .values(logs=extend_journal(deployment.logs, line), updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        advanced = result.rowcount == 1
        await db.commit()
        if not advanced:
            status = (
                await db.execute(select(Deployment.status).where(Deployment.id == deployment.id))
            ).scalar_one_or_none()
            raise ProvisioningCancelled(status or "deleted")
        await db.refresh(deployment)

    async def provision(self, db: AsyncSession, deployment_id: UUID) -> Optional[Deployment]:
        """Create the Heroku app, build it, apply env vars and activate."""
        deployment = await db.get(Deployment, deployment_id)
        if deployment is None:
            logger.warning(f"Deployment {deployment_id} vanished before provisioning")
            return None
        if deployment.status != DeploymentStatus.PENDING.value:
            logger.info(f"Deployment {deployment_id} is {deployment.status}, not provisioning")
            return deployment
        app_name = deployment.app_name

        try:
            bot = await db.get(Bot, deployment.bot_id) if deployment.bot_id else None
            account = await db.get(HerokuAccount, deployment.account_id) if deployment.account_id else None
            if bot is None or account is None:
                raise ValidationError("Bot or hosting account no longer exists")
            client = self._client(account)

            await self._advance(db, deployment, f"Creating Heroku app {app_name}...")
            app = await client.create_app(app_name)
            await self._advance(
                db, deployment, "App created. Starting build from GitHub...", heroku_app_id=(app or {}).get("id")
            )

            await client.deploy_from_source(app_name, bot.github_repo, bot.github_branch)
            await self._advance(
                db,
                deployment,
                "Build started. Applying environment variables...",
                status=DeploymentStatus.CONFIGURING.value,
            )

            env = default_env(bot.env_schema)
            if env:
                await client.set_config_vars(app_name, env)
            await self._advance(
                db,
                deployment,
                f"{len(env)} environment variable(s) applied. Deployment is active.",
                status=DeploymentStatus.ACTIVE.value,
                env_variables=env,
                activated_at=datetime.utcnow(),
            )

            logger.info(f"Deployment {deployment_id} is active")
            return deployment

        except ProvisioningCancelled as e:
            logger.warning(f"Provisioning of {deployment_id} stopped, deployment is now {e}")
            # the app may have been created after the deployment was failed elsewhere
            try:
                await client.delete_app(app_name)
            except ExternalServiceFailure as cleanup_error:
                if cleanup_error.upstream_status != 404:
                    logger.warning(f"Could not delete orphaned app {app_name}: {cleanup_error}")
            return await db.get(Deployment, deployment_id, populate_existing=True)
        except Exception as e:
            logger.error(f"Provisioning of {deployment_id} failed: {e}", exc_info=True)
            capture_exception(e)
            await db.rollback()
            await self.fail(db, deployment_id, str(e))
            return await db.get(Deployment, deployment_id)

    async def _release_account(self, db: AsyncSession, deployment: Deployment) -> None:
        if deployment.account_released or deployment.account_id is None:
            return
        await release_slot(db, deployment.account_id)
        deployment.account_released = True

    async def _teardown(self, db: AsyncSession, deployment: Deployment) -> Optional[str]:
        """Best-effort app deletion. Returns the error message, if any."""
        if not deployment.heroku_app_id or deployment.account_id is None:
            return None
        account = await db.get(HerokuAccount, deployment.account_id)
        if account is None:
            return None
        try:
            await self._client(account).delete_app(deployment.app_name)
        except ExternalServiceFailure as e:
            if e.upstream_status == 404:
                return None
            logger.warning(f"Could not delete Heroku app {deployment.app_name}: {e}")
            return str(e)
        return None

    async def fail(self, db: AsyncSession, deployment_id: UUID, reason: str) -> bool:
        """Mark an in-progress deployment failed, refund it and free its slot.

        Returns:
            True if this call performed the compensation
        """
        try:
            deployment = await db.get(Deployment, deployment_id, populate_existing=True)
            if deployment is None or deployment.status not in IN_PROGRESS_STATUSES:
                return False

            teardown_error = await self._teardown(db, deployment)

            deployment.status = DeploymentStatus.FAILED.value
            deployment.error_message = reason[:500]
            deployment.failed_at = datetime.utcnow()
            deployment.append_log(f"Deployment failed: {reason}")
            if teardown_error:
                deployment.append_log(f"Cleanup of the Heroku app failed: {teardown_error}")

            await ledger_service.append_entry(
                db,
                amount=deployment.cost,
                type=TransactionType.REFUND,
                receiver_id=deployment.user_id,
                description=f"Refund for failed deployment {deployment.app_name}",
                deployment_id=deployment.id,
                idempotency_key=f"deployment:{deployment.id}:refund",
            )
            await self._release_account(db, deployment)
            activity_service.record(
                db, "deployment_failed", deployment.user_id, {"deployment_id": str(deployment.id), "reason": reason[:200]}
            )
            await db.commit()
        except Exception as e:
            # stays in progress, the supervisor retries after the timeout
            await db.rollback()
            logger.error(f"Compensation for deployment {deployment_id} failed: {e}", exc_info=True)
            capture_exception(e)
            return False

        logger.info(f"Deployment {deployment_id} failed and refunded {deployment.cost} coins")
        return True

    async def get_owned(self, db: AsyncSession, user: User, deployment_id: UUID) -> Deployment:
        deployment = await db.get(Deployment, deployment_id)
        if deployment is None or deployment.user_id != user.id:
            raise NotFound("Deployment")
        return deployment

    async def list_for_user(self, db: AsyncSession, user: User) -> list[tuple[Deployment, Optional[str]]]:
        """User's deployments, newest first, with the bot name."""
        result = await db.execute(
            select(Deployment, Bot.name)
            .outerjoin(Bot, Bot.id == Deployment.bot_id)
            .where(Deployment.user_id == user.id)
            .order_by(Deployment.created_at.desc())
        )
        return [(deployment, bot_name) for deployment, bot_name in result.all()]

    async def update_env(
        self, db: AsyncSession, user: User, deployment_id: UUID, variables: dict[str, Any]
    ) -> tuple[Deployment, int]:
        """Push new env vars to an active deployment and restart it.

        Charged like a new deployment when RECONFIGURE_CHARGES is on. The debit
        is rolled back if Heroku rejects the change.

        Returns:
            (deployment, user's new balance)
        """
        deployment = await self.get_owned(db, user, deployment_id)
        if deployment.status != DeploymentStatus.ACTIVE.value:
            raise InvalidDeploymentState("Only active deployments can be reconfigured")

        bot = await db.get(Bot, deployment.bot_id) if deployment.bot_id else None
        if bot is None:
            raise NotFound("Bot")
        account = await db.get(HerokuAccount, deployment.account_id) if deployment.account_id else None
        if account is None:
            raise NotFound("Hosting account")

        env = resolve_env(bot.env_schema, variables)
        charge = bot.cost if settings.reconfigure_charges else 0
        if charge:
            balance = await ledger_service.get_balance(db, user.id)
            if balance < charge:
                raise InsufficientBalance(required=charge, available=balance)

        try:
            if charge:
                await ledger_service.append_entry(
                    db,
                    amount=charge,
                    type=TransactionType.DEPLOYMENT,
                    sender_id=user.id,
                    description=f"Environment update of {bot.name}",
                    deployment_id=deployment.id,
                    idempotency_key=f"deployment:{deployment.id}:env:{uuid.uuid4().hex}",
                )
            client = self._client(account)
            await client.set_config_vars(deployment.app_name, env)
            await client.restart_app(deployment.app_name)

            deployment.env_variables = env
            deployment.append_log(f"Environment updated ({len(env)} variable(s)), app restarted")
            activity_service.record(
                db, "deployment_env_updated", user.id, {"deployment_id": str(deployment.id), "charged": charge}
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(f"Deployment {deployment.id} reconfigured, charged {charge} coins")
        return deployment, await ledger_service.get_balance(db, user.id)

    async def restart(self, db: AsyncSession, user: User, deployment_id: UUID) -> Deployment:
        deployment = await self.get_owned(db, user, deployment_id)
        if deployment.status != DeploymentStatus.ACTIVE.value:
            raise InvalidDeploymentState("Only active deployments can be restarted")
        account = await db.get(HerokuAccount, deployment.account_id) if deployment.account_id else None
        if account is None:
            raise NotFound("Hosting account")

        await self._client(account).restart_app(deployment.app_name)
        deployment.append_log("Restart requested")
        activity_service.record(db, "deployment_restarted", user.id, {"deployment_id": str(deployment.id)})
        await db.commit()
        return deployment

    async def delete(self, db: AsyncSession, user: User, deployment_id: UUID) -> Optional[str]:
        """Tear down and forget a deployment.

        A deployment that is still provisioning is failed first, which refunds
        it; provisioning notices and removes any app it created meanwhile.
        Running or finished deployments are not refunded.

        Returns:
            The teardown error message when the Heroku app could not be deleted
        """
        deployment = await self.get_owned(db, user, deployment_id)
        if deployment.status in IN_PROGRESS_STATUSES:
            await self.fail(db, deployment.id, "Deleted by the owner during provisioning")
            deployment = await db.get(Deployment, deployment_id, populate_existing=True)
            if deployment is None:
                return None
            if deployment.status in IN_PROGRESS_STATUSES:
                raise InvalidDeploymentState("Deployment could not be stopped, try again")

        teardown_error = await self._teardown(db, deployment)
        await self._release_account(db, deployment)
        activity_service.record(
            db,
            "deployment_deleted",
            user.id,
            {"deployment_id": str(deployment.id), "app_name": deployment.app_name, "teardown_error": teardown_error},
        )
        await db.delete(deployment)
        await db.commit()
        logger.info(f"Deployment {deployment_id} deleted by user {user.id}")
        return teardown_error

    async def runtime_logs(self, db: AsyncSession, user: User, deployment_id: UUID) -> dict:
        """Deployment journal plus the app's recent Heroku log lines."""
        deployment = await self.get_owned(db, user, deployment_id)
        result = {"journal": deployment.logs or "", "runtime_logs": None, "runtime_error": None}
        if not deployment.heroku_app_id or deployment.status in (
            DeploymentStatus.FAILED.value,
            DeploymentStatus.STOPPED.value,
        ):
            return result

        account = await db.get(HerokuAccount, deployment.account_id) if deployment.account_id else None
        if account is None:
            return result
        try:
            result["runtime_logs"] = await self._client(account).fetch_recent_logs(deployment.app_name)
        except ExternalServiceFailure as e:
            logger.warning(f"Could not read logs of {deployment.app_name}: {e}")
            result["runtime_error"] = e.message
        return result

    async def stop_all(self, db: AsyncSession) -> dict:
        """Emergency stop of every active deployment (admin)."""
        result = await db.execute(
            select(Deployment).where(Deployment.status == DeploymentStatus.ACTIVE.value)
        )
        stopped = 0
        errors = []
        for deployment in result.scalars().all():
            teardown_error = await self._teardown(db, deployment)
            if teardown_error:
                errors.append({"deployment_id": str(deployment.id), "app_name": deployment.app_name, "error": teardown_error})

            deployment.status = DeploymentStatus.STOPPED.value
            deployment.stopped_at = datetime.utcnow()
            deployment.append_log("Stopped by an administrator")
            await self._release_account(db, deployment)
            await db.commit()
            stopped += 1

        activity_service.record(db, "maintenance_stop_all", None, {"stopped": stopped, "errors": len(errors)})
        await db.commit()
        logger.warning(f"Emergency stop: {stopped} deployment(s) stopped, {len(errors)} teardown error(s)")
        return {"stopped": stopped, "errors": errors}

    async def fail_stuck(self, db: AsyncSession, timeout_minutes: Optional[int] = None) -> int:
        """Fail deployments that made no progress within the timeout."""
        timeout_minutes = timeout_minutes or settings.provisioning_timeout_minutes
        deadline = datetime.utcnow() - timedelta(minutes=timeout_minutes)
        result = await db.execute(
            select(Deployment.id).where(
                Deployment.status.in_(IN_PROGRESS_STATUSES),
                Deployment.updated_at < deadline,
            )
        )
        failed = 0
        for deployment_id in result.scalars().all():
            if await self.fail(db, deployment_id, f"Provisioning timed out after {timeout_minutes} minutes"):
                failed += 1
        return failed


deployment_service = DeploymentService()
