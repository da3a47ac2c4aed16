"""Bot catalog: submission, owner edits and admin moderation"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFound, ValidationError, InvalidDeploymentState
from app.models.bot import Bot, BotReviewStatus
from app.models.deployment import Deployment, DeploymentStatus
from app.models.user import User
from app.services.activity_service import activity_service
from app.services.bots.manifest import BotManifest, fetch_manifest, normalize_repo
from app.services.email import BotReviewData, get_email_service
from app.utils.logger import get_logger

logger = get_logger("bots")


def _apply_manifest(bot: Bot, manifest: BotManifest) -> None:
    bot.name = manifest.name
    bot.description = manifest.description
    bot.env_schema = manifest.env
    bot.logo_url = manifest.logo
    bot.documentation_url = manifest.documentation_link


class BotService:
    async def check_repo(self, github_repo: str, branch: Optional[str] = None) -> tuple[str, BotManifest]:
        repo = normalize_repo(github_repo)
        return repo, await fetch_manifest(repo, branch)

    async def submit(
        self,
        db: AsyncSession,
        owner: User,
        github_repo: str,
        cost: int,
        branch: Optional[str] = None,
    ) -> Bot:
        if not isinstance(cost, int) or cost < 1:
            raise ValidationError("Cost must be an integer of at least 1 coin")

        repo = normalize_repo(github_repo)
        duplicate = (await db.execute(select(Bot.id).where(Bot.github_repo == repo))).scalar_one_or_none()
        if duplicate is not None:
            raise ValidationError("This repository has already been submitted", {"github_repo": repo})

        manifest = await fetch_manifest(repo, branch)
        bot = Bot(owner_id=owner.id, github_repo=repo, cost=cost, is_active=True, is_approved=False)
        if branch:
            bot.github_branch = branch
        _apply_manifest(bot, manifest)
        db.add(bot)
        await db.flush()

        activity_service.record(db, "bot_submitted", owner.id, {"bot_id": str(bot.id), "github_repo": repo})
        await db.commit()
        await db.refresh(bot)
        logger.info(f"Bot {bot.id} submitted by user {owner.id} from {repo}")
        return bot

    async def get(self, db: AsyncSession, bot_id: UUID) -> Bot:
        bot = await db.get(Bot, bot_id)
        if bot is None:
            raise NotFound("Bot")
        return bot

    async def get_visible(self, db: AsyncSession, bot_id: UUID, user: User) -> Bot:
        """Owner sees their bot in any state, everyone else only approved ones."""
        bot = await self.get(db, bot_id)
        if bot.owner_id != user.id and not bot.is_approved:
            raise NotFound("Bot")
        return bot

    async def get_owned(self, db: AsyncSession, bot_id: UUID, user: User) -> Bot:
        bot = await self.get(db, bot_id)
        if bot.owner_id != user.id:
            raise NotFound("Bot")
        return bot

    async def list_available(self, db: AsyncSession) -> list[Bot]:
        result = await db.execute(
            select(Bot)
            .where(Bot.is_approved.is_(True), Bot.is_active.is_(True))
            .order_by(Bot.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_owned(self, db: AsyncSession, user: User) -> list[tuple[Bot, int, int]]:
        """Owner's bots with (total deployments, active deployments)."""
        active = func.sum(case((Deployment.status == DeploymentStatus.ACTIVE.value, 1), else_=0))
        result = await db.execute(
            select(Bot, func.count(Deployment.id), active)
            .outerjoin(Deployment, Deployment.bot_id == Bot.id)
            .where(Bot.owner_id == user.id)
            .group_by(Bot.id)
            .order_by(Bot.created_at.desc())
        )
        return [(bot, total or 0, int(active_count or 0)) for bot, total, active_count in result.all()]

    async def count_active_deployments(self, db: AsyncSession, bot_id: UUID) -> int:
        return (
            await db.execute(
                select(func.count()).where(
                    Deployment.bot_id == bot_id,
                    Deployment.status.in_(
                        [
                            DeploymentStatus.PENDING.value,
                            DeploymentStatus.CONFIGURING.value,
                            DeploymentStatus.ACTIVE.value,
                        ]
                    ),
                )
            )
        ).scalar() or 0

    async def update(
        self,
        db: AsyncSession,
        bot: Bot,
        cost: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> Bot:
        """Owner edit; sends the bot back to moderation."""
        if cost is not None:
            if cost < 1:
                raise ValidationError("Cost must be an integer of at least 1 coin")
            bot.cost = cost
        if is_active is not None:
            bot.is_active = is_active
        bot.reset_review()
        activity_service.record(
            db, "bot_updated", bot.owner_id, {"bot_id": str(bot.id), "cost": bot.cost, "is_active": bot.is_active}
        )
        await db.commit()
        await db.refresh(bot)
        return bot

    async def sync(self, db: AsyncSession, bot: Bot) -> Bot:
        """Re-read kerm.json and send the bot back to moderation."""
        manifest = await fetch_manifest(bot.github_repo, bot.github_branch)
        _apply_manifest(bot, manifest)
        bot.reset_review()
        activity_service.record(db, "bot_synced", bot.owner_id, {"bot_id": str(bot.id)})
        await db.commit()
        await db.refresh(bot)
        logger.info(f"Bot {bot.id} re-synced from {bot.github_repo}")
        return bot

    async def delete(self, db: AsyncSession, bot: Bot, actor_id: Optional[int] = None) -> None:
        active = await self.count_active_deployments(db, bot.id)
        if active:
            raise InvalidDeploymentState(
                "This bot still has running deployments", {"active_deployments": active}
            )
        activity_service.record(
            db, "bot_deleted", actor_id, {"bot_id": str(bot.id), "github_repo": bot.github_repo}
        )
        await db.delete(bot)
        await db.commit()
        logger.info(f"Bot {bot.id} deleted")

    async def list_requests(
        self, db: AsyncSession, status: str, page: int, limit: int
    ) -> tuple[list[Bot], int]:
        query = select(Bot)
        if status != "all":
            query = query.where(Bot.review_status == BotReviewStatus(status).value)
        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
        result = await db.execute(
            query.order_by(Bot.created_at.desc()).offset((page - 1) * limit).limit(limit)
        )
        return list(result.scalars().all()), total

    async def approve(self, db: AsyncSession, bot: Bot) -> Bot:
        bot.is_approved = True
        bot.review_status = BotReviewStatus.APPROVED.value
        bot.rejection_reason = None
        bot.reviewed_at = datetime.utcnow()
        activity_service.record(db, "bot_approved", None, {"bot_id": str(bot.id)})
        await db.commit()
        await db.refresh(bot)
        logger.info(f"Bot {bot.id} approved")

        owner = await db.get(User, bot.owner_id)
        await get_email_service().send_bot_approved_email(
            owner.email,
            BotReviewData(owner_name=owner.name or owner.email, bot_name=bot.name, github_repo=bot.github_repo),
        )
        return bot

    async def reject(self, db: AsyncSession, bot: Bot, reason: Optional[str]) -> Bot:
        bot.is_approved = False
        bot.review_status = BotReviewStatus.REJECTED.value
        bot.rejection_reason = reason
        bot.reviewed_at = datetime.utcnow()
        activity_service.record(db, "bot_rejected", None, {"bot_id": str(bot.id), "reason": reason})
        await db.commit()
        await db.refresh(bot)
        logger.info(f"Bot {bot.id} rejected: {reason or '-'}")

        owner = await db.get(User, bot.owner_id)
        await get_email_service().send_bot_rejected_email(
            owner.email,
            BotReviewData(
                owner_name=owner.name or owner.email,
                bot_name=bot.name,
                github_repo=bot.github_repo,
                reason=reason,
            ),
        )
        return bot


bot_service = BotService()
