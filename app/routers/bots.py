"""Bot catalog router"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.models import User
from app.schemas.bot import (
    BotListResponse,
    BotResponse,
    BotSubmitRequest,
    BotUpdateRequest,
    CheckRepoRequest,
    CheckRepoResponse,
    OwnedBotListResponse,
    OwnedBotResponse,
)
from app.schemas.common import MessageResponse
from app.services.bots import bot_service
from app.services.firebase import get_current_user

router = APIRouter(prefix="/bots", tags=["Bots"])


@router.post("", response_model=BotResponse, status_code=status.HTTP_201_CREATED)
async def submit_bot(
    data: BotSubmitRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Submit a GitHub repository as a bot.

    The repository must contain a kerm.json manifest. The bot is listed
    once an administrator approves it.
    """
    bot = await bot_service.submit(db, user, data.github_repo, data.cost, data.branch)
    return BotResponse.model_validate(bot)


@router.post("/check-repo", response_model=CheckRepoResponse)
async def check_repo(data: CheckRepoRequest, user: User = Depends(get_current_user)):
    """Validate a repository and its manifest without saving anything."""
    repo, manifest = await bot_service.check_repo(data.github_repo, data.branch)
    return CheckRepoResponse(
        github_repo=repo,
        name=manifest.name,
        description=manifest.description,
        env=manifest.env,
        logo=manifest.logo,
        documentation_link=manifest.documentation_link,
    )


@router.get("/available", response_model=BotListResponse)
async def list_available_bots(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bots = await bot_service.list_available(db)
    return BotListResponse(bots=[BotResponse.model_validate(bot) for bot in bots])


@router.get("/mine", response_model=OwnedBotListResponse)
async def list_my_bots(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await bot_service.list_owned(db, user)
    return OwnedBotListResponse(
        bots=[
            OwnedBotResponse(
                **BotResponse.model_validate(bot).model_dump(),
                total_deployments=total,
                active_deployments=active,
            )
            for bot, total, active in rows
        ]
    )


@router.get("/{bot_id}", response_model=BotResponse)
async def get_bot(
    bot_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bot = await bot_service.get_visible(db, bot_id, user)
    return BotResponse.model_validate(bot)


@router.put("/{bot_id}", response_model=BotResponse)
async def update_bot(
    bot_id: UUID,
    data: BotUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change cost or availability. The bot goes back to review."""
    bot = await bot_service.get_owned(db, bot_id, user)
    bot = await bot_service.update(db, bot, cost=data.cost, is_active=data.is_active)
    return BotResponse.model_validate(bot)


@router.post("/{bot_id}/sync", response_model=BotResponse)
async def sync_bot(
    bot_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Re-read kerm.json from the repository. The bot goes back to review."""
    bot = await bot_service.get_owned(db, bot_id, user)
    bot = await bot_service.sync(db, bot)
    return BotResponse.model_validate(bot)


@router.delete("/{bot_id}", response_model=MessageResponse)
async def delete_bot(
    bot_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bot = await bot_service.get_owned(db, bot_id, user)
    await bot_service.delete(db, bot, actor_id=user.id)
    return MessageResponse(message="Bot deleted")
