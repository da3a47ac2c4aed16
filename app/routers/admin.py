"""Admin router (X-API-Key): hosting accounts, bot moderation, users, maintenance"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.models import Bot, Deployment, User
from app.schemas.admin import (
    AccountPoolStats,
    AddCoinsRequest,
    AddCoinsResponse,
    HerokuAccountCreate,
    HerokuAccountListResponse,
    HerokuAccountResponse,
    HerokuAccountUpdate,
    HerokuAccountUsageUpdate,
    MaintenanceEventResponse,
    MaintenanceExpiryResponse,
    MaintenanceHistoryResponse,
    MaintenancePruneResponse,
    MaintenanceRequest,
    MaintenanceResponse,
    PlatformStats,
    ReconcileResponse,
    StopAllResponse,
    UserListResponse,
    ValidateKeyRequest,
    ValidateKeyResponse,
)
from app.schemas.bot import BotRejectRequest, BotRequestListResponse, BotRequestStatus, BotResponse
from app.schemas.common import MessageResponse, PaginationMeta
from app.schemas.user import UserResponse
from app.services.allocation import account_service, set_usage
from app.services.api_key import get_admin_key
from app.services.bots import bot_service
from app.services.deployment import deployment_service
from app.services.heroku import validate_api_key
from app.services.ledger_service import ledger_service
from app.services.maintenance_service import maintenance_service
from app.services.user_service import user_service
from app.utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(get_admin_key)])


# Hosting accounts

@router.get("/accounts", response_model=HerokuAccountListResponse)
async def list_accounts(db: AsyncSession = Depends(get_db)):
    accounts = await account_service.list_accounts(db)
    return HerokuAccountListResponse(
        accounts=[HerokuAccountResponse.model_validate(account) for account in accounts],
        stats=AccountPoolStats(**account_service.pool_stats(accounts)),
    )


@router.post("/accounts/validate-key", response_model=ValidateKeyResponse)
async def validate_key(data: ValidateKeyRequest):
    """Check a Heroku API key without saving it."""
    info = await validate_api_key(data.api_key)
    if info is None:
        return ValidateKeyResponse(valid=False)
    return ValidateKeyResponse(valid=True, email=info.get("email"), account_id=info.get("id"))


@router.get("/accounts/available", response_model=HerokuAccountResponse)
async def preview_available_account(db: AsyncSession = Depends(get_db)):
    """Account the next deployment would use."""
    account = await account_service.preview_allocation(db)
    return HerokuAccountResponse.model_validate(account)


@router.post("/accounts", response_model=HerokuAccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(data: HerokuAccountCreate, db: AsyncSession = Depends(get_db)):
    account = await account_service.create(
        db, data.email, data.api_key, data.max_deployments, data.is_active
    )
    return HerokuAccountResponse.model_validate(account)


@router.get("/accounts/{account_id}", response_model=HerokuAccountResponse)
async def get_account(account_id: int, db: AsyncSession = Depends(get_db)):
    return HerokuAccountResponse.model_validate(await account_service.get(db, account_id))


@router.put("/accounts/{account_id}", response_model=HerokuAccountResponse)
async def update_account(account_id: int, data: HerokuAccountUpdate, db: AsyncSession = Depends(get_db)):
    account = await account_service.get(db, account_id)
    account = await account_service.update(
        db,
        account,
        email=data.email,
        api_key=data.api_key,
        max_deployments=data.max_deployments,
        is_active=data.is_active,
    )
    return HerokuAccountResponse.model_validate(account)


@router.post("/accounts/{account_id}/toggle", response_model=HerokuAccountResponse)
async def toggle_account(account_id: int, db: AsyncSession = Depends(get_db)):
    account = await account_service.toggle(db, await account_service.get(db, account_id))
    return HerokuAccountResponse.model_validate(account)


@router.put("/accounts/{account_id}/usage", response_model=HerokuAccountResponse)
async def correct_account_usage(
    account_id: int, data: HerokuAccountUsageUpdate, db: AsyncSession = Depends(get_db)
):
    """Manually correct the usage counter (clamped at zero)."""
    account = await set_usage(db, await account_service.get(db, account_id), data.used_count)
    return HerokuAccountResponse.model_validate(account)


@router.delete("/accounts/{account_id}", response_model=MessageResponse)
async def delete_account(account_id: int, db: AsyncSession = Depends(get_db)):
    await account_service.delete(db, await account_service.get(db, account_id))
    return MessageResponse(message="Hosting account deleted")


# Bot moderation

@router.get("/bots", response_model=BotRequestListResponse)
async def list_bot_requests(
    status_filter: BotRequestStatus = Query("pending", alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
):
    bots, total = await bot_service.list_requests(db, status_filter, page, limit)
    return BotRequestListResponse(
        bots=[BotResponse.model_validate(bot) for bot in bots],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.post("/bots/{bot_id}/approve", response_model=BotResponse)
async def approve_bot(bot_id: UUID, db: AsyncSession = Depends(get_db)):
    bot = await bot_service.approve(db, await bot_service.get(db, bot_id))
    return BotResponse.model_validate(bot)


@router.post("/bots/{bot_id}/reject", response_model=BotResponse)
async def reject_bot(bot_id: UUID, data: BotRejectRequest, db: AsyncSession = Depends(get_db)):
    bot = await bot_service.reject(db, await bot_service.get(db, bot_id), data.reason)
    return BotResponse.model_validate(bot)


@router.delete("/bots/{bot_id}", response_model=MessageResponse)
async def delete_bot_request(bot_id: UUID, db: AsyncSession = Depends(get_db)):
    await bot_service.delete(db, await bot_service.get(db, bot_id))
    return MessageResponse(message="Bot deleted")


# Users

@router.get("/users", response_model=UserListResponse)
async def list_users(
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
):
    users, total = await user_service.list_users(db, page, limit, search)
    return UserListResponse(
        users=[UserResponse.model_validate(user) for user in users],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.post("/users/{user_id}/coins", response_model=AddCoinsResponse)
async def add_coins(user_id: int, data: AddCoinsRequest, db: AsyncSession = Depends(get_db)):
    user = await user_service.get(db, user_id)
    entry, new_balance = await ledger_service.admin_credit(db, user.id, data.amount, data.description)
    return AddCoinsResponse(user_id=user.id, amount=entry.amount, new_balance=new_balance)


@router.post("/users/{user_id}/verify", response_model=UserResponse)
async def verify_user(user_id: int, db: AsyncSession = Depends(get_db)):
    """Mark a user verified by hand (pays a pending referral)."""
    user = await user_service.get(db, user_id)
    await user_service.mark_verified(db, user)
    return UserResponse.model_validate(user)


@router.post("/users/{user_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_user_balance(user_id: int, db: AsyncSession = Depends(get_db)):
    """Recompute the cached balance from the ledger."""
    user = await user_service.get(db, user_id)
    cached, computed = await ledger_service.reconcile_balance(db, user.id)
    return ReconcileResponse(
        user_id=user.id, cached_balance=cached, ledger_balance=computed, corrected=cached != computed
    )


# Maintenance

@router.get("/maintenance", response_model=MaintenanceResponse)
async def get_maintenance(db: AsyncSession = Depends(get_db)):
    state = await maintenance_service.get_state(db)
    await db.commit()
    return MaintenanceResponse.model_validate(state)


@router.put("/maintenance", response_model=MaintenanceResponse)
async def set_maintenance(data: MaintenanceRequest, db: AsyncSession = Depends(get_db)):
    """Turn maintenance mode on or off. New deployments are refused while on.

    With ``end_time`` the supervisor ends the window automatically.
    """
    state = await maintenance_service.set_state(db, data.is_active, data.message, data.end_time)
    return MaintenanceResponse.model_validate(state)


@router.post("/maintenance/force-disable", response_model=MaintenanceResponse)
async def force_disable_maintenance(db: AsyncSession = Depends(get_db)):
    state = await maintenance_service.force_disable(db)
    return MaintenanceResponse.model_validate(state)


@router.post("/maintenance/check-expired", response_model=MaintenanceExpiryResponse)
async def check_expired_maintenance(db: AsyncSession = Depends(get_db)):
    """End the maintenance window now if its end time has passed."""
    return MaintenanceExpiryResponse(auto_disabled=await maintenance_service.expire_if_due(db))


@router.get("/maintenance/history", response_model=MaintenanceHistoryResponse)
async def maintenance_history(
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
):
    events = await maintenance_service.history(db, limit)
    return MaintenanceHistoryResponse(history=[MaintenanceEventResponse.model_validate(e) for e in events])


@router.delete("/maintenance/history", response_model=MaintenancePruneResponse)
async def prune_maintenance_history(db: AsyncSession = Depends(get_db)):
    """Keep only the 50 newest history entries."""
    kept, deleted = await maintenance_service.prune_history(db)
    return MaintenancePruneResponse(kept=kept, deleted=deleted)


@router.post("/maintenance/stop-all", response_model=StopAllResponse)
async def stop_all_deployments(db: AsyncSession = Depends(get_db)):
    """Emergency stop: tear down every active deployment."""
    return StopAllResponse(**await deployment_service.stop_all(db))


# Stats

@router.get("/stats", response_model=PlatformStats)
async def platform_stats(db: AsyncSession = Depends(get_db)):
    users = (await db.execute(select(func.count(User.id)))).scalar() or 0
    verified = (await db.execute(select(func.count(User.id)).where(User.is_verified.is_(True)))).scalar() or 0
    coins = (await db.execute(select(func.coalesce(func.sum(User.coins), 0)))).scalar() or 0
    approved = (await db.execute(select(func.count(Bot.id)).where(Bot.is_approved.is_(True)))).scalar() or 0
    pending = (
        await db.execute(select(func.count(Bot.id)).where(Bot.review_status == "pending"))
    ).scalar() or 0
    by_status = dict(
        (await db.execute(select(Deployment.status, func.count(Deployment.id)).group_by(Deployment.status))).all()
    )
    accounts = await account_service.list_accounts(db)

    return PlatformStats(
        users=users,
        verified_users=verified,
        bots_approved=approved,
        bots_pending=pending,
        deployments_by_status=by_status,
        coins_in_circulation=int(coins),
        accounts=AccountPoolStats(**account_service.pool_stats(accounts)),
    )
