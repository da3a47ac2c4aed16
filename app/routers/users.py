"""User profile, stats and activity router"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.models import User
from app.schemas.common import PaginationMeta
from app.schemas.user import (
    ActivityItem,
    ActivityListResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    UserResponse,
    UserStatsResponse,
)
from app.services.activity_service import activity_service
from app.services.firebase import get_current_user
from app.services.user_service import user_service
from app.utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(prefix="/users", tags=["Users"])

# Activity entries shown on the profile
PROFILE_RECENT_ACTIVITY = 10


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Profile with usage counts and the latest activity"""
    stats = await user_service.stats(db, user.id)
    activities, _ = await activity_service.list_for_user(db, user.id, 1, PROFILE_RECENT_ACTIVITY)
    return ProfileResponse(
        user=UserResponse.model_validate(user),
        stats=UserStatsResponse(**stats),
        recent_activity=[ActivityItem.model_validate(activity) for activity in activities],
    )


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_profile(db, user, data.name)
    return UserResponse.model_validate(user)


@router.get("/stats", response_model=UserStatsResponse)
async def get_stats(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return UserStatsResponse(**await user_service.stats(db, user.id))


@router.get("/activity", response_model=ActivityListResponse)
async def list_activity(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    activities, total = await activity_service.list_for_user(db, user.id, page, limit)
    return ActivityListResponse(
        activities=[ActivityItem.model_validate(activity) for activity in activities],
        pagination=PaginationMeta.build(page, limit, total),
    )
