"""Referral router"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.models import User
from app.schemas.referral import ReferralCodeResponse, ReferralLinkResponse, ReferralStatsResponse
from app.services.firebase import get_current_user
from app.services.referral_service import referral_service

router = APIRouter(prefix="/referrals", tags=["Referrals"])


@router.get("/stats", response_model=ReferralStatsResponse)
async def referral_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ReferralStatsResponse(**await referral_service.stats(db, user))


@router.post("/code", response_model=ReferralCodeResponse)
async def regenerate_referral_code(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Replace the referral code. Links with the old code stop working."""
    return ReferralCodeResponse(referral_code=await referral_service.regenerate_code(db, user))


@router.get("/link", response_model=ReferralLinkResponse)
async def referral_link(user: User = Depends(get_current_user)):
    return ReferralLinkResponse(
        referral_code=user.referral_code,
        referral_link=referral_service.referral_link(user),
    )
