"""Referral schemas"""

from datetime import datetime

from pydantic import BaseModel


class ReferralItem(BaseModel):
    email: str
    name: str | None
    status: str
    reward_given: bool
    created_at: datetime
    completed_at: datetime | None


class ReferralStatsResponse(BaseModel):
    referral_code: str
    total_referrals: int
    rewarded_referrals: int
    pending_referrals: int
    total_coins_earned: int
    referral_reward: int
    referrals: list[ReferralItem]


class ReferralCodeResponse(BaseModel):
    referral_code: str


class ReferralLinkResponse(BaseModel):
    referral_code: str
    referral_link: str
