"""Email service package."""

from app.services.email.email_config import EmailProvider
from app.services.email.email_service import (
    BotReviewData,
    CoinTransferData,
    EmailService,
    ReferralRewardData,
    get_email_service,
)

__all__ = [
    "EmailProvider",
    "EmailService",
    "BotReviewData",
    "CoinTransferData",
    "ReferralRewardData",
    "get_email_service",
]
