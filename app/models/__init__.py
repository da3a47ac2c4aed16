from app.db.database import Base
from app.models.user import User
from app.models.bot import Bot, BotReviewStatus
from app.models.heroku_account import HerokuAccount
from app.models.deployment import Deployment, DeploymentStatus
from app.models.coin_transaction import CoinTransaction, TransactionType
from app.models.referral import Referral, ReferralStatus
from app.models.activity_log import ActivityLog
from app.models.maintenance import MaintenanceEvent, MaintenanceMode, MaintenanceSource

__all__ = [
    "Base",
    "User",
    "Bot",
    "BotReviewStatus",
    "HerokuAccount",
    "Deployment",
    "DeploymentStatus",
    "CoinTransaction",
    "TransactionType",
    "Referral",
    "ReferralStatus",
    "ActivityLog",
    "MaintenanceMode",
    "MaintenanceEvent",
    "MaintenanceSource",
]
