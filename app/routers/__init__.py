"""API routers module"""

from app.routers.auth import router as auth_router
from app.routers.users import router as users_router
from app.routers.bots import router as bots_router
from app.routers.deploy import router as deploy_router
from app.routers.coins import router as coins_router
from app.routers.referrals import router as referrals_router
from app.routers.admin import router as admin_router

__all__ = [
    "auth_router",
    "users_router",
    "bots_router",
    "deploy_router",
    "coins_router",
    "referrals_router",
    "admin_router",
]
