"""Firebase service module for authentication"""

from app.services.firebase.firebase_config import get_firebase_app
from app.services.firebase.firebase_auth import (
    TokenData,
    get_current_user,
    get_token_data,
    verify_token_async,
)

__all__ = [
    "get_firebase_app",
    "TokenData",
    "get_current_user",
    "get_token_data",
    "verify_token_async",
]
