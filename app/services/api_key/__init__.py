"""Admin API key authentication"""

from app.services.api_key.api_key_auth import get_admin_key, verify_api_key

__all__ = [
    "get_admin_key",
    "verify_api_key",
]
