"""API key authentication for the admin/operator API"""

import secrets

from fastapi import HTTPException, Request, status
from fastapi.security import APIKeyHeader

from app.config import settings
from app.utils.logger import get_logger

logger = get_logger("auth.api_key")

API_KEY_HEADER_NAME = "X-API-Key"
api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)


def _get_admin_api_key() -> str:
    if not settings.admin_api_key:
        logger.error("ADMIN_API_KEY is not set, admin API is unavailable")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error",
        )
    return settings.admin_api_key


def verify_api_key(api_key: str) -> bool:
    """Constant-time comparison against ADMIN_API_KEY."""
    return secrets.compare_digest(api_key.encode(), _get_admin_api_key().encode())


async def get_admin_key(request: Request) -> str:
    """
    FastAPI dependency guarding admin routes.

    Raises:
        HTTPException: 401 if the X-API-Key header is missing or wrong
    """
    api_key = request.headers.get(API_KEY_HEADER_NAME)

    if not api_key:
        logger.warning(f"Missing API key in request to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not verify_api_key(api_key):
        logger.warning(f"Invalid API key in request to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key
