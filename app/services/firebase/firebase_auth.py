"""Firebase ID token authentication dependencies"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request
from firebase_admin import auth
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.models.user import User
from app.services.firebase.firebase_config import get_firebase_app
from app.services.user_service import user_service
from app.utils.logger import get_logger
from app.utils.sentry_utils import set_user_context

logger = get_logger("auth.firebase")


@dataclass
class TokenData:
    """Decoded Firebase token data"""

    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    email_verified: bool = False


async def verify_token_async(id_token: str) -> TokenData:
    """
    Verify a Firebase ID token without blocking the event loop.

    Raises:
        HTTPException: 401 if the token is expired, revoked or invalid
    """
    try:
        get_firebase_app()
        decoded_token = await asyncio.to_thread(auth.verify_id_token, id_token)
    except auth.ExpiredIdTokenError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except auth.RevokedIdTokenError:
        raise HTTPException(status_code=401, detail="Token has been revoked")
    except auth.InvalidIdTokenError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Token verification failed: {e}")
        raise HTTPException(status_code=401, detail="Authentication failed")

    return TokenData(
        uid=decoded_token["uid"],
        email=decoded_token.get("email"),
        name=decoded_token.get("name"),
        email_verified=decoded_token.get("email_verified", False),
    )


def get_token_from_header(request: Request) -> str:
    auth_header = request.headers.get("Authorization")

    if not auth_header:
        raise HTTPException(status_code=401, detail="Authorization header missing")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=401, detail="Invalid authorization header format. Expected 'Bearer <token>'"
        )
    return auth_header.split("Bearer ", 1)[1]


async def get_token_data(request: Request) -> TokenData:
    """FastAPI dependency returning the verified token claims."""
    token_data = await verify_token_async(get_token_from_header(request))
    if not token_data.email:
        raise HTTPException(status_code=401, detail="Email not found in token")
    return token_data


async def get_current_user(
    token_data: TokenData = Depends(get_token_data),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    FastAPI dependency returning the authenticated, provisioned user.

    The first request after Firebase reports the email as verified marks the
    local user verified, which also pays any pending referral.

    Raises:
        HTTPException: 404 if the user never logged in through /auth/login
    """
    user = await user_service.get_by_firebase_uid(db, token_data.uid)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found. Please log in first.")

    if token_data.email_verified and not user.is_verified:
        await user_service.mark_verified(db, user)

    set_user_context(user.id, user.email)
    return user
