"""Authentication router for login and current user"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.exceptions import EmailAlreadyRegistered
from app.models import User
from app.schemas.user import LoginRequest, LoginResponse, UserResponse
from app.services.activity_service import activity_service
from app.services.firebase import TokenData, get_current_user, get_token_data
from app.services.user_service import user_service
from app.utils.logger import get_logger

logger = get_logger("routers.auth")

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=LoginResponse)
async def login(
    data: Optional[LoginRequest] = None,
    token: TokenData = Depends(get_token_data),
    db: AsyncSession = Depends(get_db),
):
    """
    Verify the Firebase token and log in, creating the user on first login.

    A referral code is only honoured on the first login. When Firebase
    reports the email as verified the user is marked verified, which pays
    any pending referral.
    """
    user = await user_service.get_by_firebase_uid(db, token.uid)
    is_new_user = False

    if user is None:
        result = await db.execute(select(User).where(User.email == token.email.lower()))
        user = result.scalar_one_or_none()
        if user is not None:
            # same email, new Firebase identity: only a verified email may take the account over
            if not token.email_verified:
                logger.warning(f"Refused unverified login for {user.email} from new identity {token.uid}")
                raise EmailAlreadyRegistered()
            logger.info(f"Relinking user {user.id} to Firebase identity {token.uid}")
            user.firebase_uid = token.uid
            activity_service.record(db, "identity_relinked", user.id)
            await db.commit()
        else:
            user = await user_service.provision(
                db,
                firebase_uid=token.uid,
                email=token.email,
                name=token.name,
                referral_code=data.referral_code if data else None,
            )
            is_new_user = True

    if token.email_verified and not user.is_verified:
        await user_service.mark_verified(db, user)

    return LoginResponse(user=UserResponse.model_validate(user), is_new_user=is_new_user)


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    """Current user's profile and balance."""
    return UserResponse.model_validate(user)
