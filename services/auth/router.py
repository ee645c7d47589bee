"""
services/auth/router.py
Email/password authentication.
Implements: Sign up → Login → JWT issue → Logout (deny-list) → Me
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from config.settings import settings
from shared.middleware.auth import TokenData, get_current_user, get_token_data
from shared.models.models import Profile
from shared.schemas.schemas import (
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    SignUpRequest,
    TokenResponse,
)
from shared.utils.access import AccessPolicy, get_access_policy
from shared.utils.security import (
    create_access_token,
    get_token_remaining_ttl,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ── Helper ────────────────────────────────────────────────────

def _issue_token(profile: Profile) -> TokenResponse:
    access_token, _ = create_access_token(user_id=str(profile.id), email=profile.email)
    return TokenResponse(
        access_token=access_token,
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=ProfileResponse.model_validate(profile),
    )


# ── Endpoints ─────────────────────────────────────────────────

@router.post(
    "/signup",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
async def signup(
    data: SignUpRequest,
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    """
    Creates the profile and signs the user in.
    Emails listed in ADMIN_EMAILS start with the admin flag set.
    """
    email = data.email.lower()
    existing = await db.execute(select(Profile.id).where(func.lower(Profile.email) == email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    profile = Profile(
        email=email,
        password_hash=hash_password(data.password),
        full_name=data.full_name,
        is_admin=email in policy.admin_emails,
    )
    db.add(profile)
    await db.commit()

    logger.info("Profile %s signed up (admin=%s)", profile.id, profile.is_admin)
    return _issue_token(profile)


@router.post("/login", response_model=TokenResponse, summary="Login with email and password")
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Profile).where(func.lower(Profile.email) == data.email.lower()))
    profile = result.scalar_one_or_none()
    if not profile or not verify_password(data.password, profile.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _issue_token(profile)


@router.post("/logout", response_model=MessageResponse, summary="Logout user")
async def logout(
    token_data: TokenData = Depends(get_token_data),
    redis=Depends(get_redis),
):
    """Add the presented JWT to the Redis deny-list until it would have expired."""
    ttl = get_token_remaining_ttl(token_data.payload)
    if ttl > 0:
        await RedisCache(redis).revoke_token(token_data.jti, ttl)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=ProfileResponse, summary="Get current user")
async def get_me(current_user: Profile = Depends(get_current_user)):
    """Returns the authenticated user's profile."""
    return ProfileResponse.model_validate(current_user)
