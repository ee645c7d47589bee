"""
services/user/router.py
Profile management for the current user, and profile lookup by id.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.middleware.auth import get_current_user
from shared.models.models import Profile
from shared.schemas.schemas import ProfileResponse, ProfileUpdateRequest
from shared.utils.access import AccessPolicy, get_access_policy
from shared.utils.errors import NotFound, Unauthorized

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=ProfileResponse)
async def get_me(current_user: Profile = Depends(get_current_user)):
    """Return the currently authenticated user's profile."""
    return ProfileResponse.model_validate(current_user)


@router.put("/me", response_model=ProfileResponse)
async def update_me(
    data: ProfileUpdateRequest,
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    """
    Update profile fields (name, avatar, phone, date of birth).
    Only fields present in the request body are updated; the admin
    flag cannot be set here.
    """
    if not policy.can_update_profile(current_user, current_user):
        raise Unauthorized()

    updates = data.model_dump(exclude_unset=True)
    if not updates:
        return ProfileResponse.model_validate(current_user)

    for field, value in updates.items():
        setattr(current_user, field, value)

    await db.commit()
    await db.refresh(current_user)
    return ProfileResponse.model_validate(current_user)


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_profile(
    user_id: UUID,
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    """Self or admin."""
    profile = await db.get(Profile, user_id)
    if not profile:
        raise NotFound("Profile not found")
    if not policy.can_read_profile(current_user, profile):
        raise Unauthorized("Not authorized to view this profile")
    return ProfileResponse.model_validate(profile)
