"""
services/review/router.py
Review submission, editing and removal. Every write refreshes the
vehicle's aggregate rating in the same transaction.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.review import service
from shared.middleware.auth import get_current_user
from shared.models.models import Profile
from shared.schemas.schemas import (
    MessageResponse,
    ReviewCreateRequest,
    ReviewResponse,
    ReviewUpdateRequest,
)
from shared.utils.access import AccessPolicy, get_access_policy

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    data: ReviewCreateRequest,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Submit a review for a completed booking.
    - One review per booking and user (also enforced by a unique constraint)
    - Only the user who made the booking can review it
    """
    review = await service.submit_review(
        db,
        current_user,
        vehicle_id=data.vehicle_id,
        booking_id=data.booking_id,
        rating=data.rating,
        comment=data.comment,
    )
    return ReviewResponse.model_validate(review)


@router.put("/{review_id}", response_model=ReviewResponse)
async def update_review(
    review_id: UUID,
    data: ReviewUpdateRequest,
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    review = await service.update_review(
        db, current_user, review_id, policy, rating=data.rating, comment=data.comment
    )
    return ReviewResponse.model_validate(review)


@router.delete("/{review_id}", response_model=MessageResponse)
async def delete_review(
    review_id: UUID,
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    """Author or admin. The row is removed and the vehicle rating recomputed."""
    await service.delete_review(db, current_user, review_id, policy)
    return MessageResponse(message="Review deleted successfully")
