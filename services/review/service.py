"""
services/review/service.py
Review admission and the vehicle rating aggregate.

Each review write locks the reviewed vehicle row first, applies the write,
then recomputes ``rating``/``total_reviews`` from the vehicle's reviews in
the same transaction. Concurrent writes for one vehicle serialize on the lock.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Booking, BookingStatus, Profile, Review, Vehicle
from shared.utils.access import AccessPolicy
from shared.utils.errors import DuplicateReview, NotFound, ReviewNotAllowed, Unauthorized
from shared.utils.ratings import aggregate_ratings

logger = logging.getLogger(__name__)


# ── Aggregate ─────────────────────────────────────────────────

async def _lock_vehicle(db: AsyncSession, vehicle_id: UUID) -> Vehicle:
    result = await db.execute(
        select(Vehicle).where(Vehicle.id == vehicle_id).with_for_update()
    )
    vehicle = result.scalar_one_or_none()
    if not vehicle:
        raise NotFound("Vehicle not found")
    return vehicle


async def recompute_vehicle_rating(db: AsyncSession, vehicle: Vehicle) -> Vehicle:
    """Overwrite the vehicle's aggregate from its current reviews. Caller holds the row lock."""
    await db.flush()
    result = await db.execute(select(Review.rating).where(Review.vehicle_id == vehicle.id))
    vehicle.rating, vehicle.total_reviews = aggregate_ratings(result.scalars().all())
    return vehicle


async def get_vehicle_rating(db: AsyncSession, vehicle_id: UUID) -> Tuple[Decimal, int]:
    vehicle = await db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise NotFound("Vehicle not found")
    return Decimal(vehicle.rating), vehicle.total_reviews


# ── Submit ────────────────────────────────────────────────────

async def _has_reviewed(db: AsyncSession, user_id: UUID, booking_id: UUID) -> bool:
    result = await db.execute(
        select(Review.id).where(Review.user_id == user_id, Review.booking_id == booking_id)
    )
    return result.scalar_one_or_none() is not None


async def submit_review(
    db: AsyncSession,
    requester: Profile,
    *,
    vehicle_id: UUID,
    booking_id: UUID,
    rating: int,
    comment: Optional[str] = None,
) -> Review:
    """
    Only the booking's owner may review it, once, after it is completed,
    and only for the vehicle that was booked.
    """
    booking = await db.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    if booking.user_id != requester.id:
        raise ReviewNotAllowed("You can only review your own bookings")
    if BookingStatus(booking.status) != BookingStatus.COMPLETED:
        raise ReviewNotAllowed("Can only review completed bookings")
    if booking.vehicle_id != vehicle_id:
        raise ReviewNotAllowed("Review does not match the booked vehicle")

    if await _has_reviewed(db, requester.id, booking_id):
        raise DuplicateReview()

    vehicle = await _lock_vehicle(db, vehicle_id)

    review = Review(
        user_id=requester.id,
        vehicle_id=vehicle.id,
        booking_id=booking.id,
        rating=rating,
        comment=comment,
    )
    db.add(review)
    try:
        await recompute_vehicle_rating(db, vehicle)
    except IntegrityError:
        # Lost a race with a concurrent submission for the same booking
        await db.rollback()
        raise DuplicateReview()
    await db.commit()

    logger.info(
        "Review %s for vehicle %s: rating now %s over %d reviews",
        review.id, vehicle.id, vehicle.rating, vehicle.total_reviews,
    )
    return review


# ── Update / Delete ───────────────────────────────────────────

async def _get_review_or_404(db: AsyncSession, review_id: UUID) -> Review:
    review = await db.get(Review, review_id)
    if not review:
        raise NotFound("Review not found")
    return review


async def update_review(
    db: AsyncSession,
    requester: Profile,
    review_id: UUID,
    policy: AccessPolicy,
    rating: Optional[int] = None,
    comment: Optional[str] = None,
) -> Review:
    review = await _get_review_or_404(db, review_id)
    if not policy.can_update_review(requester, review):
        raise Unauthorized("You can only edit your own reviews")

    vehicle = await _lock_vehicle(db, review.vehicle_id)
    if rating is not None:
        review.rating = rating
    if comment is not None:
        review.comment = comment
    await recompute_vehicle_rating(db, vehicle)
    await db.commit()
    return review


async def delete_review(
    db: AsyncSession, requester: Profile, review_id: UUID, policy: AccessPolicy
) -> Vehicle:
    review = await _get_review_or_404(db, review_id)
    if not policy.can_delete_review(requester, review):
        raise Unauthorized("Not authorized to delete this review")

    vehicle = await _lock_vehicle(db, review.vehicle_id)
    await db.delete(review)
    await recompute_vehicle_rating(db, vehicle)
    await db.commit()

    logger.info("Review %s deleted by %s", review_id, requester.id)
    return vehicle


# ── Read ──────────────────────────────────────────────────────

async def list_vehicle_reviews(
    db: AsyncSession, vehicle_id: UUID, limit: int = 50, offset: int = 0
) -> List[Review]:
    result = await db.execute(
        select(Review)
        .where(Review.vehicle_id == vehicle_id)
        .order_by(Review.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())
