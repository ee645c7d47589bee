"""
services/booking/service.py
Booking admission and mutation rules.

Every operation takes the requesting Profile and the AccessPolicy, raises a
RentalError on violation, and commits its own transaction.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import (
    Booking,
    BookingAuditLog,
    BookingStatus,
    PaymentStatus,
    Profile,
    Vehicle,
)
from shared.utils.access import AccessPolicy
from shared.utils.audit import log_admin_action
from shared.utils.booking_rules import (
    Timeframe,
    as_utc,
    quote_total_price,
    validate_date_range,
    validate_total_price,
)
from shared.utils.errors import NotFound, Unauthorized, VehicleUnavailable

logger = logging.getLogger(__name__)

OPERATIONAL_FIELDS = (
    "insurance_verified",
    "actual_pickup_time",
    "actual_dropoff_time",
    "damage_report",
    "fuel_level_pickup",
    "fuel_level_dropoff",
    "mileage_start",
    "mileage_end",
)


# ── Helpers ───────────────────────────────────────────────────

async def _get_booking_or_404(db: AsyncSession, booking_id: UUID) -> Booking:
    booking = await db.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    return booking


async def _get_booking_for_update(
    db: AsyncSession, requester: Profile, booking_id: UUID, policy: AccessPolicy
) -> Booking:
    booking = await _get_booking_or_404(db, booking_id)
    if not policy.can_update_booking(requester, booking):
        raise Unauthorized("Not authorized to modify this booking")
    return booking


def _log_transition(
    db: AsyncSession,
    booking: Booking,
    field: str,
    from_value: Optional[str],
    to_value: str,
    changed_by: Profile,
) -> None:
    """Append an immutable audit log entry for every status change."""
    db.add(BookingAuditLog(
        booking_id=booking.id,
        field=field,
        from_value=from_value,
        to_value=to_value,
        changed_by_id=changed_by.id,
    ))


# ── Create ────────────────────────────────────────────────────

async def create_booking(
    db: AsyncSession,
    requester: Profile,
    *,
    vehicle_id: UUID,
    start_date: datetime,
    end_date: datetime,
    pickup_location: str,
    total_price: Optional[Decimal] = None,
    **details,
) -> Booking:
    """
    Admit a new booking. Steps:
    1. Reject empty or inverted date ranges
    2. Require an existing vehicle that is currently available
    3. Quote the price when the caller did not send one
    4. Insert as pending / payment pending, owned by the requester

    Overlapping bookings for the same vehicle are accepted.
    """
    validate_date_range(start_date, end_date)

    vehicle = await db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise NotFound("Vehicle not found")
    if not vehicle.available:
        raise VehicleUnavailable()

    if total_price is None:
        total_price = quote_total_price(vehicle.price_per_day, start_date, end_date)
    validate_total_price(total_price)

    booking = Booking(
        user_id=requester.id,
        vehicle_id=vehicle.id,
        start_date=as_utc(start_date),
        end_date=as_utc(end_date),
        pickup_location=pickup_location,
        total_price=total_price,
        status=BookingStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        **{k: v for k, v in details.items() if v is not None},
    )
    db.add(booking)
    await db.flush()

    _log_transition(db, booking, "status", None, BookingStatus.PENDING.value, requester)
    await db.commit()

    logger.info("Booking %s created by %s for vehicle %s", booking.id, requester.id, vehicle.id)
    return booking


# ── Update ────────────────────────────────────────────────────

async def update_booking_status(
    db: AsyncSession,
    requester: Profile,
    booking_id: UUID,
    policy: AccessPolicy,
    status: Optional[BookingStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
) -> Booking:
    """
    Set status and/or payment status. Any value may follow any other;
    only the owner or an admin may change them.
    """
    booking = await _get_booking_for_update(db, requester, booking_id, policy)

    changes = {}
    if status is not None:
        new_status = BookingStatus(status)
        if new_status != booking.status:
            changes["status"] = (BookingStatus(booking.status).value, new_status.value)
            booking.status = new_status
    if payment_status is not None:
        new_payment = PaymentStatus(payment_status)
        if new_payment != booking.payment_status:
            changes["payment_status"] = (PaymentStatus(booking.payment_status).value, new_payment.value)
            booking.payment_status = new_payment

    for field, (before, after) in changes.items():
        _log_transition(db, booking, field, before, after, requester)

    if changes and booking.user_id != requester.id:
        log_admin_action(
            db,
            requester,
            "UPDATE_BOOKING_STATUS",
            "Booking",
            str(booking.id),
            {field: after for field, (_, after) in changes.items()},
        )

    await db.commit()
    if changes:
        logger.info("Booking %s updated by %s: %s", booking.id, requester.id, changes)
    return booking


async def update_booking_operations(
    db: AsyncSession,
    requester: Profile,
    booking_id: UUID,
    policy: AccessPolicy,
    updates: dict,
) -> Booking:
    """Record pickup/dropoff inspection data (fuel, mileage, times, damage)."""
    booking = await _get_booking_for_update(db, requester, booking_id, policy)

    for field, value in updates.items():
        if field in OPERATIONAL_FIELDS:
            setattr(booking, field, value)

    await db.commit()
    return booking


# ── Read ──────────────────────────────────────────────────────

async def get_booking(
    db: AsyncSession, requester: Profile, booking_id: UUID, policy: AccessPolicy
) -> Booking:
    booking = await _get_booking_or_404(db, booking_id)
    if not policy.can_read_booking(requester, booking):
        raise Unauthorized("Not authorized to view this booking")
    return booking


async def list_bookings(
    db: AsyncSession,
    requester: Profile,
    policy: AccessPolicy,
    timeframe: Optional[Timeframe] = None,
    status: Optional[BookingStatus] = None,
    mine: bool = False,
    page: int = 1,
    page_size: int = 20,
    now: Optional[datetime] = None,
) -> Tuple[List[Booking], int]:
    """
    Bookings visible to the requester, newest first: their own, or every
    booking for an admin (unless ``mine`` is set). The upcoming/past filter
    is evaluated at read time against ``now``.
    """
    query = select(Booking)
    if mine:
        query = query.where(Booking.user_id == requester.id)
    else:
        query = policy.visible_bookings(requester, query)
    if status is not None:
        query = query.where(Booking.status == BookingStatus(status))
    if timeframe is not None:
        query = query.where(_timeframe_clause(Timeframe(timeframe), now))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    result = await db.execute(
        query.order_by(Booking.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
    )
    return list(result.scalars().all()), total


def _timeframe_clause(timeframe: Timeframe, now: Optional[datetime] = None):
    # SQL form of booking_rules.is_upcoming; start dates are stored in UTC
    now = as_utc(now or datetime.now(timezone.utc))
    if timeframe == Timeframe.UPCOMING:
        return or_(Booking.start_date > now, Booking.status == BookingStatus.ACTIVE)
    return and_(Booking.start_date <= now, Booking.status != BookingStatus.ACTIVE)
