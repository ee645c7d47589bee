"""
services/booking/router.py
Booking endpoints: create, list (upcoming/past), detail, status and
operational updates. Rules live in services/booking/service.py.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.booking import service
from shared.middleware.auth import get_current_user
from shared.models.models import Booking, BookingStatus, PaymentStatus, Profile
from shared.schemas.schemas import (
    BookingCreateRequest,
    BookingListResponse,
    BookingOperationsUpdateRequest,
    BookingResponse,
    BookingStatusUpdateRequest,
)
from shared.utils.access import AccessPolicy, get_access_policy
from shared.utils.booking_rules import Timeframe, classify

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def to_booking_response(booking: Booking, now: Optional[datetime] = None) -> BookingResponse:
    data = {col.name: getattr(booking, col.name) for col in Booking.__table__.columns}
    data["status"] = BookingStatus(booking.status).value
    data["payment_status"] = PaymentStatus(booking.payment_status).value
    data["timeframe"] = classify(booking.start_date, booking.status, now).value
    return BookingResponse(**data)


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreateRequest,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await service.create_booking(db, current_user, **data.model_dump())
    return to_booking_response(booking)


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    timeframe: Optional[Timeframe] = Query(None),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    mine: bool = Query(False, description="Admins: only your own bookings"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    now = datetime.now(timezone.utc)
    items, total = await service.list_bookings(
        db,
        current_user,
        policy,
        timeframe=timeframe,
        status=status_filter,
        mine=mine,
        page=page,
        page_size=page_size,
        now=now,
    )
    return BookingListResponse(
        items=[to_booking_response(b, now) for b in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    booking = await service.get_booking(db, current_user, booking_id, policy)
    return to_booking_response(booking)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: UUID,
    data: BookingStatusUpdateRequest,
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    """Owner or admin. Any status may follow any other."""
    booking = await service.update_booking_status(
        db,
        current_user,
        booking_id,
        policy,
        status=data.status,
        payment_status=data.payment_status,
    )
    return to_booking_response(booking)


@router.patch("/{booking_id}/operations", response_model=BookingResponse)
async def update_booking_operations(
    booking_id: UUID,
    data: BookingOperationsUpdateRequest,
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    booking = await service.update_booking_operations(
        db, current_user, booking_id, policy, data.model_dump(exclude_unset=True)
    )
    return to_booking_response(booking)
