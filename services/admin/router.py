"""
services/admin/router.py
Admin-only endpoints: dashboard stats, booking oversight, profile
administration, and the immutable audit log.

ALL mutations are logged to AdminAuditLog before returning.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.booking.router import to_booking_response
from shared.middleware.auth import require_admin
from shared.models.models import (
    AdminAuditLog,
    Booking,
    BookingStatus,
    PaymentStatus,
    Profile,
    Vehicle,
)
from shared.schemas.schemas import (
    AdminDashboardResponse,
    AdminFlagRequest,
    BookingListResponse,
    ProfileResponse,
)
from shared.utils.audit import log_admin_action
from shared.utils.errors import NotFound

router = APIRouter(prefix="/admin", tags=["Admin"])


# ── Dashboard ─────────────────────────────────────────────────────────────────

@router.get("/dashboard", response_model=AdminDashboardResponse)
async def get_dashboard(
    current_user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Fleet and booking totals. Revenue counts completed payments only."""
    total_vehicles = await db.scalar(select(func.count(Vehicle.id)))
    available_vehicles = await db.scalar(
        select(func.count(Vehicle.id)).where(Vehicle.available.is_(True))
    )
    total_bookings = await db.scalar(select(func.count(Booking.id)))
    active_bookings = await db.scalar(
        select(func.count(Booking.id))
        .where(Booking.status.in_([BookingStatus.CONFIRMED, BookingStatus.ACTIVE]))
    )
    total_users = await db.scalar(select(func.count(Profile.id)))
    total_revenue = await db.scalar(
        select(func.sum(Booking.total_price)).where(Booking.payment_status == PaymentStatus.COMPLETED)
    )

    return AdminDashboardResponse(
        total_vehicles=total_vehicles or 0,
        available_vehicles=available_vehicles or 0,
        total_bookings=total_bookings or 0,
        active_bookings=active_bookings or 0,
        total_users=total_users or 0,
        total_revenue=Decimal(str(total_revenue or 0)),
    )


# ── Booking Oversight ──────────────────────────────────────────────────────────

@router.get("/bookings", response_model=BookingListResponse)
async def list_all_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None),
    user_id: Optional[UUID] = Query(None),
    vehicle_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Admin: view all bookings with status, payment, user, or vehicle filter."""
    query = select(Booking).order_by(Booking.created_at.desc())

    if status_filter:
        query = query.where(Booking.status == status_filter)
    if payment_status:
        query = query.where(Booking.payment_status == payment_status)
    if user_id:
        query = query.where(Booking.user_id == user_id)
    if vehicle_id:
        query = query.where(Booking.vehicle_id == vehicle_id)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))

    now = datetime.now(timezone.utc)
    return BookingListResponse(
        items=[to_booking_response(b, now) for b in result.scalars()],
        total=total or 0,
        page=page,
        page_size=page_size,
    )


# ── Profiles ───────────────────────────────────────────────────────────────────

@router.get("/profiles")
async def list_profiles(
    q: Optional[str] = Query(None, max_length=100, description="Match email or name"),
    admins_only: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(Profile).order_by(Profile.created_at.desc())
    if q:
        pattern = f"%{q.strip()}%"
        query = query.where(or_(Profile.email.ilike(pattern), Profile.full_name.ilike(pattern)))
    if admins_only:
        query = query.where(Profile.is_admin.is_(True))

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))

    return {
        "items": [ProfileResponse.model_validate(p).model_dump(mode="json") for p in result.scalars()],
        "total": total or 0,
        "page": page,
        "page_size": page_size,
    }


@router.put("/profiles/{user_id}/admin", response_model=ProfileResponse)
async def set_admin_flag(
    user_id: UUID,
    data: AdminFlagRequest,
    request: Request,
    current_user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Grant or revoke the stored admin flag. Configured admin emails stay admins regardless."""
    profile = await db.get(Profile, user_id)
    if not profile:
        raise NotFound("Profile not found")

    previous = profile.is_admin
    profile.is_admin = data.is_admin
    log_admin_action(
        db,
        current_user,
        "GRANT_ADMIN" if data.is_admin else "REVOKE_ADMIN",
        "Profile",
        str(user_id),
        {"from": previous, "to": data.is_admin},
        request,
    )
    await db.commit()
    return ProfileResponse.model_validate(profile)


# ── Audit Log ─────────────────────────────────────────────────────────────────

@router.get("/audit-logs")
async def get_audit_logs(
    action: Optional[str] = Query(None, description="Filter by action type e.g. DELETE_VEHICLE"),
    entity_type: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Immutable admin audit log, append-only, never editable."""
    query = (
        select(AdminAuditLog, Profile)
        .join(Profile, Profile.id == AdminAuditLog.admin_id)
        .order_by(AdminAuditLog.created_at.desc())
    )
    if action:
        query = query.where(AdminAuditLog.action == action.upper())
    if entity_type:
        query = query.where(AdminAuditLog.entity_type == entity_type)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))

    return {
        "items": [
            {
                "id": str(log.id),
                "admin_name": admin.full_name,
                "admin_email": admin.email,
                "action": log.action,
                "entity_type": log.entity_type,
                "entity_id": log.entity_id,
                "payload": log.payload,
                "ip_address": log.ip_address,
                "created_at": log.created_at.isoformat(),
            }
            for log, admin in result.all()
        ],
        "total": total or 0,
        "page": page,
        "page_size": page_size,
    }
