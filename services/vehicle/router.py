"""
services/vehicle/router.py
Vehicle catalogue: search, featured, detail, rating, reviews, and
admin-only create/update/delete.

Non-admins only ever see vehicles marked available; an unavailable
vehicle looks like a missing one to them.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.review import service as review_service
from shared.middleware.auth import get_current_user, require_admin
from shared.models.models import Profile, Vehicle
from shared.schemas.schemas import (
    MessageResponse,
    ReviewResponse,
    VehicleCreateRequest,
    VehicleListResponse,
    VehicleRatingResponse,
    VehicleResponse,
    VehicleUpdateRequest,
)
from shared.utils.access import AccessPolicy, get_access_policy
from shared.utils.audit import log_admin_action
from shared.utils.errors import NotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


# ── Helpers ───────────────────────────────────────────────────

async def _get_visible_vehicle_or_404(
    vehicle_id: UUID, actor: Profile, policy: AccessPolicy, db: AsyncSession
) -> Vehicle:
    vehicle = await db.get(Vehicle, vehicle_id)
    if not vehicle or not policy.can_read_vehicle(actor, vehicle):
        raise NotFound("Vehicle not found")
    return vehicle


def _search_clause(q: str):
    pattern = f"%{q.strip()}%"
    return or_(
        Vehicle.name.ilike(pattern),
        Vehicle.brand.ilike(pattern),
        Vehicle.model.ilike(pattern),
        Vehicle.location.ilike(pattern),
        Vehicle.type.ilike(pattern),
    )


# ── Catalogue ─────────────────────────────────────────────────

@router.get("", response_model=VehicleListResponse)
async def list_vehicles(
    q: Optional[str] = Query(None, max_length=100, description="Search name, brand, model, location or type"),
    vehicle_type: Optional[str] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    """Vehicles visible to the caller, best rated first."""
    query = policy.visible_vehicles(current_user, select(Vehicle))
    if q and q.strip():
        query = query.where(_search_clause(q))
    if vehicle_type and vehicle_type.lower() != "all":
        query = query.where(func.lower(Vehicle.type) == vehicle_type.lower())

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(Vehicle.rating.desc(), Vehicle.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return VehicleListResponse(
        items=[VehicleResponse.model_validate(v) for v in result.scalars()],
        total=total or 0,
    )


@router.get("/featured", response_model=List[VehicleResponse])
async def featured_vehicles(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Top-rated available vehicles for the home screen."""
    result = await db.execute(
        select(Vehicle)
        .where(Vehicle.available.is_(True))
        .order_by(Vehicle.rating.desc(), Vehicle.total_reviews.desc())
        .limit(settings.FEATURED_VEHICLES_COUNT)
    )
    return [VehicleResponse.model_validate(v) for v in result.scalars()]


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: UUID,
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    vehicle = await _get_visible_vehicle_or_404(vehicle_id, current_user, policy, db)
    return VehicleResponse.model_validate(vehicle)


@router.get("/{vehicle_id}/rating", response_model=VehicleRatingResponse)
async def get_vehicle_rating(
    vehicle_id: UUID,
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    await _get_visible_vehicle_or_404(vehicle_id, current_user, policy, db)
    rating, count = await review_service.get_vehicle_rating(db, vehicle_id)
    return VehicleRatingResponse(vehicle_id=vehicle_id, rating=rating, total_reviews=count)


@router.get("/{vehicle_id}/reviews", response_model=List[ReviewResponse])
async def get_vehicle_reviews(
    vehicle_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    await _get_visible_vehicle_or_404(vehicle_id, current_user, policy, db)
    reviews = await review_service.list_vehicle_reviews(
        db, vehicle_id, limit=page_size, offset=(page - 1) * page_size
    )
    return [ReviewResponse.model_validate(r) for r in reviews]


# ── Admin ─────────────────────────────────────────────────────

@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    data: VehicleCreateRequest,
    request: Request,
    current_user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    vehicle = Vehicle(**data.model_dump())
    db.add(vehicle)
    await db.flush()

    log_admin_action(db, current_user, "CREATE_VEHICLE", "Vehicle", str(vehicle.id), {"name": vehicle.name}, request)
    await db.commit()

    logger.info("Vehicle %s created by %s", vehicle.id, current_user.id)
    return VehicleResponse.model_validate(vehicle)


@router.put("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: UUID,
    data: VehicleUpdateRequest,
    request: Request,
    current_user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Only fields present in the body are changed. Rating fields are not writable."""
    vehicle = await db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise NotFound("Vehicle not found")

    updates = data.model_dump(exclude_unset=True)
    for field, value in updates.items():
        setattr(vehicle, field, value)

    log_admin_action(
        db, current_user, "UPDATE_VEHICLE", "Vehicle", str(vehicle.id),
        {"fields": sorted(updates)}, request,
    )
    await db.commit()
    return VehicleResponse.model_validate(vehicle)


@router.delete("/{vehicle_id}", response_model=MessageResponse)
async def delete_vehicle(
    vehicle_id: UUID,
    request: Request,
    current_user: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Removes the vehicle with its bookings, favorites and reviews."""
    vehicle = await db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise NotFound("Vehicle not found")

    log_admin_action(db, current_user, "DELETE_VEHICLE", "Vehicle", str(vehicle.id), {"name": vehicle.name}, request)
    await db.delete(vehicle)
    await db.commit()

    logger.info("Vehicle %s deleted by %s", vehicle_id, current_user.id)
    return MessageResponse(message="Vehicle deleted successfully")
