"""
services/favorite/router.py
Saved vehicles for the current profile.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.favorite import service
from shared.middleware.auth import get_current_user
from shared.models.models import Profile
from shared.schemas.schemas import (
    FavoriteResponse,
    FavoriteToggleResponse,
    MessageResponse,
    VehicleResponse,
)
from shared.utils.access import AccessPolicy, get_access_policy

router = APIRouter(prefix="/favorites", tags=["Favorites"])


@router.get("", response_model=List[FavoriteResponse])
async def list_favorites(
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    rows = await service.list_favorites(db, current_user, policy)
    return [
        FavoriteResponse(
            id=favorite.id,
            vehicle_id=favorite.vehicle_id,
            created_at=favorite.created_at,
            vehicle=VehicleResponse.model_validate(vehicle) if vehicle else None,
        )
        for favorite, vehicle in rows
    ]


@router.post("/{vehicle_id}", response_model=FavoriteResponse, status_code=status.HTTP_201_CREATED)
async def add_favorite(
    vehicle_id: UUID,
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    """Idempotent: favoriting twice returns the existing entry."""
    favorite = await service.add_favorite(db, current_user, vehicle_id, policy)
    return FavoriteResponse(id=favorite.id, vehicle_id=favorite.vehicle_id, created_at=favorite.created_at)


@router.delete("/{vehicle_id}", response_model=MessageResponse)
async def remove_favorite(
    vehicle_id: UUID,
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    await service.remove_favorite(db, current_user, vehicle_id, policy)
    return MessageResponse(message="Removed from favorites")


@router.post("/{vehicle_id}/toggle", response_model=FavoriteToggleResponse)
async def toggle_favorite(
    vehicle_id: UUID,
    current_user: Profile = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    favorited = await service.toggle_favorite(db, current_user, vehicle_id, policy)
    return FavoriteToggleResponse(vehicle_id=vehicle_id, favorited=favorited)
