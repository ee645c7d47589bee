"""
services/favorite/service.py
A profile's saved vehicles. Adding is idempotent; toggling flips membership.
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Favorite, Profile, Vehicle
from shared.utils.access import AccessPolicy
from shared.utils.errors import NotFound

logger = logging.getLogger(__name__)


async def _get_favorite(db: AsyncSession, user_id: UUID, vehicle_id: UUID) -> Optional[Favorite]:
    result = await db.execute(
        select(Favorite).where(Favorite.user_id == user_id, Favorite.vehicle_id == vehicle_id)
    )
    return result.scalar_one_or_none()


async def _require_visible_vehicle(
    db: AsyncSession, requester: Profile, vehicle_id: UUID, policy: AccessPolicy
) -> Vehicle:
    vehicle = await db.get(Vehicle, vehicle_id)
    if not vehicle or not policy.can_read_vehicle(requester, vehicle):
        raise NotFound("Vehicle not found")
    return vehicle


async def _insert_favorite(db: AsyncSession, user_id: UUID, vehicle_id: UUID) -> Favorite:
    """
    Insert the (user, vehicle) row. A concurrent request may insert it first;
    the unique constraint then fires and the winner's row is returned.
    """
    favorite = Favorite(user_id=user_id, vehicle_id=vehicle_id)
    db.add(favorite)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        logger.info("Favorite for vehicle %s already added concurrently", vehicle_id)
        existing = await _get_favorite(db, user_id, vehicle_id)
        if existing is None:
            raise
        return existing
    await db.commit()
    return favorite


async def list_favorites(
    db: AsyncSession, requester: Profile, policy: AccessPolicy
) -> List[Tuple[Favorite, Optional[Vehicle]]]:
    """
    The requester's favorites, newest first, each paired with its vehicle
    when the requester may still see it (None once it became unavailable).
    """
    result = await db.execute(
        select(Favorite, Vehicle)
        .join(Vehicle, Vehicle.id == Favorite.vehicle_id)
        .where(Favorite.user_id == requester.id)
        .order_by(Favorite.created_at.desc())
    )
    return [
        (favorite, vehicle if policy.can_read_vehicle(requester, vehicle) else None)
        for favorite, vehicle in result.all()
    ]


async def add_favorite(
    db: AsyncSession, requester: Profile, vehicle_id: UUID, policy: AccessPolicy
) -> Favorite:
    user_id = requester.id
    await _require_visible_vehicle(db, requester, vehicle_id, policy)

    favorite = await _get_favorite(db, user_id, vehicle_id)
    if favorite:
        return favorite
    return await _insert_favorite(db, user_id, vehicle_id)


async def remove_favorite(
    db: AsyncSession, requester: Profile, vehicle_id: UUID, policy: AccessPolicy
) -> None:
    favorite = await _get_favorite(db, requester.id, vehicle_id)
    if not favorite or not policy.can_manage_favorite(requester, favorite):
        raise NotFound("Favorite not found")
    await db.delete(favorite)
    await db.commit()


async def toggle_favorite(
    db: AsyncSession, requester: Profile, vehicle_id: UUID, policy: AccessPolicy
) -> bool:
    """Returns True if the vehicle is now a favorite."""
    user_id = requester.id
    favorite = await _get_favorite(db, user_id, vehicle_id)
    if favorite:
        await db.delete(favorite)
        await db.commit()
        return False

    await _require_visible_vehicle(db, requester, vehicle_id, policy)
    await _insert_favorite(db, user_id, vehicle_id)
    return True
