"""
tests/test_favorites.py
Tests for saved vehicles: idempotent add, remove, toggle, and listing.
"""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from services.favorite import service as favorite_service
from shared.models.models import Favorite, Profile, Vehicle
from tests.conftest import auth_headers


@pytest.mark.asyncio
async def test_add_and_list_favorite(client: AsyncClient, user: Profile, vehicle: Vehicle):
    response = await client.post(f"/favorites/{vehicle.id}", headers=auth_headers(user))
    assert response.status_code == 201

    listing = await client.get("/favorites", headers=auth_headers(user))
    assert listing.status_code == 200
    data = listing.json()
    assert len(data) == 1
    assert data[0]["vehicle_id"] == str(vehicle.id)
    assert data[0]["vehicle"]["name"] == vehicle.name


@pytest.mark.asyncio
async def test_add_same_favorite_twice_is_idempotent(
    client: AsyncClient, user: Profile, vehicle: Vehicle, db: AsyncSession
):
    first = await client.post(f"/favorites/{vehicle.id}", headers=auth_headers(user))
    second = await client.post(f"/favorites/{vehicle.id}", headers=auth_headers(user))
    assert second.status_code == 201
    assert first.json()["id"] == second.json()["id"]

    rows = (await db.execute(select(Favorite).where(Favorite.user_id == user.id))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_add_favorite_unknown_vehicle(client: AsyncClient, user: Profile):
    response = await client.post(f"/favorites/{uuid.uuid4()}", headers=auth_headers(user))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_remove_favorite(client: AsyncClient, user: Profile, vehicle: Vehicle):
    await client.post(f"/favorites/{vehicle.id}", headers=auth_headers(user))

    response = await client.delete(f"/favorites/{vehicle.id}", headers=auth_headers(user))
    assert response.status_code == 200

    listing = await client.get("/favorites", headers=auth_headers(user))
    assert listing.json() == []


@pytest.mark.asyncio
async def test_remove_missing_favorite_returns_404(client: AsyncClient, user: Profile, vehicle: Vehicle):
    response = await client.delete(f"/favorites/{vehicle.id}", headers=auth_headers(user))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_toggle_favorite(client: AsyncClient, user: Profile, vehicle: Vehicle):
    on = await client.post(f"/favorites/{vehicle.id}/toggle", headers=auth_headers(user))
    assert on.json() == {"vehicle_id": str(vehicle.id), "favorited": True}

    off = await client.post(f"/favorites/{vehicle.id}/toggle", headers=auth_headers(user))
    assert off.json()["favorited"] is False


@pytest.mark.asyncio
async def test_favorites_are_private(
    client: AsyncClient, user: Profile, other_user: Profile, vehicle: Vehicle
):
    await client.post(f"/favorites/{vehicle.id}", headers=auth_headers(user))

    listing = await client.get("/favorites", headers=auth_headers(other_user))
    assert listing.json() == []

    # Removing is scoped to the caller's own favorites
    response = await client.delete(f"/favorites/{vehicle.id}", headers=auth_headers(other_user))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_favorite_of_unavailable_vehicle_hides_details(
    client: AsyncClient, user: Profile, admin_user: Profile, vehicle: Vehicle
):
    await client.post(f"/favorites/{vehicle.id}", headers=auth_headers(user))
    await client.put(f"/vehicles/{vehicle.id}", headers=auth_headers(admin_user), json={"available": False})

    listing = await client.get("/favorites", headers=auth_headers(user))
    data = listing.json()
    assert data[0]["vehicle_id"] == str(vehicle.id)
    assert data[0]["vehicle"] is None


@pytest.mark.asyncio
async def test_cannot_favorite_unavailable_vehicle(
    client: AsyncClient, user: Profile, unavailable_vehicle: Vehicle
):
    response = await client.post(f"/favorites/{unavailable_vehicle.id}", headers=auth_headers(user))
    assert response.status_code == 404


# ── Concurrent adds ────────────────────────────────────────────────────────────

def _miss_first_lookup(monkeypatch):
    """Make the first existence check miss, as if another request inserted the row just after it."""
    original = favorite_service._get_favorite
    calls = []

    async def _lookup(db, user_id, vehicle_id):
        calls.append(vehicle_id)
        if len(calls) == 1:
            return None
        return await original(db, user_id, vehicle_id)

    monkeypatch.setattr(favorite_service, "_get_favorite", _lookup)


@pytest.mark.asyncio
async def test_add_favorite_losing_insert_race_returns_existing(
    client: AsyncClient, user: Profile, vehicle: Vehicle, db: AsyncSession, monkeypatch
):
    existing = Favorite(user_id=user.id, vehicle_id=vehicle.id)
    db.add(existing)
    await db.commit()
    _miss_first_lookup(monkeypatch)

    response = await client.post(f"/favorites/{vehicle.id}", headers=auth_headers(user))
    assert response.status_code == 201
    assert response.json()["id"] == str(existing.id)

    rows = (await db.execute(select(Favorite.id).where(Favorite.user_id == user.id))).scalars().all()
    assert rows == [existing.id]


@pytest.mark.asyncio
async def test_toggle_losing_insert_race_reports_favorited(
    client: AsyncClient, user: Profile, vehicle: Vehicle, db: AsyncSession, monkeypatch
):
    db.add(Favorite(user_id=user.id, vehicle_id=vehicle.id))
    await db.commit()
    _miss_first_lookup(monkeypatch)

    response = await client.post(f"/favorites/{vehicle.id}/toggle", headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["favorited"] is True
