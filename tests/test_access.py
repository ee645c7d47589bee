"""
tests/test_access.py
AccessPolicy decisions per entity, independent of HTTP.
"""

import uuid

import pytest
from sqlalchemy import select

from shared.models.models import Booking, Favorite, Profile, Review, Vehicle
from shared.utils.access import AccessPolicy


def _profile(email: str, is_admin: bool = False) -> Profile:
    return Profile(id=uuid.uuid4(), email=email, password_hash="x", is_admin=is_admin)


@pytest.fixture
def policy() -> AccessPolicy:
    return AccessPolicy(["Owner@Example.com"])


@pytest.fixture
def renter() -> Profile:
    return _profile("renter@example.com")


@pytest.fixture
def stranger() -> Profile:
    return _profile("stranger@example.com")


@pytest.fixture
def flagged_admin() -> Profile:
    return _profile("fleet@example.com", is_admin=True)


@pytest.fixture
def email_admin() -> Profile:
    return _profile("owner@example.com")


# ── Capability ─────────────────────────────────────────────────────────────────

def test_admin_by_flag_or_configured_email(policy, renter, flagged_admin, email_admin):
    assert policy.is_admin(flagged_admin)
    assert policy.is_admin(email_admin)
    assert not policy.is_admin(renter)


def test_configured_email_match_is_case_insensitive(policy):
    assert policy.is_admin(_profile("OWNER@example.COM"))


def test_no_configured_admins():
    assert not AccessPolicy().is_admin(_profile("owner@example.com"))


# ── Profile ────────────────────────────────────────────────────────────────────

def test_profile_rules(policy, renter, stranger, flagged_admin):
    assert policy.can_read_profile(renter, renter)
    assert not policy.can_read_profile(stranger, renter)
    assert policy.can_read_profile(flagged_admin, renter)

    assert policy.can_update_profile(renter, renter)
    assert not policy.can_update_profile(flagged_admin, renter)

    assert policy.can_set_admin_flag(flagged_admin)
    assert not policy.can_set_admin_flag(renter)


# ── Vehicle ────────────────────────────────────────────────────────────────────

def test_vehicle_visibility(policy, renter, flagged_admin):
    parked = Vehicle(available=False)
    ready = Vehicle(available=True)

    assert policy.can_read_vehicle(renter, ready)
    assert not policy.can_read_vehicle(renter, parked)
    assert policy.can_read_vehicle(flagged_admin, parked)
    assert not policy.can_write_vehicle(renter)
    assert policy.can_write_vehicle(flagged_admin)


def test_visible_vehicles_query(policy, renter, flagged_admin):
    base = select(Vehicle)
    assert policy.visible_vehicles(flagged_admin, base) is base
    assert "available" in str(policy.visible_vehicles(renter, base))


# ── Booking ────────────────────────────────────────────────────────────────────

def test_booking_rules(policy, renter, stranger, email_admin):
    booking = Booking(user_id=renter.id)

    assert policy.can_read_booking(renter, booking)
    assert policy.can_update_booking(renter, booking)
    assert not policy.can_read_booking(stranger, booking)
    assert not policy.can_update_booking(stranger, booking)
    assert policy.can_read_booking(email_admin, booking)
    assert policy.can_update_booking(email_admin, booking)


def test_visible_bookings_query(policy, renter, flagged_admin):
    base = select(Booking)
    assert policy.visible_bookings(flagged_admin, base) is base
    assert "user_id" in str(policy.visible_bookings(renter, base))


# ── Favorite / Review ──────────────────────────────────────────────────────────

def test_favorite_is_owner_only(policy, renter, flagged_admin):
    favorite = Favorite(user_id=renter.id)
    assert policy.can_manage_favorite(renter, favorite)
    assert not policy.can_manage_favorite(flagged_admin, favorite)


def test_review_rules(policy, renter, stranger, flagged_admin):
    review = Review(user_id=renter.id)

    assert policy.can_read_review(stranger, review)
    assert policy.can_update_review(renter, review)
    assert not policy.can_update_review(flagged_admin, review)
    assert policy.can_delete_review(renter, review)
    assert policy.can_delete_review(flagged_admin, review)
    assert not policy.can_delete_review(stranger, review)
