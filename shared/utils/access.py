"""
shared/utils/access.py
Row-level access rules for every entity, built on one admin predicate.

The policy is resolved once from settings and injected into routes with
``Depends(get_access_policy)`` so tests can swap the admin list.
"""

from typing import FrozenSet, Iterable

from sqlalchemy import Select

from config.settings import settings
from shared.models.models import Booking, Favorite, Profile, Review, Vehicle


class AccessPolicy:
    """Read/write decisions per identity. ``actor`` is always a Profile."""

    def __init__(self, admin_emails: Iterable[str] = ()):
        self.admin_emails: FrozenSet[str] = frozenset(e.lower() for e in admin_emails)

    # ── Capability ────────────────────────────────────────────
    def is_admin(self, actor: Profile) -> bool:
        return bool(actor.is_admin) or actor.email.lower() in self.admin_emails

    # ── Profile ───────────────────────────────────────────────
    def can_read_profile(self, actor: Profile, profile: Profile) -> bool:
        return actor.id == profile.id or self.is_admin(actor)

    def can_update_profile(self, actor: Profile, profile: Profile) -> bool:
        return actor.id == profile.id

    def can_set_admin_flag(self, actor: Profile) -> bool:
        return self.is_admin(actor)

    # ── Vehicle ───────────────────────────────────────────────
    def can_read_vehicle(self, actor: Profile, vehicle: Vehicle) -> bool:
        return bool(vehicle.available) or self.is_admin(actor)

    def can_write_vehicle(self, actor: Profile) -> bool:
        return self.is_admin(actor)

    def visible_vehicles(self, actor: Profile, query: Select) -> Select:
        if self.is_admin(actor):
            return query
        return query.where(Vehicle.available.is_(True))

    # ── Booking ───────────────────────────────────────────────
    def can_read_booking(self, actor: Profile, booking: Booking) -> bool:
        return booking.user_id == actor.id or self.is_admin(actor)

    def can_update_booking(self, actor: Profile, booking: Booking) -> bool:
        return booking.user_id == actor.id or self.is_admin(actor)

    def visible_bookings(self, actor: Profile, query: Select) -> Select:
        if self.is_admin(actor):
            return query
        return query.where(Booking.user_id == actor.id)

    # ── Favorite ──────────────────────────────────────────────
    def can_manage_favorite(self, actor: Profile, favorite: Favorite) -> bool:
        return favorite.user_id == actor.id

    # ── Review ────────────────────────────────────────────────
    def can_read_review(self, actor: Profile, review: Review) -> bool:
        return True

    def can_update_review(self, actor: Profile, review: Review) -> bool:
        return review.user_id == actor.id

    def can_delete_review(self, actor: Profile, review: Review) -> bool:
        return review.user_id == actor.id or self.is_admin(actor)


def get_access_policy() -> AccessPolicy:
    """FastAPI dependency: the policy configured by ADMIN_EMAILS."""
    return AccessPolicy(settings.admin_email_set)
