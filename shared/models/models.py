"""
shared/models/models.py
All SQLAlchemy ORM models for the Vehicle Rentals platform.
UUID primary keys throughout; column types stay portable across
PostgreSQL (production) and SQLite (tests).
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from config.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


# ── Enumerations ──────────────────────────────────────────────

class BookingStatus(str, PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


# ── Mixins ────────────────────────────────────────────────────

class TimestampMixin:
    """Adds created_at and updated_at to any model."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
        nullable=False,
    )


# ── Models ────────────────────────────────────────────────────

class Profile(TimestampMixin, Base):
    """Identity record. One per authenticated account, created on sign-up."""
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    bookings: Mapped[List["Booking"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    favorites: Mapped[List["Favorite"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    reviews: Mapped[List["Review"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Profile {self.email} (admin={self.is_admin})>"


class Vehicle(TimestampMixin, Base):
    """
    Rentable asset. ``rating`` and ``total_reviews`` are derived from the
    vehicle's reviews and only ever written by the rating aggregator.
    """
    __tablename__ = "vehicles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    brand: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_day: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    passenger_capacity: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    fuel_type: Mapped[str] = mapped_column(String(50), default="Gasoline", nullable=False)
    transmission: Mapped[str] = mapped_column(String(50), default="Automatic", nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    features: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 6), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 6), nullable=True)
    available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Rating (denormalized, maintained by the review aggregator)
    rating: Mapped[Decimal] = mapped_column(Numeric(5, 4), default=Decimal("0"), nullable=False)
    total_reviews: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Fleet details
    mileage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    license_plate: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    vin: Mapped[Optional[str]] = mapped_column(String(17), nullable=True)
    insurance_policy: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_maintenance: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    bookings: Mapped[List["Booking"]] = relationship(
        back_populates="vehicle", cascade="all, delete-orphan", passive_deletes=True
    )
    favorites: Mapped[List["Favorite"]] = relationship(
        back_populates="vehicle", cascade="all, delete-orphan", passive_deletes=True
    )
    reviews: Mapped[List["Review"]] = relationship(
        back_populates="vehicle", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_vehicle_rating_range"),
        CheckConstraint("price_per_day >= 0", name="ck_vehicle_price_non_negative"),
        Index("ix_vehicles_available", "available"),
        Index("ix_vehicles_type", "type"),
        Index("ix_vehicles_location", "location"),
    )

    def __repr__(self) -> str:
        return f"<Vehicle {self.name} ({self.type})>"


class Booking(TimestampMixin, Base):
    """
    Reservation of one vehicle by one profile over [start_date, end_date).
    Status and payment status are free-form within their enums: any value
    may follow any other.
    """
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
    )

    # Schedule
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    pickup_location: Mapped[str] = mapped_column(Text, nullable=False)
    dropoff_location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Status
    status: Mapped[BookingStatus] = mapped_column(
        Enum(
            BookingStatus,
            name="booking_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(
            PaymentStatus,
            name="payment_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    # Pricing
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    special_requests: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Operations (pickup / dropoff inspection)
    driver_license: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    insurance_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    actual_pickup_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    actual_dropoff_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    damage_report: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    fuel_level_pickup: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    fuel_level_dropoff: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    mileage_start: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mileage_end: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Relationships
    user: Mapped["Profile"] = relationship(back_populates="bookings")
    vehicle: Mapped["Vehicle"] = relationship(back_populates="bookings")
    reviews: Mapped[List["Review"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", passive_deletes=True
    )
    audit_logs: Mapped[List["BookingAuditLog"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_booking_valid_dates"),
        CheckConstraint("total_price >= 0", name="ck_booking_price_non_negative"),
        CheckConstraint(
            "fuel_level_pickup IS NULL OR (fuel_level_pickup >= 0 AND fuel_level_pickup <= 100)",
            name="ck_booking_fuel_pickup_range",
        ),
        CheckConstraint(
            "fuel_level_dropoff IS NULL OR (fuel_level_dropoff >= 0 AND fuel_level_dropoff <= 100)",
            name="ck_booking_fuel_dropoff_range",
        ),
        Index("ix_bookings_user_id", "user_id"),
        Index("ix_bookings_vehicle_id", "vehicle_id"),
        Index("ix_bookings_status", "status"),
        Index("ix_bookings_dates", "start_date", "end_date"),
    )


class BookingAuditLog(Base):
    """Immutable log of all booking status and payment status transitions."""
    __tablename__ = "booking_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    field: Mapped[str] = mapped_column(String(30), nullable=False)  # "status" | "payment_status"
    from_value: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    to_value: Mapped[str] = mapped_column(String(30), nullable=False)
    changed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    booking: Mapped["Booking"] = relationship(back_populates="audit_logs")

    __table_args__ = (Index("ix_booking_audit_booking_id", "booking_id"),)


class Favorite(Base):
    """A profile's saved vehicle. At most one row per (user, vehicle)."""
    __tablename__ = "favorites"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    user: Mapped["Profile"] = relationship(back_populates="favorites")
    vehicle: Mapped["Vehicle"] = relationship(back_populates="favorites")

    __table_args__ = (
        UniqueConstraint("user_id", "vehicle_id", name="uq_favorite_user_vehicle"),
    )


class Review(Base):
    """Post-rental review. One per (user, booking), enforced by unique constraint."""
    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
    )
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    user: Mapped["Profile"] = relationship(back_populates="reviews")
    vehicle: Mapped["Vehicle"] = relationship(back_populates="reviews")
    booking: Mapped["Booking"] = relationship(back_populates="reviews")

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
        UniqueConstraint("user_id", "booking_id", name="uq_review_user_booking"),
        Index("ix_reviews_vehicle_id", "vehicle_id"),
    )


class AdminAuditLog(Base):
    """Immutable log of all admin actions."""
    __tablename__ = "admin_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    admin_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_audit_admin_id", "admin_id"),
        Index("ix_admin_audit_created_at", "created_at"),
    )
