"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the platform.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


def _reject_nulls(schema: BaseModel, fields: frozenset) -> None:
    """Explicit nulls are only allowed for optional columns on partial updates."""
    nulled = sorted(f for f in schema.model_fields_set & fields if getattr(schema, f) is None)
    if nulled:
        raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")


# ── Auth ──────────────────────────────────────────────────────

class SignUpRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    full_name: str = Field(..., min_length=1, max_length=255)


class LoginRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: "ProfileResponse"


# ── Profile ───────────────────────────────────────────────────

class ProfileResponse(BaseSchema):
    id: uuid.UUID
    email: EmailStr
    full_name: Optional[str]
    avatar_url: Optional[str]
    phone: Optional[str]
    date_of_birth: Optional[date]
    is_admin: bool
    created_at: datetime


class ProfileUpdateRequest(BaseSchema):
    """Self-service profile fields. ``is_admin`` is deliberately absent."""
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    avatar_url: Optional[str] = Field(None, max_length=2000)
    phone: Optional[str] = Field(None, pattern=r"^\+?[1-9]\d{6,14}$")
    date_of_birth: Optional[date] = None


class AdminFlagRequest(BaseSchema):
    is_admin: bool


# ── Vehicle ───────────────────────────────────────────────────

def _dedupe_features(features: List[str]) -> List[str]:
    # Features are a set; keep first occurrence order for display
    seen: List[str] = []
    for feature in (f.strip() for f in features):
        if feature and feature not in seen:
            seen.append(feature)
    return seen


class VehicleBase(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., min_length=1, max_length=50)
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    year: int = Field(..., ge=1900, le=2100)
    price_per_day: Decimal = Field(..., ge=0)
    passenger_capacity: int = Field(4, ge=1, le=100)
    fuel_type: str = Field("Gasoline", max_length=50)
    transmission: str = Field("Automatic", max_length=50)
    image_url: Optional[str] = None
    description: Optional[str] = Field(None, max_length=5000)
    features: List[str] = Field(default_factory=list)
    location: str = Field(..., min_length=1, max_length=255)
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    available: bool = True
    mileage: int = Field(0, ge=0)
    license_plate: Optional[str] = Field(None, max_length=20)
    vin: Optional[str] = Field(None, max_length=17)
    insurance_policy: Optional[str] = Field(None, max_length=100)
    last_maintenance: Optional[date] = None

    @field_validator("features")
    @classmethod
    def dedupe_features(cls, v: List[str]) -> List[str]:
        return _dedupe_features(v)


class VehicleCreateRequest(VehicleBase):
    pass


class VehicleUpdateRequest(BaseSchema):
    """Partial update. Rating fields are derived and never accepted here."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = Field(None, min_length=1, max_length=50)
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    year: Optional[int] = Field(None, ge=1900, le=2100)
    price_per_day: Optional[Decimal] = Field(None, ge=0)
    passenger_capacity: Optional[int] = Field(None, ge=1, le=100)
    fuel_type: Optional[str] = Field(None, max_length=50)
    transmission: Optional[str] = Field(None, max_length=50)
    image_url: Optional[str] = None
    description: Optional[str] = Field(None, max_length=5000)
    features: Optional[List[str]] = None
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    available: Optional[bool] = None
    mileage: Optional[int] = Field(None, ge=0)
    license_plate: Optional[str] = Field(None, max_length=20)
    vin: Optional[str] = Field(None, max_length=17)
    insurance_policy: Optional[str] = Field(None, max_length=100)
    last_maintenance: Optional[date] = None

    @field_validator("features")
    @classmethod
    def dedupe_features(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return _dedupe_features(v)

    @model_validator(mode="after")
    def reject_required_nulls(self):
        _reject_nulls(self, frozenset({
            "name", "type", "brand", "model", "year", "price_per_day", "passenger_capacity",
            "fuel_type", "transmission", "features", "location", "available", "mileage",
        }))
        return self


class VehicleResponse(VehicleBase):
    id: uuid.UUID
    rating: float
    total_reviews: int
    created_at: datetime


class VehicleRatingResponse(BaseSchema):
    vehicle_id: uuid.UUID
    rating: float
    total_reviews: int


class VehicleListResponse(BaseSchema):
    items: List[VehicleResponse]
    total: int


# ── Booking ───────────────────────────────────────────────────

class BookingCreateRequest(BaseSchema):
    vehicle_id: uuid.UUID
    start_date: datetime
    end_date: datetime
    pickup_location: str = Field(..., min_length=1, max_length=500)
    dropoff_location: Optional[str] = Field(None, max_length=500)
    total_price: Optional[Decimal] = Field(None, ge=0)
    payment_method: Optional[str] = Field(None, max_length=50)
    special_requests: Optional[str] = Field(None, max_length=1000)
    driver_license: Optional[str] = Field(None, max_length=50)


class BookingStatusUpdateRequest(BaseSchema):
    status: Optional[str] = Field(None, pattern="^(pending|confirmed|active|completed|cancelled)$")
    payment_status: Optional[str] = Field(None, pattern="^(pending|completed|failed|refunded)$")

    @model_validator(mode="after")
    def require_one_field(self):
        if self.status is None and self.payment_status is None:
            raise ValueError("Provide status and/or payment_status")
        return self


class BookingOperationsUpdateRequest(BaseSchema):
    insurance_verified: Optional[bool] = None
    actual_pickup_time: Optional[datetime] = None
    actual_dropoff_time: Optional[datetime] = None
    damage_report: Optional[str] = Field(None, max_length=5000)
    fuel_level_pickup: Optional[int] = Field(None, ge=0, le=100)
    fuel_level_dropoff: Optional[int] = Field(None, ge=0, le=100)
    mileage_start: Optional[int] = Field(None, ge=0)
    mileage_end: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def reject_required_nulls(self):
        _reject_nulls(self, frozenset({"insurance_verified"}))
        return self


class BookingResponse(BaseSchema):
    id: uuid.UUID
    user_id: uuid.UUID
    vehicle_id: uuid.UUID
    start_date: datetime
    end_date: datetime
    pickup_location: str
    dropoff_location: Optional[str]
    total_price: Decimal
    status: str
    payment_status: str
    payment_method: Optional[str]
    special_requests: Optional[str]
    driver_license: Optional[str]
    insurance_verified: bool
    actual_pickup_time: Optional[datetime]
    actual_dropoff_time: Optional[datetime]
    damage_report: Optional[str]
    fuel_level_pickup: Optional[int]
    fuel_level_dropoff: Optional[int]
    mileage_start: Optional[int]
    mileage_end: Optional[int]
    created_at: datetime
    # Derived on read
    timeframe: str


class BookingListResponse(BaseSchema):
    items: List[BookingResponse]
    total: int
    page: int
    page_size: int


# ── Favorite ──────────────────────────────────────────────────

class FavoriteResponse(BaseSchema):
    id: uuid.UUID
    vehicle_id: uuid.UUID
    created_at: datetime
    vehicle: Optional[VehicleResponse] = None


class FavoriteToggleResponse(BaseSchema):
    vehicle_id: uuid.UUID
    favorited: bool


# ── Review ────────────────────────────────────────────────────

class ReviewCreateRequest(BaseSchema):
    vehicle_id: uuid.UUID
    booking_id: uuid.UUID
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewUpdateRequest(BaseSchema):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewResponse(BaseSchema):
    id: uuid.UUID
    user_id: uuid.UUID
    vehicle_id: uuid.UUID
    booking_id: uuid.UUID
    rating: int
    comment: Optional[str]
    created_at: datetime


# ── Admin ─────────────────────────────────────────────────────

class AdminDashboardResponse(BaseSchema):
    total_vehicles: int
    available_vehicles: int
    total_bookings: int
    active_bookings: int
    total_users: int
    total_revenue: Decimal


# ── Generic ───────────────────────────────────────────────────

class MessageResponse(BaseSchema):
    message: str
    success: bool = True


TokenResponse.model_rebuild()
