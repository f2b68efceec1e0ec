"""Pydantic v2 request/response schemas for property endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stayfinder.schemas.auth import UserSummary

PropertyType = Literal["apartment", "house", "condo", "villa", "cabin", "cottage", "hotel", "other"]
PricePeriod = Literal["night", "week", "month"]

# ---------------------------------------------------------------------------
# Nested value objects
# ---------------------------------------------------------------------------


class Address(BaseModel):
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)


class GeoPoint(BaseModel):
    """GeoJSON point. ``coordinates`` is ``[longitude, latitude]``."""

    type: Literal["Point"] = "Point"
    coordinates: list[float] = Field(..., min_length=2, max_length=2)

    @field_validator("coordinates")
    @classmethod
    def check_ranges(cls, value: list[float]) -> list[float]:
        lng, lat = value
        if not -180 <= lng <= 180:
            raise ValueError("Longitude must be between -180 and 180")
        if not -90 <= lat <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        return value


class PropertyImage(BaseModel):
    url: str = Field(..., min_length=1, max_length=1024)
    caption: str = ""


class AdditionalRule(BaseModel):
    title: str = ""
    description: str = ""


class HouseRules(BaseModel):
    check_in: str = "3:00 PM"
    check_out: str = "11:00 AM"
    smoking: bool = False
    pets: bool = False
    parties: bool = False
    events: bool = False
    quiet_hours: str = "10:00 PM - 7:00 AM"
    additional_rules: list[AdditionalRule] = []


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PropertyCreate(BaseModel):
    """Schema for creating a new listing."""

    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=20, max_length=2000)
    property_type: PropertyType
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    price_period: PricePeriod = "night"
    bedrooms: int = Field(..., ge=0)
    bathrooms: int = Field(..., ge=0)
    max_guests: int = Field(..., ge=1)
    address: Address
    location: GeoPoint
    amenities: list[str] = []
    images: list[PropertyImage] = Field(..., min_length=1)
    rules: HouseRules = Field(default_factory=HouseRules)
    is_available: bool = True


class PropertyUpdate(BaseModel):
    """Schema for partially updating a listing. All fields optional."""

    title: str | None = Field(None, min_length=5, max_length=100)
    description: str | None = Field(None, min_length=20, max_length=2000)
    property_type: PropertyType | None = None
    price: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    price_period: PricePeriod | None = None
    bedrooms: int | None = Field(None, ge=0)
    bathrooms: int | None = Field(None, ge=0)
    max_guests: int | None = Field(None, ge=1)
    address: Address | None = None
    location: GeoPoint | None = None
    amenities: list[str] | None = None
    images: list[PropertyImage] | None = Field(None, min_length=1)
    rules: HouseRules | None = None
    is_available: bool | None = None

    @model_validator(mode="after")
    def reject_nulls(self) -> "PropertyUpdate":
        """Omitted fields are left alone; an explicit null cannot clear a required one."""
        nulls = sorted(name for name in self.model_fields_set if getattr(self, name) is None)
        if nulls:
            raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")
        return self


class PropertyApproval(BaseModel):
    is_approved: bool = True
    rejection_reason: str | None = Field(None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PropertyResponse(BaseModel):
    """Listing as returned from the API."""

    id: uuid.UUID
    host_id: uuid.UUID
    title: str
    description: str
    property_type: str
    price: Decimal
    price_period: str
    bedrooms: int
    bathrooms: int
    max_guests: int
    address: Address
    location: GeoPoint | None = None
    amenities: list[str]
    images: list[PropertyImage]
    rules: HouseRules
    is_available: bool
    is_approved: bool
    rejection_reason: str | None = None
    avg_rating: float
    review_count: int
    featured_until: datetime | None = None
    host: UserSummary | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NearbyPropertyResponse(PropertyResponse):
    distance_km: float


class PropertyListResponse(BaseModel):
    """Paginated list of properties."""

    items: list[PropertyResponse]
    total: int


class HostPropertiesResponse(BaseModel):
    host: UserSummary
    items: list[PropertyResponse]
    total: int


class AvailabilityToggleResponse(BaseModel):
    id: uuid.UUID
    is_available: bool
