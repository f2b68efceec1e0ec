"""Pydantic v2 request/response schemas for booking endpoints."""

import datetime as dt
import uuid
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from stayfinder.schemas.auth import UserSummary

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    """Schema for requesting a stay. The price is always computed server-side."""

    property_id: uuid.UUID
    check_in: dt.date
    check_out: dt.date
    num_guests: int = Field(1, ge=1)
    special_requests: str | None = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_dates(self) -> "BookingCreate":
        """Validate that check_out is strictly after check_in."""
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self


class BookingStatusUpdate(BaseModel):
    status: Literal["confirmed", "cancelled", "completed"]
    reason: str | None = Field(None, max_length=500)

    @model_validator(mode="after")
    def require_cancellation_reason(self) -> "BookingStatusUpdate":
        if self.status == "cancelled" and not (self.reason and self.reason.strip()):
            raise ValueError("A reason is required to cancel a booking")
        return self


class PaymentStatusUpdate(BaseModel):
    payment_status: Literal["paid", "refunded", "failed"]
    payment_id: str | None = Field(None, max_length=255)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BookingPropertySummary(BaseModel):
    id: uuid.UUID
    title: str
    city: str
    country: str
    images: list[dict]

    model_config = ConfigDict(from_attributes=True)


class BookingResponse(BaseModel):
    """Booking with the property, guest and host it links."""

    id: uuid.UUID
    property_id: uuid.UUID
    guest_id: uuid.UUID
    host_id: uuid.UUID
    check_in: dt.date
    check_out: dt.date
    num_guests: int
    total_price: Decimal
    currency: str
    status: str
    payment_status: str
    payment_id: str | None = None
    special_requests: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    cancelled_at: dt.datetime | None = None
    property: BookingPropertySummary | None = None
    guest: UserSummary | None = None
    host: UserSummary | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class BookingListResponse(BaseModel):
    """Paginated list of bookings."""

    items: list[BookingResponse]
    total: int


class AvailabilityResponse(BaseModel):
    """Nights that cannot be booked within the requested window."""

    property_id: uuid.UUID
    start_date: dt.date
    end_date: dt.date
    unavailable_dates: list[dt.date]
    blocked_dates: list[dt.date]


class CheckoutSessionResponse(BaseModel):
    checkout_url: str
    session_id: str
