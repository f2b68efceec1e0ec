"""Pydantic v2 schemas for the admin dashboard and user management."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from stayfinder.schemas.booking import BookingResponse
from stayfinder.schemas.property import PropertyResponse


class PropertyTotals(BaseModel):
    total: int
    pending: int
    approved: int


class BookingTotals(BaseModel):
    total: int
    pending: int
    confirmed: int


class UserTotals(BaseModel):
    total: int  # excludes admins
    hosts: int


class DashboardResponse(BaseModel):
    """Marketplace-wide counters plus the most recent activity."""

    properties: PropertyTotals
    bookings: BookingTotals
    users: UserTotals
    revenue: Decimal  # confirmed and paid bookings
    recent_bookings: list[BookingResponse]
    recent_properties: list[PropertyResponse]


class UserStats(BaseModel):
    """Hosts get listing and incoming-booking counts; everyone else bookings made."""

    properties: int | None = None
    bookings_received: int | None = None
    bookings_made: int | None = None


class AdminUserResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    role: str
    phone: str | None = None
    is_verified: bool
    is_active: bool
    suspension_reason: str | None = None
    created_at: datetime
    stats: UserStats


class AdminUserListResponse(BaseModel):
    items: list[AdminUserResponse]
    total: int


class UserStatusUpdate(BaseModel):
    is_active: bool
    reason: str | None = Field(None, max_length=500)
