"""Schemas for a host's manually blocked calendar days."""

import datetime as dt
import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

BlockReason = Literal["maintenance", "personal_use", "unavailable", "other"]


class BlockDatesRequest(BaseModel):
    dates: list[dt.date] = Field(..., min_length=1, max_length=366)
    reason: BlockReason = "unavailable"
    note: str | None = Field(None, max_length=500)


class UnblockDatesRequest(BaseModel):
    dates: list[dt.date] = Field(..., min_length=1, max_length=366)


class BlockedDateResponse(BaseModel):
    id: uuid.UUID
    property_id: uuid.UUID
    date: dt.date
    reason: str
    note: str | None = None
    blocked_by_id: uuid.UUID | None = None
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class BlockDatesResponse(BaseModel):
    created: list[BlockedDateResponse]
    skipped: list[dt.date]


class UnblockDatesResponse(BaseModel):
    deleted_count: int


class BlockedDateInfo(BaseModel):
    reason: str
    note: str | None = None
    blocked_at: dt.datetime


class BlockedCalendarResponse(BaseModel):
    """Blocked days keyed by ISO date."""

    property_id: uuid.UUID
    blocked_dates: dict[dt.date, BlockedDateInfo]
