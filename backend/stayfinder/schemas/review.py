"""Pydantic v2 request/response schemas for review endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from stayfinder.schemas.auth import UserSummary


class ReviewCreate(BaseModel):
    property_id: uuid.UUID
    booking_id: uuid.UUID
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=10, max_length=1000)


class ReviewUpdate(BaseModel):
    rating: int | None = Field(None, ge=1, le=5)
    comment: str | None = Field(None, min_length=10, max_length=1000)


class ReviewResponseCreate(BaseModel):
    """Host reply to a review."""

    text: str = Field(..., min_length=1, max_length=1000)


class ReviewReportCreate(BaseModel):
    reason: str = Field(..., min_length=10, max_length=500)


class ReviewModeration(BaseModel):
    approve: bool


class ReviewReportResponse(BaseModel):
    user_id: uuid.UUID
    reason: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewResponse(BaseModel):
    id: uuid.UUID
    property_id: uuid.UUID
    booking_id: uuid.UUID
    reviewer_id: uuid.UUID
    rating: int
    comment: str
    response_text: str | None = None
    response_date: datetime | None = None
    is_approved: bool
    report_count: int
    reviewer: UserSummary | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ModeratedReviewResponse(ReviewResponse):
    """Review with its individual reports, for the moderation queue."""

    reports: list[ReviewReportResponse] = []


class ReviewListResponse(BaseModel):
    items: list[ReviewResponse]
    total: int


class ModerationQueueResponse(BaseModel):
    items: list[ModeratedReviewResponse]
    total: int
