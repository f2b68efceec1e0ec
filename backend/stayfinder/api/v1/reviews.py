"""Reviews API router — guest reviews, host replies, reports, moderation."""

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayfinder.api.deps import get_current_user, get_db, get_optional_user, require_admin, require_host
from stayfinder.models.booking import Booking
from stayfinder.models.review import Review
from stayfinder.models.user import User
from stayfinder.schemas.auth import MessageResponse
from stayfinder.schemas.review import (
    ModerationQueueResponse,
    ReviewCreate,
    ReviewListResponse,
    ReviewModeration,
    ReviewReportCreate,
    ReviewResponse,
    ReviewResponseCreate,
    ReviewUpdate,
)
from stayfinder.services import review_service
from stayfinder.services.notification_service import send_templated_email
from stayfinder.services.property_service import get_property_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/reviews", tags=["reviews"])


async def _get_review_or_404(db: AsyncSession, review_id: uuid.UUID) -> Review:
    review = await db.get(Review, review_id)
    if review is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


@router.get("/property/{property_id}", response_model=ReviewListResponse)
async def list_property_reviews(
    property_id: uuid.UUID,
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Approved reviews for a listing, newest first."""
    await get_property_or_404(db, property_id)
    filters = [Review.property_id == property_id, Review.is_approved.is_(True)]

    total = (await db.execute(select(func.count(Review.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Review).where(*filters).order_by(Review.created_at.desc()).offset(skip).limit(limit)
    )
    return {"items": list(result.scalars().all()), "total": total}


@router.get("/moderation", response_model=ModerationQueueResponse)
async def moderation_queue(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> dict:
    """Reported reviews, most reported first."""
    filters = [Review.report_count > 0]
    total = (await db.execute(select(func.count(Review.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Review)
        .where(*filters)
        .order_by(Review.report_count.desc(), Review.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return {"items": list(result.scalars().all()), "total": total}


@router.get("/{review_id}", response_model=ReviewResponse)
async def get_review(
    review_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
) -> Review:
    """Hidden reviews are only visible to their author and admins."""
    review = await _get_review_or_404(db, review_id)
    if not review.is_approved and (
        current_user is None or (current_user.id != review.reviewer_id and not current_user.is_admin)
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review


# ---------------------------------------------------------------------------
# Write
# ---------------------------------------------------------------------------


@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    body: ReviewCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Review:
    """Review a completed stay. One review per booking."""
    booking = await db.get(Booking, body.booking_id)
    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if booking.guest_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only review your own bookings",
        )
    if booking.status != "completed":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You can only review completed stays",
        )
    if booking.property_id != body.property_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Booking does not match this property",
        )

    existing = await db.execute(select(Review.id).where(Review.booking_id == booking.id))
    if existing.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already reviewed this booking",
        )

    review = Review(**body.model_dump(), reviewer_id=current_user.id)
    db.add(review)
    await db.flush()
    await review_service.recalculate_property_rating(db, review.property_id)
    await db.refresh(review)
    logger.info("Review %s (%d stars) posted for property %s", review.id, review.rating, review.property_id)

    prop = booking.property
    background_tasks.add_task(
        send_templated_email,
        booking.host.email,
        "new_review",
        host_name=booking.host.name,
        reviewer_name=current_user.name,
        rating=review.rating,
        property_title=prop.title,
        comment=review.comment,
        property_id=str(prop.id),
    )
    return review


@router.put("/{review_id}", response_model=ReviewResponse)
async def update_review(
    review_id: uuid.UUID,
    body: ReviewUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Review:
    review = await _get_review_or_404(db, review_id)
    if review.reviewer_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only edit your own reviews",
        )

    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(review, field, value)

    await review_service.recalculate_property_rating(db, review.property_id)
    await db.refresh(review)
    return review


@router.delete("/{review_id}", response_model=MessageResponse)
async def delete_review(
    review_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    review = await _get_review_or_404(db, review_id)
    if review.reviewer_id != current_user.id and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to delete this review",
        )

    property_id = review.property_id
    await db.delete(review)
    await review_service.recalculate_property_rating(db, property_id)
    logger.info("Review %s deleted by %s", review_id, current_user.id)
    return {"message": "Review deleted"}


@router.post("/{review_id}/response", response_model=ReviewResponse)
async def respond_to_review(
    review_id: uuid.UUID,
    body: ReviewResponseCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_host),
) -> Review:
    """Public reply from the listing's host. Replying again replaces the text."""
    review = await _get_review_or_404(db, review_id)
    prop = await get_property_or_404(db, review.property_id)
    if prop.host_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the property host can respond to this review",
        )

    review.response_text = body.text
    review.response_date = datetime.now(timezone.utc)
    await db.flush()
    await db.refresh(review)
    return review


@router.post("/{review_id}/report", response_model=MessageResponse)
async def report_review(
    review_id: uuid.UUID,
    body: ReviewReportCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    review = await _get_review_or_404(db, review_id)
    if await review_service.has_reported(db, review.id, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already reported this review",
        )

    hidden = await review_service.add_report(db, review, current_user.id, body.reason)
    if hidden:
        await review_service.recalculate_property_rating(db, review.property_id)
    return {"message": "Review reported"}


@router.patch("/{review_id}/moderate", response_model=ReviewResponse)
async def moderate_review(
    review_id: uuid.UUID,
    body: ReviewModeration,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Review:
    """Approve (clearing reports) or hide a review."""
    review = await _get_review_or_404(db, review_id)
    await review_service.moderate(db, review, body.approve)
    await db.refresh(review)
    logger.info("Review %s %s by admin %s", review.id, "approved" if body.approve else "hidden", current_user.id)
    return review
