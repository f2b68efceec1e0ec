"""Review aggregates and moderation rules."""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayfinder.config import settings
from stayfinder.models.property import Property
from stayfinder.models.review import Review, ReviewReport

logger = logging.getLogger(__name__)


async def recalculate_property_rating(db: AsyncSession, property_id: uuid.UUID) -> tuple[float, int]:
    """Recompute ``avg_rating`` / ``review_count`` from approved reviews only.

    Flushes first so that pending changes to reviews are counted.
    """
    await db.flush()
    result = await db.execute(
        select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.property_id == property_id,
            Review.is_approved.is_(True),
        )
    )
    avg, count = result.one()
    avg_rating = round(float(avg), 1) if avg is not None else 0.0

    prop = await db.get(Property, property_id)
    if prop is not None:
        prop.avg_rating = avg_rating
        prop.review_count = count
        await db.flush()

    logger.debug("Property %s rating recalculated: %.1f over %d reviews", property_id, avg_rating, count)
    return avg_rating, count


async def add_report(db: AsyncSession, review: Review, user_id: uuid.UUID, reason: str) -> bool:
    """Record a report; returns True when the review was hidden by this report.

    The caller is responsible for rejecting duplicate reports first.
    """
    review.reports.append(ReviewReport(user_id=user_id, reason=reason))
    review.report_count += 1

    hidden = False
    if review.is_approved and review.report_count >= settings.review_report_threshold:
        review.is_approved = False
        hidden = True
        logger.info("Review %s hidden after %d reports", review.id, review.report_count)

    await db.flush()
    return hidden


async def has_reported(db: AsyncSession, review_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(ReviewReport.id).where(ReviewReport.review_id == review_id, ReviewReport.user_id == user_id)
    )
    return result.first() is not None


async def moderate(db: AsyncSession, review: Review, approve: bool) -> None:
    """Approve (clearing all reports) or hide a review, then refresh the rating."""
    review.is_approved = approve
    if approve:
        review.reports.clear()
        review.report_count = 0
    await db.flush()
    await recalculate_property_rating(db, review.property_id)
