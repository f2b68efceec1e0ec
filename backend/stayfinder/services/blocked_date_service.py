"""Host-managed blocked calendar days."""

import datetime as dt
import logging
import uuid

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from stayfinder.models.blocked_date import BlockedDate

logger = logging.getLogger(__name__)


async def block_dates(
    db: AsyncSession,
    property_id: uuid.UUID,
    dates: list[dt.date],
    reason: str,
    note: str | None,
    blocked_by_id: uuid.UUID,
) -> tuple[list[BlockedDate], list[dt.date]]:
    """Insert one row per new date; already-blocked dates are skipped.

    Returns ``(created_rows, skipped_dates)``.
    """
    requested = sorted(set(dates))
    result = await db.execute(
        select(BlockedDate.date).where(
            BlockedDate.property_id == property_id,
            BlockedDate.date.in_(requested),
        )
    )
    existing = set(result.scalars().all())

    created = [
        BlockedDate(
            property_id=property_id,
            date=day,
            reason=reason,
            note=note,
            blocked_by_id=blocked_by_id,
        )
        for day in requested
        if day not in existing
    ]
    db.add_all(created)
    await db.flush()
    for row in created:
        await db.refresh(row)

    logger.info("Blocked %d date(s) on property %s (%d already blocked)", len(created), property_id, len(existing))
    return created, sorted(existing)


async def unblock_dates(db: AsyncSession, property_id: uuid.UUID, dates: list[dt.date]) -> int:
    result = await db.execute(
        delete(BlockedDate).where(
            BlockedDate.property_id == property_id,
            BlockedDate.date.in_(sorted(set(dates))),
        )
    )
    await db.flush()
    return result.rowcount or 0


def calendar_window(year: int | None, month: int | None, today: dt.date) -> tuple[dt.date, dt.date]:
    """Half-open date window for a calendar query.

    * year and month: that month
    * year only: that year
    * neither: from January of this year to the end of next year
    """
    if year is not None and month is not None:
        start = dt.date(year, month, 1)
        end = dt.date(year + 1, 1, 1) if month == 12 else dt.date(year, month + 1, 1)
        return start, end
    if year is not None:
        return dt.date(year, 1, 1), dt.date(year + 1, 1, 1)
    return dt.date(today.year, 1, 1), dt.date(today.year + 2, 1, 1)


async def list_blocked_dates(
    db: AsyncSession,
    property_id: uuid.UUID,
    start: dt.date,
    end: dt.date,
) -> list[BlockedDate]:
    result = await db.execute(
        select(BlockedDate)
        .where(
            BlockedDate.property_id == property_id,
            BlockedDate.date >= start,
            BlockedDate.date < end,
        )
        .order_by(BlockedDate.date)
    )
    return list(result.scalars().all())
