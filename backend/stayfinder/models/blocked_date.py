"""Blocked date model — nights a host closes outside of bookings."""

import datetime as dt
import uuid

from sqlalchemy import Date, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stayfinder.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

BLOCK_REASONS = ("maintenance", "personal_use", "unavailable", "other")


class BlockedDate(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One manually blocked calendar day for a property."""

    __tablename__ = "blocked_dates"

    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(String(20), default="unavailable", nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    blocked_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (UniqueConstraint("property_id", "date", name="uq_blocked_dates_property_date"),)

    def __repr__(self) -> str:
        return f"<BlockedDate(property_id={self.property_id}, date={self.date})>"
