"""Property model — rentable listings owned by hosts."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stayfinder.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

PROPERTY_TYPES = ("apartment", "house", "condo", "villa", "cabin", "cottage", "hotel", "other")
PRICE_PERIODS = ("night", "week", "month")

DEFAULT_RULES = {
    "check_in": "3:00 PM",
    "check_out": "11:00 AM",
    "smoking": False,
    "pets": False,
    "parties": False,
    "events": False,
    "quiet_hours": "10:00 PM - 7:00 AM",
    "additional_rules": [],
}


class Property(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A listing a host offers for booking."""

    __tablename__ = "properties"

    host_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    property_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_period: Mapped[str] = mapped_column(String(10), default="night", nullable=False)
    bedrooms: Mapped[int] = mapped_column(Integer, nullable=False)
    bathrooms: Mapped[int] = mapped_column(Integer, nullable=False)
    max_guests: Mapped[int] = mapped_column(Integer, nullable=False)

    # Address
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(20), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)

    # Point location
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    amenities: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    images: Mapped[list] = mapped_column(JSON, default=list, nullable=False)  # [{url, caption}]
    rules: Mapped[dict] = mapped_column(JSON, default=lambda: dict(DEFAULT_RULES), nullable=False)

    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    avg_rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    featured_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    host: Mapped["User"] = relationship(lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    # Bounding-box prefilter for nearby search
    __table_args__ = (Index("ix_properties_lat_lng", "latitude", "longitude"),)

    @property
    def address(self) -> dict:
        return {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "country": self.country,
        }

    @property
    def location(self) -> dict | None:
        """GeoJSON point, coordinates ordered ``[longitude, latitude]``."""
        if self.longitude is None or self.latitude is None:
            return None
        return {"type": "Point", "coordinates": [self.longitude, self.latitude]}

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, title={self.title!r}, type={self.property_type!r})>"
