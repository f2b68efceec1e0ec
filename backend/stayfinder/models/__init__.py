"""SQLAlchemy models for StayFinder.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from stayfinder.models.blocked_date import BlockedDate
from stayfinder.models.booking import Booking
from stayfinder.models.property import Property
from stayfinder.models.review import Review, ReviewReport
from stayfinder.models.user import User, user_favorites

__all__ = [
    "BlockedDate",
    "Booking",
    "Property",
    "Review",
    "ReviewReport",
    "User",
    "user_favorites",
]
