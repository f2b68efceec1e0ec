"""Async SQLAlchemy engine, session factory, and declarative base.

Every table keys on a UUID and carries ``created_at``/``updated_at`` columns
filled by the database. Request handlers share one session per request (see
:func:`get_db`) and only flush; the commit happens once the handler returns.
"""

import uuid
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from stayfinder.config import settings


def _engine_options(url: str) -> dict:
    options: dict = {"echo": settings.debug}
    # SQLite (local runs, tests) has no connection pool to size.
    if not url.startswith("sqlite"):
        options.update(
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
    return options


engine = create_async_engine(settings.async_database_url, **_engine_options(settings.async_database_url))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base shared by users, listings, bookings, reviews and blocked dates."""


class TimestampMixin:
    """``created_at`` / ``updated_at`` maintained by the database."""

    # Fetch server-generated timestamps at flush time instead of expiring them.
    __mapper_args__ = {"eager_defaults": True}

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
    )


class UUIDPrimaryKeyMixin:
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield the request's session.

    Commits when the handler returns and rolls back if it raises, so a
    request's writes land together or not at all.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
