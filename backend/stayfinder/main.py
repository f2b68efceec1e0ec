"""StayFinder — FastAPI application entry point."""

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from stayfinder.api.v1.admin import router as admin_router
from stayfinder.api.v1.auth import router as auth_router
from stayfinder.api.v1.blocked_dates import router as blocked_dates_router
from stayfinder.api.v1.bookings import router as bookings_router
from stayfinder.api.v1.geocode import router as geocode_router
from stayfinder.api.v1.properties import router as properties_router
from stayfinder.api.v1.reviews import router as reviews_router
from stayfinder.api.v1.uploads import router as uploads_router
from stayfinder.api.v1.webhooks import router as webhooks_router
from stayfinder.config import settings
from stayfinder.errors import register_exception_handlers
from stayfinder.ratelimit import general_rate_limit, run_cleanup

# Configure root logger so all stayfinder.* loggers output to stderr.
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger("stayfinder.access")

_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the rate limiter sweeper; on shutdown stop it and dispose the engine."""
    cleanup = asyncio.create_task(run_cleanup(settings.rate_limit_cleanup_interval_seconds))
    yield
    cleanup.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await cleanup

    from stayfinder.database import engine

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Vacation rental marketplace: listings, bookings, reviews and host tools.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %d %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# Routers. Every API route shares the general per-IP limit; auth, booking
# creation and uploads add their own tighter limits on top.
_limited = [Depends(general_rate_limit)]
app.include_router(auth_router, dependencies=_limited)
app.include_router(properties_router, dependencies=_limited)
app.include_router(blocked_dates_router, dependencies=_limited)
app.include_router(bookings_router, dependencies=_limited)
app.include_router(reviews_router, dependencies=_limited)
app.include_router(admin_router, dependencies=_limited)
app.include_router(uploads_router, dependencies=_limited)
app.include_router(geocode_router, dependencies=_limited)
app.include_router(webhooks_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict:
    """Liveness probe."""
    return {
        "status": "UP",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _started_at, 3),
        "environment": settings.environment,
        "version": settings.app_version,
    }


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
