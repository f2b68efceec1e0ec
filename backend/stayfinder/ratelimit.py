"""In-memory fixed-window rate limiting keyed by client IP.

Usage::

    @router.post("/login", dependencies=[Depends(auth_rate_limit)])
    async def login(...): ...

State lives in a single process-wide :class:`RateLimiter`. Expired windows are
purged by :func:`run_cleanup`, which the application lifespan runs as a
background task.
"""

import asyncio
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import HTTPException, Request, Response, status

from stayfinder.config import settings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    @property
    def retry_after(self) -> int:
        return max(0, math.ceil(self.reset_at - time.time()))


class RateLimitExceeded(HTTPException):
    """429 raised when a client exhausts its window."""

    def __init__(self, result: RateLimitResult, detail: str) -> None:
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            headers={**rate_limit_headers(result), "Retry-After": str(result.retry_after)},
        )
        self.retry_after = result.retry_after


class RateLimiter:
    """Fixed-window request counter."""

    def __init__(self) -> None:
        # key -> [count, window reset timestamp]
        self._windows: dict[str, list[float]] = {}

    def hit(self, key: str, limit: int, window_seconds: int, now: float | None = None) -> RateLimitResult:
        """Count one request against ``key`` and report whether it is allowed."""
        now = time.time() if now is None else now
        window = self._windows.get(key)

        if window is None or now > window[1]:
            window = [0, now + window_seconds]
            self._windows[key] = window

        if window[0] >= limit:
            return RateLimitResult(allowed=False, limit=limit, remaining=0, reset_at=window[1])

        window[0] += 1
        return RateLimitResult(
            allowed=True,
            limit=limit,
            remaining=int(limit - window[0]),
            reset_at=window[1],
        )

    def purge_expired(self, now: float | None = None) -> int:
        """Drop windows whose reset time has passed. Returns how many were removed."""
        now = time.time() if now is None else now
        expired = [key for key, (_, reset_at) in self._windows.items() if now > reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def reset(self) -> None:
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)


limiter = RateLimiter()


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(result.reset_at)),
    }


def client_ip(request: Request) -> str:
    """Best-effort client address, honouring the first ``X-Forwarded-For`` hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


def rate_limit(
    scope: str,
    max_requests: Callable[[], int],
    window_seconds: Callable[[], int],
    detail: str = "Too many requests, please try again later.",
):
    """Build a FastAPI dependency that enforces one limit per client IP.

    Limits are read from settings on every call so tests and deployments can
    change them without re-importing routers.
    """

    async def _dependency(request: Request, response: Response) -> None:
        if not settings.rate_limit_enabled:
            return

        ip = client_ip(request)
        result = limiter.hit(f"{scope}:{ip}", max_requests(), window_seconds())
        if not result.allowed:
            logger.warning("Rate limit exceeded scope=%s ip=%s path=%s", scope, ip, request.url.path)
            raise RateLimitExceeded(result, detail)

        for name, value in rate_limit_headers(result).items():
            response.headers[name] = value

    return _dependency


general_rate_limit = rate_limit(
    "general",
    lambda: settings.general_rate_limit,
    lambda: settings.rate_limit_window_seconds,
)

auth_rate_limit = rate_limit(
    "auth",
    lambda: settings.auth_rate_limit_max_requests,
    lambda: settings.rate_limit_window_seconds,
    detail="Too many authentication attempts, please try again later.",
)

strict_rate_limit = rate_limit(
    "strict",
    lambda: settings.strict_rate_limit_max_requests,
    lambda: settings.rate_limit_window_seconds,
)

upload_rate_limit = rate_limit(
    "upload",
    lambda: settings.upload_rate_limit_max_requests,
    lambda: settings.upload_rate_limit_window_seconds,
    detail="Upload limit reached, please try again later.",
)


async def run_cleanup(interval_seconds: float) -> None:
    """Purge expired windows forever; cancelled on application shutdown."""
    while True:
        await asyncio.sleep(interval_seconds)
        removed = limiter.purge_expired()
        if removed:
            logger.debug("Purged %d expired rate limit windows", removed)
