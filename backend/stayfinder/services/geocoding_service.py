"""Forward-geocoding proxy to OpenStreetMap Nominatim."""

import logging

import httpx
from fastapi import HTTPException, status

from stayfinder.config import settings

logger = logging.getLogger(__name__)


async def search(query: str, limit: int = 5) -> list[dict]:
    """Return Nominatim's JSON results for ``query`` unchanged.

    Nominatim's usage policy requires an identifying User-Agent.
    """
    params = {"q": query, "format": "json", "limit": limit}
    headers = {"User-Agent": settings.nominatim_user_agent, "Accept": "application/json"}

    try:
        async with httpx.AsyncClient(timeout=settings.geocode_timeout_seconds) as client:
            response = await client.get(settings.nominatim_url, params=params, headers=headers)
            response.raise_for_status()
            return response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Geocoding request for %r failed: %s", query, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to fetch geocoding data",
        ) from exc
