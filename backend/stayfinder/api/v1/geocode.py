"""Geocoding API router — address search through Nominatim."""

from fastapi import APIRouter, HTTPException, Query, status

from stayfinder.services import geocoding_service

router = APIRouter(prefix="/api/v1/geocode", tags=["geocode"])


@router.get("/search")
async def search(q: str | None = Query(None, description="Free-form address or place name")) -> list[dict]:
    """Return Nominatim's matches for ``q`` unchanged."""
    if q is None or not q.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query parameter 'q' is required",
        )
    return await geocoding_service.search(q.strip())
