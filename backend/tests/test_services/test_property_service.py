"""Tests for distance helpers, the nearby-search bounding box and listing approval."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from stayfinder.models.property import Property
from stayfinder.services.property_service import bounding_box, haversine_km, longitude_ranges, set_approval


def _inside(box: tuple[float, float, float, float], lat: float, lng: float) -> bool:
    min_lat, max_lat, min_lng, max_lng = box
    return min_lat <= lat <= max_lat and any(lo <= lng <= hi for lo, hi in longitude_ranges(min_lng, max_lng))


class TestHaversine:
    def test_london_to_paris(self):
        assert haversine_km(51.5074, -0.1278, 48.8566, 2.3522) == pytest.approx(343.5, abs=1)

    def test_across_antimeridian(self):
        assert haversine_km(-17.0, 179.95, -17.0, -179.95) == pytest.approx(10.63, abs=0.05)


class TestBoundingBox:
    def test_contains_circle_at_mid_latitude(self):
        box = bounding_box(50.8193, -0.1364, 5)
        assert _inside(box, 50.8193 + 0.044, -0.1364)
        assert not _inside(box, 50.8193 + 0.05, -0.1364)

    def test_poleward_side_is_wider_than_centre(self):
        # 499.5 km from the centre, east of the band measured at 80 degrees
        assert haversine_km(80.0, 0.0, 81.06, 26.81) <= 500
        assert _inside(bounding_box(80.0, 0.0, 500), 81.06, 26.81)

    def test_wraps_across_antimeridian(self):
        box = bounding_box(-17.0, 179.95, 50)
        assert box[3] > 180.0
        assert _inside(box, -17.0, -179.95)
        assert not _inside(box, -17.0, -179.0)

    def test_reaching_pole_spans_all_longitudes(self):
        min_lat, max_lat, min_lng, max_lng = bounding_box(88.0, 45.0, 300)
        assert max_lat == 90.0
        assert (min_lng, max_lng) == (-180.0, 180.0)
        assert min_lat == pytest.approx(88.0 - 300 / 111.195, abs=0.01)


class TestLongitudeRanges:
    def test_within_range(self):
        assert longitude_ranges(-10.0, 10.0) == [(-10.0, 10.0)]

    def test_east_overflow(self):
        assert longitude_ranges(179.0, 181.0) == [(179.0, 180.0), (-180.0, pytest.approx(-179.0))]

    def test_west_overflow(self):
        assert longitude_ranges(-181.5, -179.0) == [(pytest.approx(178.5), 180.0), (-180.0, -179.0)]

    def test_full_circle(self):
        assert longitude_ranges(-200.0, 200.0) == [(-180.0, 180.0)]


class TestSetApproval:
    async def test_reject_then_approve(self, db_session: AsyncSession, test_property: Property):
        await set_approval(db_session, test_property, False, "Photos are blurry")
        assert test_property.is_approved is False
        assert test_property.rejection_reason == "Photos are blurry"

        await set_approval(db_session, test_property, True, "ignored when approving")
        assert test_property.is_approved is True
        assert test_property.rejection_reason is None
