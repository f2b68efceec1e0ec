"""Tests for image uploads, geocoding and the health endpoints."""

from unittest.mock import AsyncMock, patch

import cloudinary.exceptions
import httpx
import pytest
from httpx import AsyncClient

from stayfinder.config import settings

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def cloudinary_configured(monkeypatch):
    monkeypatch.setattr(settings, "cloudinary_cloud_name", "demo")
    monkeypatch.setattr(settings, "cloudinary_api_key", "key")
    monkeypatch.setattr(settings, "cloudinary_api_secret", "secret")


def _fake_upload(data, **options):
    name = options["filename"].rsplit(".", 1)[0]
    return {
        "secure_url": f"https://res.cloudinary.test/{options['folder']}/{name}.png",
        "public_id": f"{options['folder']}/{name}",
    }


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


class TestUploads:
    async def test_single_upload(self, client: AsyncClient, auth_headers: dict, cloudinary_configured):
        with patch("cloudinary.uploader.upload", side_effect=_fake_upload) as upload:
            response = await client.post(
                "/api/v1/uploads/single",
                files={"image": ("avatar.png", PNG_BYTES, "image/png")},
                headers=auth_headers,
            )
        assert response.status_code == 200
        assert response.json() == {
            "url": "https://res.cloudinary.test/stayfinder/general/avatar.png",
            "public_id": "stayfinder/general/avatar",
        }
        assert upload.call_args.kwargs["resource_type"] == "image"

    async def test_property_images_go_to_properties_folder(
        self, client: AsyncClient, host_headers: dict, cloudinary_configured
    ):
        with patch("cloudinary.uploader.upload", side_effect=_fake_upload):
            response = await client.post(
                "/api/v1/uploads/property/multiple",
                files=[
                    ("images", ("front.png", PNG_BYTES, "image/png")),
                    ("images", ("garden.png", PNG_BYTES, "image/png")),
                ],
                headers=host_headers,
            )
        assert response.status_code == 200
        assert [img["public_id"] for img in response.json()["images"]] == [
            "stayfinder/properties/front",
            "stayfinder/properties/garden",
        ]

    async def test_property_upload_requires_host(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/v1/uploads/property/single",
            files={"image": ("front.png", PNG_BYTES, "image/png")},
            headers=auth_headers,
        )
        assert response.status_code == 403

    async def test_rejects_non_image(self, client: AsyncClient, auth_headers: dict, cloudinary_configured):
        with patch("cloudinary.uploader.upload") as upload:
            response = await client.post(
                "/api/v1/uploads/single",
                files={"image": ("notes.txt", b"hello", "text/plain")},
                headers=auth_headers,
            )
        assert response.status_code == 400
        upload.assert_not_called()

    async def test_rejects_oversized(
        self, client: AsyncClient, auth_headers: dict, cloudinary_configured, monkeypatch
    ):
        monkeypatch.setattr(settings, "max_upload_size_bytes", 16)
        response = await client.post(
            "/api/v1/uploads/single",
            files={"image": ("big.png", PNG_BYTES, "image/png")},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert "too large" in response.json()["message"]

    async def test_one_bad_file_uploads_nothing(
        self, client: AsyncClient, auth_headers: dict, cloudinary_configured
    ):
        with patch("cloudinary.uploader.upload", side_effect=_fake_upload) as upload:
            response = await client.post(
                "/api/v1/uploads/multiple",
                files=[
                    ("images", ("ok.png", PNG_BYTES, "image/png")),
                    ("images", ("bad.gif", b"GIF89a", "image/gif")),
                ],
                headers=auth_headers,
            )
        assert response.status_code == 400
        upload.assert_not_called()

    async def test_too_many_files(
        self, client: AsyncClient, auth_headers: dict, cloudinary_configured, monkeypatch
    ):
        monkeypatch.setattr(settings, "max_upload_files", 1)
        response = await client.post(
            "/api/v1/uploads/multiple",
            files=[
                ("images", ("a.png", PNG_BYTES, "image/png")),
                ("images", ("b.png", PNG_BYTES, "image/png")),
            ],
            headers=auth_headers,
        )
        assert response.status_code == 400

    async def test_not_configured(self, client: AsyncClient, auth_headers: dict, monkeypatch):
        monkeypatch.setattr(settings, "cloudinary_cloud_name", "")
        response = await client.post(
            "/api/v1/uploads/single",
            files={"image": ("avatar.png", PNG_BYTES, "image/png")},
            headers=auth_headers,
        )
        assert response.status_code == 503

    async def test_cdn_error(self, client: AsyncClient, auth_headers: dict, cloudinary_configured):
        with patch("cloudinary.uploader.upload", side_effect=cloudinary.exceptions.Error("Invalid signature")):
            response = await client.post(
                "/api/v1/uploads/single",
                files={"image": ("avatar.png", PNG_BYTES, "image/png")},
                headers=auth_headers,
            )
        assert response.status_code == 502

    async def test_upload_rate_limit(
        self, client: AsyncClient, auth_headers: dict, cloudinary_configured, monkeypatch
    ):
        monkeypatch.setattr(settings, "upload_rate_limit_max_requests", 1)
        with patch("cloudinary.uploader.upload", side_effect=_fake_upload):
            first = await client.post(
                "/api/v1/uploads/single",
                files={"image": ("a.png", PNG_BYTES, "image/png")},
                headers=auth_headers,
            )
            second = await client.post(
                "/api/v1/uploads/single",
                files={"image": ("b.png", PNG_BYTES, "image/png")},
                headers=auth_headers,
            )
        assert first.status_code == 200
        assert second.status_code == 429


# ---------------------------------------------------------------------------
# Geocoding
# ---------------------------------------------------------------------------


class TestGeocode:
    async def test_requires_query(self, client: AsyncClient):
        response = await client.get("/api/v1/geocode/search", params={"q": "   "})
        assert response.status_code == 400
        assert response.json()["message"] == "Query parameter 'q' is required"

    async def test_passes_results_through(self, client: AsyncClient):
        results = [{"lat": "50.82", "lon": "-0.13", "display_name": "Brighton, England"}]
        with patch("stayfinder.services.geocoding_service.search", new=AsyncMock(return_value=results)) as search:
            response = await client.get("/api/v1/geocode/search", params={"q": " Brighton "})
        assert response.status_code == 200
        assert response.json() == results
        search.assert_awaited_once_with("Brighton")

    async def test_upstream_failure(self, client: AsyncClient, monkeypatch):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["User-Agent"] == settings.nominatim_user_agent
            return httpx.Response(503)

        real_client = httpx.AsyncClient

        def fake_client(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        monkeypatch.setattr("stayfinder.services.geocoding_service.httpx.AsyncClient", fake_client)
        response = await client.get("/api/v1/geocode/search", params={"q": "Atlantis"})
        assert response.status_code == 502


# ---------------------------------------------------------------------------
# Service info
# ---------------------------------------------------------------------------


class TestHealth:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "UP"
        assert data["version"] == settings.app_version
        assert data["uptime"] >= 0

    async def test_root(self, client: AsyncClient):
        response = await client.get("/")
        assert response.status_code == 200

    async def test_unknown_route_uses_error_envelope(self, client: AsyncClient):
        response = await client.get("/api/v1/nowhere")
        assert response.status_code == 404
        assert response.json()["success"] is False
