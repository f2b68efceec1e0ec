"""Tests for booking endpoints: availability, creation, visibility, status changes, payment."""

import uuid
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import auth_header, future, make_booking, make_property, make_user
from stayfinder.models.blocked_date import BlockedDate
from stayfinder.models.property import Property
from stayfinder.models.user import User

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _payload(prop: Property, offset: int = 30, nights: int = 3, **overrides) -> dict:
    check_in = future(offset)
    payload = {
        "property_id": str(prop.id),
        "check_in": check_in.isoformat(),
        "check_out": (check_in + timedelta(days=nights)).isoformat(),
        "num_guests": 2,
    }
    payload.update(overrides)
    return payload


# ---------------------------------------------------------------------------
# GET /api/v1/bookings/availability/{property_id}
# ---------------------------------------------------------------------------


class TestAvailability:
    async def test_lists_booked_and_blocked_nights(
        self, client: AsyncClient, db_session: AsyncSession, test_property: Property, test_user: User
    ):
        await make_booking(db_session, test_property, test_user, future(5), nights=2)
        await make_booking(db_session, test_property, test_user, future(8), nights=2, status="cancelled")
        db_session.add(BlockedDate(property_id=test_property.id, date=future(12)))
        await db_session.flush()

        response = await client.get(
            f"/api/v1/bookings/availability/{test_property.id}",
            params={"start_date": future(0).isoformat(), "end_date": future(20).isoformat()},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["unavailable_dates"] == [future(5).isoformat(), future(6).isoformat(), future(12).isoformat()]
        assert data["blocked_dates"] == [future(12).isoformat()]

    async def test_unapproved_property(self, client: AsyncClient, db_session: AsyncSession, test_host: User):
        prop = await make_property(db_session, test_host, is_approved=False)
        response = await client.get(f"/api/v1/bookings/availability/{prop.id}")
        assert response.status_code == 400

    async def test_end_before_start(self, client: AsyncClient, test_property: Property):
        response = await client.get(
            f"/api/v1/bookings/availability/{test_property.id}",
            params={"start_date": future(10).isoformat(), "end_date": future(5).isoformat()},
        )
        assert response.status_code == 400

    async def test_missing_property(self, client: AsyncClient):
        response = await client.get(f"/api/v1/bookings/availability/{uuid.uuid4()}")
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# POST /api/v1/bookings
# ---------------------------------------------------------------------------


class TestCreateBooking:
    async def test_create_success(
        self, client: AsyncClient, auth_headers: dict, test_property: Property, test_user: User
    ):
        with patch("stayfinder.api.v1.bookings.send_templated_email") as send:
            response = await client.post(
                "/api/v1/bookings",
                json=_payload(test_property, nights=3, special_requests="Late check-in"),
                headers=auth_headers,
            )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["payment_status"] == "pending"
        assert data["guest_id"] == str(test_user.id)
        assert data["host_id"] == str(test_property.host_id)
        assert float(data["total_price"]) == 300.0
        assert data["property"]["title"] == test_property.title

        send.assert_called_once()
        assert send.call_args.args[1] == "new_booking_request"

    async def test_client_price_is_ignored(self, client: AsyncClient, auth_headers: dict, test_property: Property):
        response = await client.post(
            "/api/v1/bookings",
            json=_payload(test_property, nights=2, total_price=1),
            headers=auth_headers,
        )
        assert response.status_code == 201
        assert float(response.json()["total_price"]) == 200.0

    async def test_weekly_price_charges_started_weeks(
        self, client: AsyncClient, db_session: AsyncSession, test_host: User, auth_headers: dict
    ):
        prop = await make_property(db_session, test_host, price=700, price_period="week")
        response = await client.post("/api/v1/bookings", json=_payload(prop, nights=8), headers=auth_headers)
        assert response.status_code == 201
        assert float(response.json()["total_price"]) == 1400.0

    async def test_overlap_rejected(self, client: AsyncClient, auth_headers: dict, test_property: Property):
        first = await client.post("/api/v1/bookings", json=_payload(test_property, 30, 5), headers=auth_headers)
        assert first.status_code == 201

        response = await client.post("/api/v1/bookings", json=_payload(test_property, 32, 5), headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["message"] == "Property is not available for the selected dates"

    async def test_adjacent_stay_accepted(self, client: AsyncClient, auth_headers: dict, test_property: Property):
        first = await client.post("/api/v1/bookings", json=_payload(test_property, 30, 5), headers=auth_headers)
        assert first.status_code == 201

        # Check-in on the previous guest's check-out day
        response = await client.post("/api/v1/bookings", json=_payload(test_property, 35, 2), headers=auth_headers)
        assert response.status_code == 201

    async def test_cancelled_booking_frees_dates(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        auth_headers: dict,
        test_property: Property,
        test_user: User,
    ):
        await make_booking(db_session, test_property, test_user, future(30), nights=5, status="cancelled")
        response = await client.post("/api/v1/bookings", json=_payload(test_property, 30, 5), headers=auth_headers)
        assert response.status_code == 201

    async def test_blocked_night_rejected(
        self, client: AsyncClient, db_session: AsyncSession, auth_headers: dict, test_property: Property
    ):
        db_session.add(BlockedDate(property_id=test_property.id, date=future(31)))
        await db_session.flush()

        response = await client.post("/api/v1/bookings", json=_payload(test_property, 30, 3), headers=auth_headers)
        assert response.status_code == 409
        assert future(31).isoformat() in response.json()["message"]

    async def test_blocked_checkout_day_is_fine(
        self, client: AsyncClient, db_session: AsyncSession, auth_headers: dict, test_property: Property
    ):
        db_session.add(BlockedDate(property_id=test_property.id, date=future(33)))
        await db_session.flush()

        response = await client.post("/api/v1/bookings", json=_payload(test_property, 30, 3), headers=auth_headers)
        assert response.status_code == 201

    async def test_past_check_in(self, client: AsyncClient, auth_headers: dict, test_property: Property):
        response = await client.post("/api/v1/bookings", json=_payload(test_property, -2, 3), headers=auth_headers)
        assert response.status_code == 400

    async def test_check_out_before_check_in(self, client: AsyncClient, auth_headers: dict, test_property: Property):
        payload = _payload(test_property, 30, 3)
        payload["check_out"] = future(29).isoformat()
        response = await client.post("/api/v1/bookings", json=payload, headers=auth_headers)
        assert response.status_code == 400

    async def test_too_many_guests(self, client: AsyncClient, auth_headers: dict, test_property: Property):
        response = await client.post(
            "/api/v1/bookings",
            json=_payload(test_property, num_guests=test_property.max_guests + 1),
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert "maximum" in response.json()["message"]

    async def test_unavailable_property(
        self, client: AsyncClient, db_session: AsyncSession, test_host: User, auth_headers: dict
    ):
        prop = await make_property(db_session, test_host, is_available=False)
        response = await client.post("/api/v1/bookings", json=_payload(prop), headers=auth_headers)
        assert response.status_code == 400

    async def test_missing_property(self, client: AsyncClient, auth_headers: dict, test_property: Property):
        payload = _payload(test_property)
        payload["property_id"] = str(uuid.uuid4())
        response = await client.post("/api/v1/bookings", json=payload, headers=auth_headers)
        assert response.status_code == 404

    async def test_host_cannot_book_own_listing(
        self, client: AsyncClient, host_headers: dict, test_property: Property
    ):
        response = await client.post("/api/v1/bookings", json=_payload(test_property), headers=host_headers)
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Listing and detail
# ---------------------------------------------------------------------------


class TestListBookings:
    async def test_guest_sees_own_bookings(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        auth_headers: dict,
    ):
        other = await make_user(db_session)
        await make_booking(db_session, test_property, test_user, future(10))
        await make_booking(db_session, test_property, test_user, future(20), status="confirmed")
        await make_booking(db_session, test_property, other, future(30))

        response = await client.get("/api/v1/bookings", headers=auth_headers)
        assert response.json()["total"] == 2

        response = await client.get("/api/v1/bookings", params={"status": "confirmed"}, headers=auth_headers)
        assert response.json()["total"] == 1

    async def test_host_sees_bookings_on_listings(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        host_headers: dict,
    ):
        await make_booking(db_session, test_property, test_user, future(10))
        response = await client.get("/api/v1/bookings/host", headers=host_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 1

    async def test_guest_cannot_use_host_listing(self, client: AsyncClient, auth_headers: dict):
        response = await client.get("/api/v1/bookings/host", headers=auth_headers)
        assert response.status_code == 403


class TestGetBooking:
    async def test_participants_and_admin_can_view(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        auth_headers: dict,
        host_headers: dict,
        admin_headers: dict,
    ):
        booking = await make_booking(db_session, test_property, test_user, future(10))
        for headers in (auth_headers, host_headers, admin_headers):
            response = await client.get(f"/api/v1/bookings/{booking.id}", headers=headers)
            assert response.status_code == 200
            assert response.json()["guest"]["id"] == str(test_user.id)

    async def test_stranger_forbidden(
        self, client: AsyncClient, db_session: AsyncSession, test_property: Property, test_user: User
    ):
        booking = await make_booking(db_session, test_property, test_user, future(10))
        stranger = await make_user(db_session)
        response = await client.get(f"/api/v1/bookings/{booking.id}", headers=auth_header(stranger))
        assert response.status_code == 403

    async def test_missing(self, client: AsyncClient, auth_headers: dict):
        response = await client.get(f"/api/v1/bookings/{uuid.uuid4()}", headers=auth_headers)
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# PATCH /api/v1/bookings/{id}/status
# ---------------------------------------------------------------------------


class TestUpdateStatus:
    async def test_host_confirms(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        host_headers: dict,
    ):
        booking = await make_booking(db_session, test_property, test_user, future(10))
        with patch("stayfinder.api.v1.bookings.send_templated_email") as send:
            response = await client.patch(
                f"/api/v1/bookings/{booking.id}/status",
                json={"status": "confirmed"},
                headers=host_headers,
            )
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        assert send.call_args.args == (test_user.email, "booking_confirmed")

    async def test_guest_cannot_confirm(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        auth_headers: dict,
    ):
        booking = await make_booking(db_session, test_property, test_user, future(10))
        response = await client.patch(
            f"/api/v1/bookings/{booking.id}/status",
            json={"status": "confirmed"},
            headers=auth_headers,
        )
        assert response.status_code == 403

    async def test_guest_cancels_with_reason(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        test_host: User,
        auth_headers: dict,
    ):
        booking = await make_booking(db_session, test_property, test_user, future(10))
        with patch("stayfinder.api.v1.bookings.send_templated_email") as send:
            response = await client.patch(
                f"/api/v1/bookings/{booking.id}/status",
                json={"status": "cancelled", "reason": "Flight cancelled"},
                headers=auth_headers,
            )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "cancelled"
        assert data["cancelled_by"] == "guest"
        assert data["cancellation_reason"] == "Flight cancelled"
        assert data["cancelled_at"] is not None
        # The host hears about it
        assert send.call_args.args == (test_host.email, "booking_cancelled")
        assert send.call_args.kwargs["cancelled_by"] == "guest"

    async def test_cancel_requires_reason(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        auth_headers: dict,
    ):
        booking = await make_booking(db_session, test_property, test_user, future(10))
        response = await client.patch(
            f"/api/v1/bookings/{booking.id}/status",
            json={"status": "cancelled"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    async def test_cancelled_is_final(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        host_headers: dict,
    ):
        booking = await make_booking(db_session, test_property, test_user, future(10), status="cancelled")
        response = await client.patch(
            f"/api/v1/bookings/{booking.id}/status",
            json={"status": "confirmed"},
            headers=host_headers,
        )
        assert response.status_code == 400

    async def test_complete_after_checkout(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        host_headers: dict,
    ):
        booking = await make_booking(
            db_session, test_property, test_user, future(0) - timedelta(days=3), nights=3, status="confirmed"
        )
        response = await client.patch(
            f"/api/v1/bookings/{booking.id}/status",
            json={"status": "completed"},
            headers=host_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    async def test_cannot_complete_before_checkout(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        host_headers: dict,
    ):
        booking = await make_booking(db_session, test_property, test_user, future(10), status="confirmed")
        response = await client.patch(
            f"/api/v1/bookings/{booking.id}/status",
            json={"status": "completed"},
            headers=host_headers,
        )
        assert response.status_code == 400

    async def test_cannot_complete_pending(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        host_headers: dict,
    ):
        booking = await make_booking(db_session, test_property, test_user, future(0) - timedelta(days=5))
        response = await client.patch(
            f"/api/v1/bookings/{booking.id}/status",
            json={"status": "completed"},
            headers=host_headers,
        )
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------


class TestPayment:
    async def test_admin_marks_paid_confirms_pending(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        admin_headers: dict,
    ):
        booking = await make_booking(db_session, test_property, test_user, future(10))
        response = await client.patch(
            f"/api/v1/bookings/{booking.id}/payment",
            json={"payment_status": "paid", "payment_id": "pi_123"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["payment_status"] == "paid"
        assert data["payment_id"] == "pi_123"
        assert data["status"] == "confirmed"

    async def test_host_cannot_set_payment(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        host_headers: dict,
    ):
        booking = await make_booking(db_session, test_property, test_user, future(10))
        response = await client.patch(
            f"/api/v1/bookings/{booking.id}/payment",
            json={"payment_status": "paid"},
            headers=host_headers,
        )
        assert response.status_code == 403

    async def test_checkout_session(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        auth_headers: dict,
    ):
        booking = await make_booking(db_session, test_property, test_user, future(10))
        session = SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1")
        with patch(
            "stayfinder.api.v1.bookings.create_booking_checkout_session",
            new=AsyncMock(return_value=session),
        ) as create:
            response = await client.post(f"/api/v1/bookings/{booking.id}/checkout", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"checkout_url": session.url, "session_id": "cs_test_1"}
        create.assert_awaited_once()
        assert create.await_args.args[1] == test_user.email

    async def test_checkout_rejects_paid_booking(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        auth_headers: dict,
    ):
        booking = await make_booking(
            db_session, test_property, test_user, future(10), status="confirmed", payment_status="paid"
        )
        response = await client.post(f"/api/v1/bookings/{booking.id}/checkout", headers=auth_headers)
        assert response.status_code == 400

    async def test_checkout_without_stripe_key(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_property: Property,
        test_user: User,
        auth_headers: dict,
        monkeypatch,
    ):
        from stayfinder.config import settings

        monkeypatch.setattr(settings, "stripe_secret_key", "")
        booking = await make_booking(db_session, test_property, test_user, future(10))
        response = await client.post(f"/api/v1/bookings/{booking.id}/checkout", headers=auth_headers)
        assert response.status_code == 503
