"""
Integration tests for the Booking API.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from therapy_booking.api.booking_server import app, get_booking_machine
from therapy_booking.config import THERAPIST_PROFILES
from therapy_booking.services import directory as directory_module
from therapy_booking.services import session as session_module
from therapy_booking.services.booking import BookingStateMachine
from therapy_booking.services.directory import TherapistDirectory
from therapy_booking.services.payment import PaymentSimulator
from therapy_booking.services.session import SessionLifecycle, SessionRegistry


@pytest.fixture(autouse=True)
async def live_registry(monkeypatch):
    """Fresh catalog and session registry for each test."""
    monkeypatch.setattr(directory_module, "_directory", TherapistDirectory(THERAPIST_PROFILES))
    registry = SessionRegistry()
    monkeypatch.setattr(session_module, "_registry", registry)
    yield registry
    registry.teardown_all()


@pytest.fixture
async def client():
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def session(live_registry):
    """A registered session that connects almost immediately."""
    s = SessionLifecycle("meet-1", connection_delay=0.01, tick_interval=60)
    live_registry.register(s)
    s.start()
    return s


class TestHealthEndpoint:
    """Test health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        """Health endpoint should return OK."""
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestSearchEndpoint:
    """Test therapist search."""

    @pytest.mark.asyncio
    async def test_search_all(self, client):
        response = await client.get("/api/v1/therapists")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == len(THERAPIST_PROFILES)
        assert data["summary"] == "5 therapists available (No filters applied)"

    @pytest.mark.asyncio
    async def test_search_by_specialty(self, client):
        response = await client.get("/api/v1/therapists", params={"specialty": "Anxiety"})
        data = response.json()
        assert [t["id"] for t in data["therapists"]] == ["1", "3"]
        assert data["criteria"] == {"specialty": "Anxiety", "day": None}

    @pytest.mark.asyncio
    async def test_search_by_specialty_and_day(self, client):
        response = await client.get(
            "/api/v1/therapists", params={"specialty": "Anxiety", "day": "Saturday"}
        )
        data = response.json()
        assert [t["name"] for t in data["therapists"]] == ["Dr. Emily Rodriguez"]

    @pytest.mark.asyncio
    async def test_search_without_matches(self, client):
        response = await client.get("/api/v1/therapists", params={"day": "Sunday"})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 0
        assert data["summary"].startswith("No therapists found")
        assert "Day: Sunday" in data["summary"]

    @pytest.mark.asyncio
    async def test_filters(self, client):
        response = await client.get("/api/v1/therapists/filters")
        assert response.status_code == 200
        data = response.json()
        assert data["specialties"][:3] == ["ADHD", "Addiction", "Anxiety"]
        assert data["days"] == [
            "Friday",
            "Monday",
            "Saturday",
            "Thursday",
            "Tuesday",
            "Wednesday",
        ]


class TestTherapistEndpoints:
    """Test therapist lookup and slots."""

    @pytest.mark.asyncio
    async def test_get_therapist(self, client):
        response = await client.get("/api/v1/therapists/2")
        assert response.status_code == 200
        assert response.json()["name"] == "Dr. Michael Chen"

    @pytest.mark.asyncio
    async def test_get_unknown_therapist(self, client):
        response = await client.get("/api/v1/therapists/99")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_slots_default_to_first_day(self, client):
        response = await client.get("/api/v1/therapists/1/slots")
        assert response.status_code == 200
        data = response.json()
        assert data["day"] == "Monday"
        assert len(data["slots"]) == 8
        assert data["slots"][0] == "9:00 AM"
        assert data["slots"][-1] == "4:00 PM"

    @pytest.mark.asyncio
    async def test_slots_for_day(self, client):
        response = await client.get("/api/v1/therapists/5/slots", params={"day": "Friday"})
        assert response.json()["slots"] == [
            "12:00 PM",
            "1:00 PM",
            "2:00 PM",
            "3:00 PM",
            "4:00 PM",
            "5:00 PM",
        ]

    @pytest.mark.asyncio
    async def test_slots_for_unavailable_day(self, client):
        response = await client.get("/api/v1/therapists/1/slots", params={"day": "Sunday"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_slots_for_malformed_availability(self, client, monkeypatch):
        monkeypatch.setattr(
            directory_module,
            "_directory",
            TherapistDirectory(
                [{"id": "x", "name": "Dr. Typo", "availability": {"Monday": "9am - 5pm"}}]
            ),
        )

        response = await client.get("/api/v1/therapists/x/slots")

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["error"] == "MalformedAvailability"
        assert detail["details"]["range"] == "9am - 5pm"


class TestSessionEndpoints:
    """Test the internal virtual-session route."""

    @pytest.mark.asyncio
    async def test_unknown_session(self, client):
        response = await client.get("/api/v1/sessions/nope")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_session_progression(self, client, session):
        response = await client.get("/api/v1/sessions/meet-1")
        assert response.status_code == 200
        assert response.json()["status"] == "connecting"
        assert response.json()["participant_count"] == 1

        await session.wait_connected(timeout=1)

        data = (await client.get("/api/v1/sessions/meet-1")).json()
        assert data["status"] == "active"
        assert data["connected"] is True
        assert data["participant_count"] == 2

    @pytest.mark.asyncio
    async def test_toggles(self, client, session):
        response = await client.post("/api/v1/sessions/meet-1/mute")
        assert response.json()["muted"] is True

        response = await client.post("/api/v1/sessions/meet-1/video")
        assert response.json()["video_off"] is True

        response = await client.post("/api/v1/sessions/meet-1/mute")
        assert response.json()["muted"] is False

    @pytest.mark.asyncio
    async def test_end_session(self, client, session, live_registry):
        await session.wait_connected(timeout=1)
        session.tick()

        response = await client.post("/api/v1/sessions/meet-1/end")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ended"
        assert data["elapsed_seconds"] == 1

        assert live_registry.get("meet-1") is None
        response = await client.post("/api/v1/sessions/meet-1/mute")
        assert response.status_code == 404


BOOKING_REQUEST = {
    "therapist_id": "1",
    "day": "Monday",
    "slot": "10:00 AM",
    "client_email": "client@example.com",
    "payment": {"card_number": "4242 4242 4242 4242", "cvv": "123", "payment_method": "credit"},
}


@pytest.fixture
def internal_bookings(live_registry, fast_settings, notifier):
    """Book through the API with fast settings and internal session links."""
    settings = fast_settings.model_copy(update={"session_access_mode": "internal"})

    def build_machine() -> BookingStateMachine:
        return BookingStateMachine(
            payment_simulator=PaymentSimulator(settings),
            notification_service=notifier,
            session_registry=live_registry,
            settings=settings,
        )

    app.dependency_overrides[get_booking_machine] = build_machine
    yield settings
    app.dependency_overrides.pop(get_booking_machine, None)


class TestBookingEndpoint:
    """Test booking through the API."""

    @pytest.mark.asyncio
    async def test_booking_link_reaches_session(self, client, internal_bookings, notifier):
        response = await client.post("/api/v1/bookings", json=BOOKING_REQUEST)

        assert response.status_code == 201
        data = response.json()
        meeting_id = data["booking"]["meeting_id"]
        link = data["booking"]["session_link"]
        assert link == f"/api/v1/sessions/{meeting_id}"
        assert data["booking"]["payment"]["amount"] == 150
        assert data["session"]["status"] == "connecting"
        assert data["confirmation_message"].endswith("Monday at 10:00 AM.")
        assert notifier.calls == []

        response = await client.get(link)
        assert response.status_code == 200
        assert response.json()["meeting_id"] == meeting_id

        response = await client.post(f"{link}/end")
        assert response.json()["status"] == "ended"
        assert (await client.get(link)).status_code == 404

    @pytest.mark.asyncio
    async def test_day_defaults_to_first_listed(self, client, internal_bookings):
        request = {**BOOKING_REQUEST, "day": None, "slot": "9:00 AM"}
        response = await client.post("/api/v1/bookings", json=request)

        assert response.status_code == 201
        assert response.json()["booking"]["day"] == "Monday"

    @pytest.mark.asyncio
    async def test_unknown_therapist(self, client, internal_bookings):
        response = await client.post(
            "/api/v1/bookings", json={**BOOKING_REQUEST, "therapist_id": "99"}
        )
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "MissingTherapistContext"

    @pytest.mark.asyncio
    async def test_slot_not_offered(self, client, internal_bookings, live_registry):
        response = await client.post(
            "/api/v1/bookings", json={**BOOKING_REQUEST, "slot": "8:00 PM"}
        )
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "SlotUnavailable"
        assert len(live_registry) == 0

    @pytest.mark.asyncio
    async def test_invalid_card(self, client, internal_bookings, live_registry):
        request = {**BOOKING_REQUEST, "payment": {"card_number": "12345", "cvv": "123"}}
        response = await client.post("/api/v1/bookings", json=request)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "InvalidInstrument"
        assert detail["message"] == "Invalid card number"
        assert len(live_registry) == 0
