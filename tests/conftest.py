"""
Shared fixtures for the booking engine tests.
"""

from typing import List, Optional, Tuple

import pytest

from therapy_booking.config import Settings
from therapy_booking.models.booking import MeetingDetails
from therapy_booking.services.booking import BookingStateMachine
from therapy_booking.services.directory import TherapistDirectory
from therapy_booking.services.payment import PaymentSimulator
from therapy_booking.services.session import SessionRegistry
from therapy_booking.services.session_access import ExternalMeetingPublisher

CLIENT_EMAIL = "client@example.com"

CATALOG = [
    {
        "id": 1,
        "name": "Dr. Ada Calm",
        "specialties": ["Anxiety", "Stress Management"],
        "availability": {"Monday": "9:00 - 11:00"},
    },
    {
        "id": 2,
        "name": "Dr. Ben Bond",
        "specialties": ["Couples Therapy"],
        "availability": {"Tuesday": "13:00 - 15:00", "Thursday": "10:00 - 12:00"},
    },
    {
        "id": 3,
        "name": "Dr. Cal Broken",
        "specialties": ["Grief"],
        "availability": {"Friday": "nine - 5:00", "Saturday": "10:00 - 12:00"},
    },
]

VALID_CARD = {"card_number": "4242424242424242", "cvv": "123", "payment_method": "credit"}


class RecordingNotifier:
    """Stand-in notification collaborator that records every call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[Tuple[Optional[str], MeetingDetails]] = []

    async def send_meeting_details(self, recipient, details) -> bool:
        self.calls.append((recipient, details))
        if self.fail:
            raise RuntimeError("mail server unreachable")
        return True


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with near-zero simulated delays."""
    return Settings(
        consultation_fee=150,
        currency="USD",
        payment_settlement_delay=0,
        payment_settlement_jitter=0,
        session_connection_delay=0.01,
        session_tick_interval=60,
        session_access_mode="external",
        notification_webhook_url=None,
    )


@pytest.fixture
def directory() -> TherapistDirectory:
    return TherapistDirectory(CATALOG)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def registry():
    """Session registry torn down inside the test's event loop."""
    reg = SessionRegistry()
    yield reg
    reg.teardown_all()


@pytest.fixture
def machine(fast_settings, directory, notifier, registry) -> BookingStateMachine:
    return BookingStateMachine(
        directory=directory,
        payment_simulator=PaymentSimulator(fast_settings),
        notification_service=notifier,
        publisher=ExternalMeetingPublisher("https://meet.jit.si"),
        session_registry=registry,
        settings=fast_settings,
        client_email=CLIENT_EMAIL,
    )
