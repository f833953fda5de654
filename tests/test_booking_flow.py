"""
End-to-end test of a booking: search, selection, payment, session.
"""

import pytest

from conftest import CLIENT_EMAIL
from therapy_booking.exceptions import InvalidInstrument
from therapy_booking.models.payment import PaymentInstrument
from therapy_booking.models.session import SessionStatus
from therapy_booking.services.booking import BookingState, BookingStateMachine
from therapy_booking.services.directory import TherapistDirectory
from therapy_booking.services.payment import PaymentSimulator
from therapy_booking.services.session_access import build_publisher


@pytest.fixture
def anxiety_directory():
    return TherapistDirectory(
        [
            {
                "id": "t1",
                "name": "Dr. Sarah Johnson",
                "specialties": ["Anxiety"],
                "availability": {"Monday": "9:00 - 11:00"},
            }
        ]
    )


@pytest.fixture
def flow_machine(fast_settings, anxiety_directory, notifier, registry):
    return BookingStateMachine(
        directory=anxiety_directory,
        payment_simulator=PaymentSimulator(fast_settings),
        notification_service=notifier,
        publisher=build_publisher(fast_settings),
        session_registry=registry,
        settings=fast_settings,
        client_email=CLIENT_EMAIL,
    )


class TestBookingFlow:
    """A client books a Monday anxiety consultation."""

    @pytest.mark.asyncio
    async def test_happy_path(self, flow_machine, notifier):
        machine = flow_machine

        result = machine.search(specialty="Anxiety", day="Monday")
        assert [t.id for t in result.therapists] == ["t1"]

        machine.select_therapist("t1")
        assert machine.day == "Monday"
        assert machine.available_slots == ["9:00 AM", "10:00 AM"]

        machine.choose_slot("10:00 AM")
        assert machine.proceed_to_payment()

        booking = await machine.submit_payment(
            PaymentInstrument(card_number="4242 4242 4242 4242", cvv="123", payment_method="debit")
        )

        assert machine.state == BookingState.CONFIRMED
        assert booking.meeting_id
        assert booking.payment.amount == 150
        assert booking.payment.formatted_amount == "$150.00"
        assert booking.confirmation_message == (
            "Your appointment with Dr. Sarah Johnson is confirmed for Monday at 10:00 AM."
        )

        session = machine.session
        assert session.status == SessionStatus.CONNECTING
        assert await session.wait_connected(timeout=1)
        assert session.participant_count == 2
        session.tick()
        session.toggle_mute()

        final = session.end()
        assert final.status == SessionStatus.ENDED
        assert final.elapsed_seconds == 1
        assert final.muted

        await machine.flush_notifications()
        assert [call[1].meeting_id for call in notifier.calls] == [booking.meeting_id]

    @pytest.mark.asyncio
    async def test_rejected_card_then_retry(self, flow_machine):
        machine = flow_machine
        machine.search(specialty="Anxiety")
        machine.select_therapist("t1")
        machine.choose_slot("9:00 AM")
        machine.proceed_to_payment()

        with pytest.raises(InvalidInstrument):
            await machine.submit_payment(PaymentInstrument(card_number="12345", cvv="123"))
        assert machine.state == BookingState.PAYMENT_REJECTED
        assert machine.booking is None

        booking = await machine.submit_payment(
            PaymentInstrument(card_number="4242424242424242", cvv="123")
        )
        assert booking.slot == "9:00 AM"

        machine.start_over()
        assert machine.state == BookingState.SEARCH_IDLE
