"""
Booking State Machine - orchestrates search, selection, payment and session linkage.

One machine serves one client. Every event runs to completion before the
next is accepted; the only suspension point is the payment settlement,
during which a second submission is rejected but a cancel is still
accepted.
"""

import asyncio
from enum import Enum
from typing import Callable, Dict, List, Optional, Set
from uuid import uuid4

from loguru import logger

from therapy_booking.config import Settings, get_settings
from therapy_booking.exceptions import (
    InvalidInstrument,
    InvalidTransition,
    MalformedAvailability,
    MissingTherapistContext,
    NoSelection,
    PaymentCancelled,
    PaymentInProgress,
    SlotUnavailable,
)
from therapy_booking.models.booking import Booking
from therapy_booking.models.payment import PaymentInstrument, PaymentRecord
from therapy_booking.models.therapist import SearchCriteria, SearchResult, Therapist
from therapy_booking.services.directory import TherapistDirectory, get_directory
from therapy_booking.services.notification import NotificationService, get_notification_service
from therapy_booking.services.payment import PaymentSimulator, get_payment_simulator
from therapy_booking.services.session import (
    SessionLifecycle,
    SessionRegistry,
    get_session_registry,
)
from therapy_booking.services.session_access import SessionAccessPublisher, build_publisher
from therapy_booking.services.slots import derive_slots


class BookingState(str, Enum):
    SEARCH_IDLE = "search_idle"
    RESULTS_SHOWN = "results_shown"
    THERAPIST_SELECTED = "therapist_selected"
    SLOT_CHOSEN = "slot_chosen"
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_REJECTED = "payment_rejected"
    CONFIRMED = "confirmed"


# Valid transitions: from_state -> allowed to_states.
# Every state may return to SEARCH_IDLE ("book another appointment").
TRANSITIONS: Dict[BookingState, Set[BookingState]] = {
    BookingState.SEARCH_IDLE: {
        BookingState.SEARCH_IDLE,
        BookingState.RESULTS_SHOWN,
    },
    BookingState.RESULTS_SHOWN: {
        BookingState.SEARCH_IDLE,
        BookingState.RESULTS_SHOWN,
        BookingState.THERAPIST_SELECTED,
    },
    BookingState.THERAPIST_SELECTED: {
        BookingState.SEARCH_IDLE,
        BookingState.RESULTS_SHOWN,
        BookingState.THERAPIST_SELECTED,
        BookingState.SLOT_CHOSEN,
    },
    BookingState.SLOT_CHOSEN: {
        BookingState.SEARCH_IDLE,
        BookingState.RESULTS_SHOWN,
        BookingState.THERAPIST_SELECTED,
        BookingState.SLOT_CHOSEN,
        BookingState.AWAITING_PAYMENT,
    },
    BookingState.AWAITING_PAYMENT: {
        BookingState.SEARCH_IDLE,
        BookingState.SLOT_CHOSEN,
        BookingState.PAYMENT_REJECTED,
        BookingState.CONFIRMED,
    },
    BookingState.PAYMENT_REJECTED: {
        BookingState.SEARCH_IDLE,
        BookingState.SLOT_CHOSEN,
        BookingState.AWAITING_PAYMENT,
    },
    BookingState.CONFIRMED: {
        BookingState.SEARCH_IDLE,
    },
}


# States in which day and slot may still be edited.
SELECTION_STATES = {BookingState.THERAPIST_SELECTED, BookingState.SLOT_CHOSEN}


def new_meeting_id() -> str:
    """Opaque meeting identifier."""
    return uuid4().hex[:12]


class BookingStateMachine:
    """
    Drives one client from therapist search to a confirmed, linked session.

    Collaborators default to the process-wide singletons and can be
    injected for testing or alternative deployments.
    """

    def __init__(
        self,
        directory: Optional[TherapistDirectory] = None,
        payment_simulator: Optional[PaymentSimulator] = None,
        notification_service: Optional[NotificationService] = None,
        publisher: Optional[SessionAccessPublisher] = None,
        session_registry: Optional[SessionRegistry] = None,
        settings: Optional[Settings] = None,
        client_email: Optional[str] = None,
        meeting_id_factory: Callable[[], str] = new_meeting_id,
    ):
        self.settings = settings if settings is not None else get_settings()
        self._directory = directory if directory is not None else get_directory()
        self._payments = (
            payment_simulator if payment_simulator is not None else get_payment_simulator()
        )
        self._notifications = (
            notification_service
            if notification_service is not None
            else get_notification_service()
        )
        self._publisher = publisher if publisher is not None else build_publisher(self.settings)
        self._registry = (
            session_registry if session_registry is not None else get_session_registry()
        )
        self._meeting_id_factory = meeting_id_factory
        self.client_email = client_email

        self._state = BookingState.SEARCH_IDLE
        self._payment_task: Optional[asyncio.Future] = None
        self._cancel_requested = False
        self._pending_notifications: Set[asyncio.Future] = set()
        self._clear()

    def _clear(self) -> None:
        self.results: Optional[SearchResult] = None
        self.therapist: Optional[Therapist] = None
        self.day: Optional[str] = None
        self.slot: Optional[str] = None
        self.booking: Optional[Booking] = None
        self.session: Optional[SessionLifecycle] = None
        self.last_error: Optional[str] = None
        self.slot_error: Optional[MalformedAvailability] = None
        self._slots: List[str] = []
        self._attempt_id: Optional[str] = None

    # ==================== State helpers ====================

    @property
    def state(self) -> BookingState:
        return self._state

    @property
    def available_days(self) -> List[str]:
        return self.therapist.available_days if self.therapist else []

    @property
    def available_slots(self) -> List[str]:
        """Slots for the selected therapist and day; empty disables slot selection."""
        return list(self._slots)

    @property
    def payment_in_progress(self) -> bool:
        return self._payment_task is not None and not self._payment_task.done()

    @property
    def consultation_fee(self) -> int:
        return self.settings.consultation_fee

    def can_transition(self, target: BookingState) -> bool:
        return target in TRANSITIONS[self._state]

    def _ensure_can(self, target: BookingState, event: str) -> None:
        if not self.can_transition(target):
            raise InvalidTransition(self._state.value, event)

    def _transition(self, target: BookingState, event: str) -> None:
        self._ensure_can(target, event)
        if target != self._state:
            logger.info(f"Booking: {self._state.value} -> {target.value} ({event})")
        self._state = target

    def _require_therapist(self) -> Therapist:
        if self.therapist is None:
            raise MissingTherapistContext()
        return self.therapist

    def _require_selection(self) -> None:
        if not (self.day and self.slot):
            raise NoSelection()

    def _refresh_slots(self) -> None:
        """Recompute slots for the current (therapist, day)."""
        self.slot_error = None
        self._slots = []
        if self.therapist is None or self.day is None:
            return
        try:
            self._slots = derive_slots(self.therapist.availability[self.day])
        except MalformedAvailability as e:
            self.slot_error = e
            logger.warning(
                f"Unusable availability for {self.therapist.name} on {self.day}: {e.message}"
            )

    # ==================== Search and selection ====================

    def search(
        self,
        criteria: Optional[SearchCriteria] = None,
        specialty: Optional[str] = None,
        day: Optional[str] = None,
    ) -> SearchResult:
        """
        Run a directory search and show its results.

        Any previous selection is discarded.
        """
        self._ensure_can(BookingState.RESULTS_SHOWN, "search")
        result = self._directory.search(criteria, specialty=specialty, day=day)

        self._clear()
        self.results = result
        self._transition(BookingState.RESULTS_SHOWN, "search")
        return result

    def select_therapist(self, therapist_id: str) -> Therapist:
        """
        Select a therapist from the current results.

        The first listed availability day becomes the selected day and the
        slot selection is cleared.

        Raises:
            MissingTherapistContext: If the therapist is not in the results
        """
        self._ensure_can(BookingState.THERAPIST_SELECTED, "select a therapist")

        therapist = None
        if self.results is not None:
            therapist = next(
                (t for t in self.results.therapists if t.id == str(therapist_id)), None
            )
        if therapist is None:
            raise MissingTherapistContext(
                f"Therapist {therapist_id} is not in the current search results",
                therapist_id=str(therapist_id),
            )

        self.therapist = therapist
        self.day = therapist.first_available_day
        self.slot = None
        self._refresh_slots()
        self._transition(BookingState.THERAPIST_SELECTED, "select a therapist")
        return therapist

    def choose_day(self, day: str) -> List[str]:
        """
        Change the selected day. Clears the slot.

        Returns:
            Slots available on that day

        Raises:
            MissingTherapistContext: If no therapist is selected
            SlotUnavailable: If the therapist is not available that day
        """
        therapist = self._require_therapist()
        self._ensure_can(BookingState.THERAPIST_SELECTED, "choose a day")
        if day not in therapist.availability:
            raise SlotUnavailable(day)

        self.day = day
        self.slot = None
        self._refresh_slots()
        self._transition(BookingState.THERAPIST_SELECTED, "choose a day")
        return self.available_slots

    def choose_slot(self, slot: str) -> None:
        """
        Choose a time slot on the selected day.

        Raises:
            MissingTherapistContext: If no therapist is selected
            SlotUnavailable: If the slot is not offered that day; state is unchanged
        """
        self._require_therapist()
        if self._state not in SELECTION_STATES:
            raise InvalidTransition(self._state.value, "choose a slot")
        if slot not in self._slots:
            logger.warning(f"Rejected slot {slot!r} for {self.day}")
            raise SlotUnavailable(self.day, slot)

        self.slot = slot
        self._transition(BookingState.SLOT_CHOSEN, "choose a slot")

    def proceed_to_payment(self) -> bool:
        """
        Submit the booking form.

        Returns:
            True if the machine now awaits payment, False if day or slot
            is missing (nothing changes in that case)
        """
        self._require_therapist()
        try:
            self._require_selection()
        except NoSelection:
            logger.debug("Booking form submitted without day and slot; ignored")
            return False

        self._transition(BookingState.AWAITING_PAYMENT, "proceed to payment")
        self._attempt_id = uuid4().hex
        self.last_error = None
        return True

    # ==================== Payment ====================

    async def submit_payment(self, instrument: PaymentInstrument) -> Booking:
        """
        Pay for the selected slot and confirm the booking.

        Returns:
            The confirmed Booking

        Raises:
            InvalidInstrument: Card details rejected; the machine waits for a new submission
            PaymentInProgress: A payment for this attempt is still settling
            PaymentCancelled: The payment was cancelled before it settled
        """
        if self.payment_in_progress:
            raise PaymentInProgress(self._attempt_id)
        if self._state == BookingState.PAYMENT_REJECTED:
            self._transition(BookingState.AWAITING_PAYMENT, "resubmit payment")
        elif self._state != BookingState.AWAITING_PAYMENT:
            raise InvalidTransition(self._state.value, "submit payment")

        self._cancel_requested = False
        self._payment_task = asyncio.ensure_future(
            self._payments.submit(
                instrument, amount=self.consultation_fee, attempt_id=self._attempt_id
            )
        )
        try:
            record = await self._payment_task
        except InvalidInstrument as e:
            self.last_error = e.reason
            logger.warning(f"Payment rejected: {e.reason}")
            self._transition(BookingState.PAYMENT_REJECTED, "reject payment")
            raise
        except asyncio.CancelledError:
            if self._cancel_requested:
                raise PaymentCancelled() from None
            raise
        finally:
            self._payment_task = None

        if self._cancel_requested or self._state != BookingState.AWAITING_PAYMENT:
            logger.warning(f"Discarding settled payment {record.transaction_id}: booking cancelled")
            raise PaymentCancelled()

        return self._confirm(record)

    def cancel_payment(self) -> None:
        """
        Leave the payment step, keeping the day and slot.

        An in-flight settlement is cancelled and its submit_payment call
        raises PaymentCancelled.
        """
        self._ensure_can(BookingState.SLOT_CHOSEN, "cancel payment")
        self._abort_payment()
        self.last_error = None
        self._transition(BookingState.SLOT_CHOSEN, "cancel payment")

    def _abort_payment(self) -> None:
        if self.payment_in_progress:
            self._cancel_requested = True
            self._payment_task.cancel()

    # ==================== Confirmation ====================

    def _next_meeting_id(self) -> str:
        meeting_id = self._meeting_id_factory()
        while meeting_id in self._registry:
            meeting_id = self._meeting_id_factory()
        return meeting_id

    def _confirm(self, record: PaymentRecord) -> Booking:
        """Bind the paid selection to a new meeting and start its session."""
        therapist = self._require_therapist()
        meeting_id = self._next_meeting_id()
        booking = Booking(
            therapist=therapist,
            day=self.day,
            slot=self.slot,
            payment=record,
            meeting_id=meeting_id,
            session_link=self._publisher.link_for(meeting_id),
        )

        session = SessionLifecycle(meeting_id, settings=self.settings)
        self._registry.register(session)
        session.start()

        self.booking = booking
        self.session = session
        self._transition(BookingState.CONFIRMED, "confirm booking")

        logger.info("=" * 60)
        logger.info("BOOKING CONFIRMED")
        logger.info("=" * 60)
        logger.info(f"Booking ID: {booking.id}")
        logger.info(f"Therapist: {therapist.name}")
        logger.info(f"Date/Time: {booking.formatted_time}")
        logger.info(f"Transaction: {record.transaction_id} ({record.formatted_amount})")
        logger.info(f"Meeting ID: {meeting_id}")
        logger.info(f"Session link: {booking.session_link}")
        logger.info("=" * 60)

        if self._publisher.sends_notification:
            self._notify(booking)
        return booking

    def _notify(self, booking: Booking) -> None:
        """Fire the notification without waiting for delivery."""
        task = asyncio.ensure_future(
            self._notifications.send_meeting_details(
                self.client_email, booking.meeting_details()
            )
        )
        self._pending_notifications.add(task)
        task.add_done_callback(self._on_notification_done)

    def _on_notification_done(self, task: asyncio.Future) -> None:
        self._pending_notifications.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Notification delivery failed: {error}")
        elif not task.result():
            logger.warning("Notification was not delivered")

    async def flush_notifications(self) -> None:
        """Wait for outstanding notifications to finish."""
        if self._pending_notifications:
            await asyncio.gather(*self._pending_notifications, return_exceptions=True)

    # ==================== Reset ====================

    def start_over(self) -> None:
        """
        Return to an empty search ("book another appointment").

        The machine forgets its booking and session; a running session
        keeps going and stays reachable through the session registry.
        """
        self._abort_payment()
        self._clear()
        self._transition(BookingState.SEARCH_IDLE, "start over")
