"""
Services layer for the therapist booking engine.
"""

from .booking import BookingState, BookingStateMachine
from .directory import TherapistDirectory
from .notification import NotificationService
from .payment import PaymentSimulator
from .session import SessionLifecycle, SessionRegistry
from .session_access import ExternalMeetingPublisher, InternalRoutePublisher
from .slots import derive_slots, format_slot

__all__ = [
    "BookingState",
    "BookingStateMachine",
    "TherapistDirectory",
    "NotificationService",
    "PaymentSimulator",
    "SessionLifecycle",
    "SessionRegistry",
    "ExternalMeetingPublisher",
    "InternalRoutePublisher",
    "derive_slots",
    "format_slot",
]
