"""
Data models for the therapist booking engine.
"""

from .booking import Booking, MeetingDetails
from .payment import PaymentInstrument, PaymentRecord, PaymentStatus
from .session import SessionState, SessionStatus
from .therapist import SearchCriteria, SearchResult, Therapist

__all__ = [
    "Therapist",
    "SearchCriteria",
    "SearchResult",
    "PaymentInstrument",
    "PaymentRecord",
    "PaymentStatus",
    "Booking",
    "MeetingDetails",
    "SessionState",
    "SessionStatus",
]
