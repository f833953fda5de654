"""Custom exception classes for the booking engine."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class BookingEngineError(Exception):
    """Base exception for the booking engine."""

    def __init__(
        self, message: str, recoverable: bool = True, details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize booking engine error.

        Args:
            message: Error message
            recoverable: Whether the caller can correct the input and retry
            details: Additional error details
        """
        self.message = message
        self.recoverable = recoverable
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "recoverable": self.recoverable,
            "details": self.details,
            "timestamp": self.timestamp,
        }


class MalformedAvailability(BookingEngineError):
    """An availability range string could not be parsed."""

    def __init__(self, range_str: Any, reason: str = "expected 'H:MM - H:MM'"):
        super().__init__(
            f"Malformed availability range {range_str!r}: {reason}",
            recoverable=False,
            details={"range": range_str, "reason": reason},
        )
        self.range_str = range_str
        self.reason = reason


class InvalidInstrument(BookingEngineError):
    """Payment instrument failed validation."""

    def __init__(self, reason: str):
        super().__init__(reason, recoverable=True, details={"reason": reason})
        self.reason = reason


class NoSelection(BookingEngineError):
    """Day or slot missing when advancing the booking."""

    def __init__(self, message: str = "Select a day and a time slot first"):
        super().__init__(message, recoverable=True)


class MissingTherapistContext(BookingEngineError):
    """A booking step was attempted without a selected therapist."""

    def __init__(
        self,
        message: str = "No therapist selected. Please return to the search page.",
        therapist_id: Optional[str] = None,
    ):
        details = {"therapist_id": therapist_id} if therapist_id else {}
        super().__init__(message, recoverable=True, details=details)


class SlotUnavailable(BookingEngineError):
    """Requested day or time slot is not offered by the therapist."""

    def __init__(self, day: Optional[str], slot: Optional[str] = None):
        if slot is None:
            message = f"Day {day!r} is not in the therapist's availability"
        else:
            message = f"Time slot {slot!r} is not available on {day}"
        super().__init__(message, recoverable=True, details={"day": day, "slot": slot})


class PaymentInProgress(BookingEngineError):
    """A payment for this booking attempt is already being processed."""

    def __init__(self, attempt_id: Optional[str] = None):
        super().__init__(
            "Payment is already being processed",
            recoverable=True,
            details={"attempt_id": attempt_id} if attempt_id else {},
        )


class PaymentCancelled(BookingEngineError):
    """The in-flight payment was cancelled before settlement."""

    def __init__(self, message: str = "Payment cancelled"):
        super().__init__(message, recoverable=True)


class InvalidTransition(BookingEngineError):
    """Event is not accepted in the current booking state."""

    def __init__(self, current: str, event: str):
        super().__init__(
            f"Cannot {event} while in state {current}",
            recoverable=True,
            details={"state": current, "event": event},
        )


class SessionEnded(BookingEngineError):
    """Operation attempted on a session that has ended."""

    def __init__(self, meeting_id: str):
        super().__init__(
            f"Session {meeting_id} has ended",
            recoverable=False,
            details={"meeting_id": meeting_id},
        )


class DuplicateMeetingId(BookingEngineError):
    """A meeting id was issued twice."""

    def __init__(self, meeting_id: str):
        super().__init__(
            f"Meeting id {meeting_id} is already in use",
            recoverable=True,
            details={"meeting_id": meeting_id},
        )
