"""
Booking-related data models.
"""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from therapy_booking.models.payment import PaymentRecord
from therapy_booking.models.therapist import Therapist


class MeetingDetails(BaseModel):
    """
    Meeting information handed to the notification collaborator.
    """

    therapist_name: str
    date: str = Field(description="Booked day")
    time: str = Field(description="Booked slot label")
    meeting_id: str
    meeting_url: str


class Booking(BaseModel):
    """
    A confirmed appointment.

    Only built after a successful payment, and never modified afterwards.
    """

    id: UUID = Field(default_factory=uuid4, description="Booking identifier")
    therapist: Therapist = Field(description="Booked therapist")
    day: str = Field(description="Booked day")
    slot: str = Field(description="Booked time slot label")
    payment: PaymentRecord = Field(description="Successful payment record")
    meeting_id: str = Field(description="Opaque meeting identifier")
    session_link: str = Field(description="Address where the session can be joined")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def formatted_time(self) -> str:
        return f"{self.day} at {self.slot}"

    @property
    def confirmation_message(self) -> str:
        return (
            f"Your appointment with {self.therapist.name} is confirmed for "
            f"{self.day} at {self.slot}."
        )

    def meeting_details(self) -> MeetingDetails:
        return MeetingDetails(
            therapist_name=self.therapist.name,
            date=self.day,
            time=self.slot,
            meeting_id=self.meeting_id,
            meeting_url=self.session_link,
        )

    model_config = {
        "frozen": True,
        "json_encoders": {
            datetime: lambda v: v.isoformat(),
            UUID: lambda v: str(v),
        },
    }
