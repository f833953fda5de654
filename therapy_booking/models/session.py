"""
Virtual session state models.
"""

from enum import Enum

from pydantic import BaseModel, Field


class SessionStatus(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    ENDED = "ended"


class SessionState(BaseModel):
    """
    Point-in-time view of a virtual session.
    """

    meeting_id: str
    status: SessionStatus
    connected: bool = Field(default=False)
    muted: bool = Field(default=False)
    video_off: bool = Field(default=False)
    participant_count: int = Field(default=1, ge=1)
    elapsed_seconds: int = Field(default=0, ge=0)

    @property
    def formatted_elapsed(self) -> str:
        """Elapsed time as MM:SS."""
        minutes, seconds = divmod(self.elapsed_seconds, 60)
        return f"{minutes:02d}:{seconds:02d}"

    @property
    def participant_label(self) -> str:
        suffix = "" if self.participant_count == 1 else "s"
        return f"{self.participant_count} participant{suffix} in the session"
