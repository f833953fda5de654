"""
Session access publishing strategies.

A deployment picks one way of reaching a confirmed session:

- external: a third-party video endpoint, with the meeting details
  emailed to the client
- internal: the application's own session route, without notification
"""

from abc import ABC, abstractmethod
from typing import Optional

from therapy_booking.config import Settings, get_settings


class SessionAccessPublisher(ABC):
    """Builds the address at which a confirmed session can be reached."""

    mode: str = ""
    sends_notification: bool = False

    @abstractmethod
    def link_for(self, meeting_id: str) -> str:
        """Address of the session for this meeting id."""


class ExternalMeetingPublisher(SessionAccessPublisher):
    """Links to a third-party video endpoint and notifies the client."""

    mode = "external"
    sends_notification = True

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    def link_for(self, meeting_id: str) -> str:
        return f"{self.base_url}/{meeting_id}"


class InternalRoutePublisher(SessionAccessPublisher):
    """Links to the internal session route. No notification is sent."""

    mode = "internal"
    sends_notification = False

    def __init__(self, route: str):
        self.route = "/" + route.strip("/")

    def link_for(self, meeting_id: str) -> str:
        return f"{self.route}/{meeting_id}"


def build_publisher(settings: Optional[Settings] = None) -> SessionAccessPublisher:
    """Create the publisher selected by SESSION_ACCESS_MODE."""
    settings = settings if settings is not None else get_settings()
    if settings.session_access_mode == "internal":
        return InternalRoutePublisher(settings.internal_session_route)
    return ExternalMeetingPublisher(settings.external_meeting_base_url)
