"""
Notification Service - delivers meeting details to the client.

Delivery is best-effort. When a webhook is configured the details are
posted to it; otherwise the message is only logged. Failures are logged
and reported as False, never raised, so a confirmed booking is never
affected by notification problems.
"""

from typing import Optional

import httpx
from loguru import logger

from therapy_booking.config import Settings, get_settings
from therapy_booking.models.booking import MeetingDetails


class NotificationService:
    """
    Async client for the email notification webhook.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.notification_timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def send_meeting_details(
        self, recipient: Optional[str], details: MeetingDetails
    ) -> bool:
        """
        Send meeting details to the client.

        Args:
            recipient: Client email address
            details: Meeting information

        Returns:
            True if the notification was delivered (or logged), False otherwise
        """
        if not recipient:
            logger.warning(
                f"No recipient address for meeting {details.meeting_id}; notification skipped"
            )
            return False

        webhook_url = self.settings.notification_webhook_url
        if not webhook_url:
            logger.info("=" * 60)
            logger.info("EMAIL NOTIFICATION LOG")
            logger.info("=" * 60)
            logger.info(f"To: {recipient}")
            logger.info(f"Therapist: {details.therapist_name}")
            logger.info(f"Date/Time: {details.date} at {details.time}")
            logger.info(f"Meeting ID: {details.meeting_id}")
            logger.info(f"Meeting URL: {details.meeting_url}")
            logger.info("=" * 60)
            return True

        client = await self._get_client()
        try:
            response = await client.post(
                webhook_url,
                json={"recipient": recipient, "meeting": details.model_dump()},
            )
            response.raise_for_status()
            logger.info(f"Meeting details for {details.meeting_id} sent to {recipient}")
            return True

        except httpx.HTTPStatusError as e:
            logger.error(f"Notification webhook returned {e.response.status_code}: {e}")
            return False
        except httpx.RequestError as e:
            logger.error(f"Request error sending notification: {e}")
            return False


# Singleton instance
_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get the singleton notification service instance."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
