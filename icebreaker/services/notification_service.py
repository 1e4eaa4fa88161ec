"""
Meeting Notification Service
Announces meeting events (invited, confirmed, declined, cancelled,
rescheduled, completed) to the other participant.

When NOTIFICATION_WEBHOOK_URL is set the event is POSTed there, otherwise it
is only logged. Delivery failures never fail the triggering action.
"""

import logging
from typing import Optional

import httpx

from ..config import NOTIFICATION_WEBHOOK_URL
from ..models import Meeting

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(
        self,
        webhook_url: Optional[str] = NOTIFICATION_WEBHOOK_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.transport = transport

    async def send_meeting_notification(
        self, event: str, meeting: Meeting, recipient_id: str, actor_id: Optional[str] = None
    ) -> bool:
        """
        Notify `recipient_id` about `event` on `meeting`

        Returns:
            True if the notification was delivered (or logged), False on failure
        """
        payload = {
            "event": event,
            "meetingId": meeting.id,
            "recipientId": recipient_id,
            "actorId": actor_id,
            "status": meeting.status,
            "scheduledAt": meeting.scheduled_at.isoformat() if meeting.scheduled_at else None,
        }

        if not self.webhook_url:
            logger.info(f"🔔 Meeting {event} for {recipient_id} (meeting {meeting.id})")
            return True

        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self.transport) as client:
                response = await client.post(self.webhook_url, json=payload)
            if response.status_code >= 400:
                logger.error(
                    f"❌ Failed to send meeting {event} notification: HTTP {response.status_code}"
                )
                return False
            logger.info(f"✅ Meeting {event} notification sent to {recipient_id}")
            return True
        except httpx.HTTPError as e:
            logger.error(f"❌ Failed to send meeting {event} notification to {recipient_id}: {e}")
            return False
