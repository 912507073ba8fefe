"""
Order notifications.

Fire-and-forget: every event is logged, and forwarded to a webhook when
one is configured. A failed notification never fails the order.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from storefront.models import Order, utcnow

logger = logging.getLogger(__name__)


class NotificationService:

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 5.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def order_confirmed(self, order: Order, order_number: str) -> bool:
        return await self._dispatch("order_confirmed", {
            "order_id": order.id,
            "order_number": order_number,
            "total": order.total,
            "owner_id": order.owner_id,
            "guest_email": order.guest_email,
            "guest_phone": order.guest_phone,
        })

    async def email_sent(self, recipient: str, subject: str) -> bool:
        return await self._dispatch("email_sent", {"to": recipient, "subject": subject})

    async def _dispatch(self, event: str, payload: Dict[str, Any]) -> bool:
        logger.info(f"📧 Notification {event}: {payload}")
        if not self.webhook_url:
            return True

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json={
                    "event": event,
                    "timestamp": utcnow().isoformat(),
                    "data": payload,
                })
                response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error(f"Failed to deliver {event} notification: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error delivering {event} notification: {e}")
            return False
