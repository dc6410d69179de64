"""
Notification service - sales-floor alert when a chat lead becomes complete.
Best effort: a failed or skipped alert never fails the chat request.
"""
import logging
from typing import Optional

import httpx

from dealerchat.schemas.pipeline import LeadSnapshot
from dealerchat.utils.phone import mask_phone
from dealerchat.utils.templates import LEAD_NOTIFICATION_TEMPLATE, render_text

logger = logging.getLogger(__name__)


def format_lead_alert(lead: LeadSnapshot, model: Optional[str], analytics_url: str) -> str:
    return render_text(
        LEAD_NOTIFICATION_TEMPLATE,
        name=lead.name or "Sin nombre",
        phone=lead.phone or "Sin teléfono",
        model_text=f"\nModelo: {model}" if model else "",
        analytics_url=analytics_url,
    )


class LeadNotifier:
    """Posts lead alerts to the SMS gateway."""

    def __init__(self, settings):
        self.settings = settings
        self.sent = 0
        self.failed = 0

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.sms_api_key and self.settings.sms_gateway_url)

    async def notify_lead_complete(self, lead: LeadSnapshot, model: Optional[str] = None) -> bool:
        """Send the alert. Returns True on a 2xx from the gateway."""
        if not self.is_configured:
            logger.info("SMS gateway not configured - lead alert skipped for %s", lead.id[:8])
            return False

        url = f"{self.settings.sms_gateway_url.rstrip('/')}/send-sms"
        payload = {
            "phone": self.settings.sales_notification_phone,
            "message": format_lead_alert(lead, model, self.settings.analytics_url),
        }

        try:
            async with httpx.AsyncClient(timeout=self.settings.notification_timeout_seconds) as client:
                response = await client.post(
                    url,
                    headers={
                        "X-API-Key": self.settings.sms_api_key,
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
                response.raise_for_status()
        except Exception as e:
            self.failed += 1
            logger.error(
                "Lead alert failed for %s (%s): %s",
                lead.id[:8], mask_phone(lead.phone), str(e),
            )
            return False

        self.sent += 1
        logger.info("Lead alert sent for %s (%s)", lead.id[:8], mask_phone(lead.phone))
        return True

    def get_stats(self) -> dict:
        return {"configured": self.is_configured, "sent": self.sent, "failed": self.failed}
