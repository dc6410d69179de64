"""
Tests for dealerchat/services/notifications.py - lead-complete SMS alerts.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from dealerchat.schemas.pipeline import LeadSnapshot
from dealerchat.services.notifications import LeadNotifier, format_lead_alert

LEAD = LeadSnapshot(
    id="0f8c2a4e-1111-4222-8333-444455556666",
    name="Ana Torres",
    phone="8112345678",
)


def _mock_client(response=None, side_effect=None):
    client = MagicMock()
    client.post = AsyncMock(return_value=response, side_effect=side_effect)
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


def _ok_response():
    response = MagicMock()
    response.raise_for_status = MagicMock()
    return response


class TestFormatLeadAlert:
    def test_includes_name_phone_and_model(self):
        text = format_lead_alert(LEAD, "Seal", "https://analytics.example.com")
        assert "Ana Torres" in text
        assert "8112345678" in text
        assert "Modelo: Seal" in text
        assert "https://analytics.example.com" in text

    def test_missing_fields_have_placeholders(self):
        text = format_lead_alert(LeadSnapshot(id="x"), None, "https://a.example.com")
        assert "Sin nombre" in text
        assert "Sin teléfono" in text
        assert "Modelo:" not in text


class TestNotifyLeadComplete:
    async def test_skipped_without_api_key(self, settings):
        notifier = LeadNotifier(settings)
        with patch("dealerchat.services.notifications.httpx.AsyncClient") as mock_cls:
            sent = await notifier.notify_lead_complete(LEAD, "Seal")
        assert sent is False
        mock_cls.assert_not_called()
        assert notifier.get_stats() == {"configured": False, "sent": 0, "failed": 0}

    async def test_posts_to_gateway(self, settings):
        settings.sms_api_key = "sms-key"
        settings.sms_gateway_url = "https://sms.example.com/"
        notifier = LeadNotifier(settings)
        client = _mock_client(response=_ok_response())

        with patch("dealerchat.services.notifications.httpx.AsyncClient", return_value=client):
            sent = await notifier.notify_lead_complete(LEAD, "Seal")

        assert sent is True
        assert notifier.sent == 1
        args, kwargs = client.post.call_args
        assert args[0] == "https://sms.example.com/send-sms"
        assert kwargs["headers"]["X-API-Key"] == "sms-key"
        assert kwargs["json"]["phone"] == settings.sales_notification_phone
        assert "Ana Torres" in kwargs["json"]["message"]

    async def test_http_error_returns_false(self, settings):
        settings.sms_api_key = "sms-key"
        notifier = LeadNotifier(settings)
        response = MagicMock()
        response.raise_for_status = MagicMock(
            side_effect=httpx.HTTPStatusError("500", request=MagicMock(), response=MagicMock())
        )
        client = _mock_client(response=response)

        with patch("dealerchat.services.notifications.httpx.AsyncClient", return_value=client):
            sent = await notifier.notify_lead_complete(LEAD)

        assert sent is False
        assert notifier.failed == 1
        assert notifier.sent == 0

    async def test_network_error_returns_false(self, settings):
        settings.sms_api_key = "sms-key"
        notifier = LeadNotifier(settings)
        client = _mock_client(side_effect=httpx.ConnectError("unreachable"))

        with patch("dealerchat.services.notifications.httpx.AsyncClient", return_value=client):
            sent = await notifier.notify_lead_complete(LEAD)

        assert sent is False
        assert notifier.failed == 1
