"""
Messaging Gateway Tests

Verifies request shape and error mapping of the gateway client.
"""

from datetime import datetime
from unittest.mock import MagicMock, patch

import httpx
import pytest

from carleads.errors import GatewayError
from carleads.integrations import MessagingGateway
from carleads.models import Dealer, Lead


@pytest.fixture
def gateway():
    return MessagingGateway("https://gateway.example.com/", token="secret", timeout=5.0)


@pytest.fixture
def lead():
    return Lead(
        name="Jane Roe",
        email="jane@example.com",
        phone="5551234567",
        vehicle_interest="Tesla Model 3",
        preferred_contact="phone",
        score=80,
    )


def _response(status_code=200, json_data=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = json_data if json_data is not None else {"ok": True}
    return response


class TestSendToAgent:
    """Requests go to /hooks/agent with a bearer token."""

    def test_request_shape(self, gateway):
        with patch("carleads.integrations.messaging.httpx.post", return_value=_response()) as mock_post:
            result = gateway.send_to_agent("hello", session_key="lead:1", to="+1555")

        assert result == {"ok": True}
        args, kwargs = mock_post.call_args
        assert args[0] == "https://gateway.example.com/hooks/agent"
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        assert kwargs["timeout"] == 5.0
        assert kwargs["json"] == {
            "name": "LeadProcessor",
            "message": "hello",
            "deliver": True,
            "channel": "whatsapp",
            "wakeMode": "now",
            "to": "+1555",
            "sessionKey": "lead:1",
        }

    def test_error_status_raises(self, gateway):
        with patch(
            "carleads.integrations.messaging.httpx.post",
            return_value=_response(status_code=503, text="unavailable"),
        ):
            with pytest.raises(GatewayError) as exc_info:
                gateway.send_to_agent("hello")

        assert exc_info.value.status_code == 503

    def test_timeout_raises(self, gateway):
        with patch(
            "carleads.integrations.messaging.httpx.post",
            side_effect=httpx.ReadTimeout("timed out"),
        ):
            with pytest.raises(GatewayError, match="timeout"):
                gateway.send_to_agent("hello")

    def test_non_json_body(self, gateway):
        response = _response(text="accepted")
        response.json.side_effect = ValueError("no json")
        with patch("carleads.integrations.messaging.httpx.post", return_value=response):
            assert gateway.send_to_agent("hello") == {"raw": "accepted"}


class TestMessageTemplates:
    """Each template targets the right session, channel and recipient."""

    def test_process_lead(self, gateway, lead):
        with patch("carleads.integrations.messaging.httpx.post", return_value=_response()) as mock_post:
            gateway.process_lead(lead)

        payload = mock_post.call_args.kwargs["json"]
        assert payload["name"] == "LeadQualifier"
        assert payload["sessionKey"] == f"lead:{lead.id}"
        assert "Tesla Model 3" in payload["message"]
        assert "Budget: Not specified" in payload["message"]

    def test_notify_dealer(self, gateway, lead):
        dealer = Dealer(name="Volt Motors", phone="+15550000000")
        with patch("carleads.integrations.messaging.httpx.post", return_value=_response()) as mock_post:
            gateway.notify_dealer(dealer, lead)

        payload = mock_post.call_args.kwargs["json"]
        assert payload["to"] == "+15550000000"
        assert "Lead Score: 80/100" in payload["message"]

    def test_confirmation_follows_preferred_contact(self, gateway, lead):
        with patch("carleads.integrations.messaging.httpx.post", return_value=_response()) as mock_post:
            gateway.send_lead_confirmation(lead)
            email_lead = lead.model_copy(update={"preferred_contact": "email"})
            gateway.send_lead_confirmation(email_lead)

        by_phone, by_email = (c.kwargs["json"] for c in mock_post.call_args_list)
        assert (by_phone["channel"], by_phone["to"]) == ("whatsapp", "5551234567")
        assert (by_email["channel"], by_email["to"]) == ("email", "jane@example.com")

    def test_schedule_followup(self, gateway, lead):
        when = datetime(2030, 1, 1, 9, 0)
        with patch("carleads.integrations.messaging.httpx.post", return_value=_response()) as mock_post:
            gateway.schedule_followup(lead, when, "call")

        payload = mock_post.call_args.kwargs["json"]
        assert payload["channel"] == "voice-call"
        assert payload["sessionKey"] == f"followup:{lead.id}"
        assert "2030-01-01T09:00:00" in payload["message"]
