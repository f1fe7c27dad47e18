"""
Messaging gateway client.

Sends lead processing requests, buyer confirmations, dealer notifications
and follow-up reminders to the external messaging agent gateway.
"""

import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from ..config import settings
from ..errors import GatewayError

logger = logging.getLogger(__name__)


def _or(value: Optional[Any], default: str = "Not specified") -> str:
    return str(value) if value else default


def _enum_text(value) -> Optional[str]:
    if value is None:
        return None
    return value.value if hasattr(value, "value") else str(value)


class MessagingGateway:
    """Thin client for the gateway's agent hook endpoint."""

    def __init__(self, base_url: str, token: str = "", timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    @property
    def agent_url(self) -> str:
        return f"{self.base_url}/hooks/agent"

    def send_to_agent(
        self,
        message: str,
        name: str = "LeadProcessor",
        deliver: bool = True,
        channel: str = "whatsapp",
        to: Optional[str] = None,
        session_key: Optional[str] = None,
        wake_mode: str = "now",
    ) -> dict:
        """
        Post a message to the gateway agent.

        Returns:
            Decoded JSON response body

        Raises:
            GatewayError: On non-2xx responses or transport failures
        """
        payload: dict[str, Any] = {
            "name": name,
            "message": message,
            "deliver": deliver,
            "channel": channel,
            "wakeMode": wake_mode,
        }
        if to:
            payload["to"] = to
        if session_key:
            payload["sessionKey"] = session_key

        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

        logger.info("Sending %s message to gateway (channel=%s)", name, channel)
        logger.debug("Payload: %s", payload)

        try:
            response = httpx.post(
                self.agent_url,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.error("Timeout sending to gateway: %s", e)
            raise GatewayError(f"Gateway timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.error("HTTP error sending to gateway: %s", e)
            raise GatewayError(f"Gateway request failed: {e}") from e

        if response.status_code >= 400:
            raise GatewayError(
                f"Gateway error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    # =========================================================================
    # Message templates
    # =========================================================================

    def process_lead(self, lead) -> dict:
        """Hand a new lead to the qualifying agent."""
        message = (
            "New lead received:\n"
            f"Name: {lead.name}\n"
            f"Email: {lead.email}\n"
            f"Phone: {lead.phone}\n"
            f"Vehicle Interest: {_or(lead.vehicle_interest)}\n"
            f"Budget: {_or(lead.budget)}\n"
            f"Timeline: {_or(lead.timeline)}\n"
            f"Preferred Contact: {_or(_enum_text(lead.preferred_contact), 'email')}\n"
            f"Source: {_or(_enum_text(lead.source), 'website')}\n\n"
            "Please qualify this lead and determine next steps."
        )
        return self.send_to_agent(
            message,
            name="LeadQualifier",
            session_key=lead.session_key,
            channel="whatsapp",
        )

    def notify_dealer(self, dealer, lead) -> dict:
        """Tell a dealer a lead was assigned to them."""
        message = (
            "New Lead Assigned to You:\n\n"
            f"Name: {lead.name}\n"
            f"Contact: {lead.email} / {lead.phone}\n"
            f"Vehicle Interest: {_or(lead.vehicle_interest)}\n"
            f"Budget: {_or(lead.budget)}\n"
            f"Timeline: {_or(lead.timeline)}\n"
            f"Lead Score: {lead.score}/100\n\n"
            "Please contact this lead as soon as possible."
        )
        return self.send_to_agent(
            message,
            name="DealerNotification",
            channel="whatsapp",
            to=dealer.phone,
        )

    def send_lead_confirmation(self, lead, channel: Optional[str] = None) -> dict:
        """
        Confirm receipt to the buyer.

        Buyers preferring phone are confirmed over whatsapp, everyone else by
        email, unless a channel is given.
        """
        preferred = _enum_text(lead.preferred_contact)
        if channel is None:
            channel = "whatsapp" if preferred == "phone" else "email"
        reach_at = lead.phone if preferred == "phone" else lead.email

        message = (
            f"Hi {lead.name},\n\n"
            f"Thank you for your interest in {_or(lead.vehicle_interest, 'our vehicles')}!\n\n"
            "We've received your inquiry and one of our specialists will contact "
            f"you shortly at {reach_at}.\n\n"
            "If you have any immediate questions, feel free to reply to this message."
        )
        return self.send_to_agent(
            message,
            name="LeadConfirmation",
            channel=channel,
            to=lead.email if channel == "email" else lead.phone,
        )

    def schedule_followup(self, lead, scheduled_at: datetime, followup_type: str = "call") -> dict:
        """Ask the agent to run a follow-up with the buyer."""
        channel = {"call": "voice-call", "sms": "whatsapp"}.get(followup_type, "email")
        message = (
            f"Schedule a {followup_type} follow-up with {lead.name} ({lead.phone}) "
            f"on {scheduled_at.isoformat()}.\n\n"
            "Lead details:\n"
            f"- Vehicle Interest: {_or(lead.vehicle_interest)}\n"
            f"- Budget: {_or(lead.budget)}\n"
            f"- Timeline: {_or(lead.timeline)}\n\n"
            "Prepare to discuss their interest and answer any questions."
        )
        return self.send_to_agent(
            message,
            name="FollowUpScheduler",
            session_key=f"followup:{lead.id}",
            channel=channel,
            to=lead.phone,
        )


def get_gateway() -> Optional[MessagingGateway]:
    """Gateway client from settings, or None when no gateway is configured."""
    if not settings.validate_gateway():
        return None
    return MessagingGateway(
        base_url=settings.GATEWAY_URL,
        token=settings.GATEWAY_TOKEN,
        timeout=settings.GATEWAY_TIMEOUT,
    )
