"""Handles asynchronous callbacks from the messaging gateway."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from ..db import Repository
from ..errors import GatewayError
from ..integrations.messaging import MessagingGateway
from ..models.enums import FollowUpType, InteractionDirection, LeadStatus

logger = logging.getLogger(__name__)

LEAD_SESSION_PREFIX = "lead:"
DEFAULT_FOLLOWUP_DELAY = timedelta(hours=24)


@dataclass
class WebhookResult:
    """What a callback changed."""

    lead_id: Optional[str] = None
    interaction_logged: bool = False
    status_updated: bool = False
    followup_scheduled: bool = False
    followup_sent: bool = False


def lead_id_from_session(session_key: Optional[str]) -> Optional[str]:
    """Lead id from a "lead:<id>" session key, else None."""
    if not session_key or not session_key.startswith(LEAD_SESSION_PREFIX):
        return None
    return session_key[len(LEAD_SESSION_PREFIX):] or None


def _parse_scheduled_at(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            # Stored as naive UTC like every other timestamp
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
            return parsed
        except ValueError:
            logger.warning("Unparseable scheduledAt %r, using default delay", value)
    return datetime.utcnow() + DEFAULT_FOLLOWUP_DELAY


class WebhookService:
    """
    Applies gateway callbacks to leads.

    Supported actions:
    - qualified: lead status becomes qualified
    - scheduled_followup: a follow-up is recorded for the lead and, when a
      gateway is configured, handed to the agent
    Every callback for a known lead is logged as an inbound interaction.
    """

    def __init__(self, repository: Repository, gateway: Optional[MessagingGateway] = None):
        self.repository = repository
        self.gateway = gateway

    def handle(self, payload: dict) -> WebhookResult:
        lead_id = lead_id_from_session(payload.get("sessionKey"))
        result = WebhookResult(lead_id=lead_id)
        if lead_id is None:
            return result

        lead = self.repository.get_lead(lead_id)
        if lead is None:
            logger.warning("Webhook for unknown lead %s ignored", lead_id)
            return result

        metadata = payload.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        action = payload.get("action")
        channel = metadata.get("channel") or "chat"

        self.repository.log_interaction(
            lead_id,
            interaction_type=str(channel),
            direction=InteractionDirection.INBOUND,
            channel="gateway",
            content=payload.get("message"),
            metadata=metadata,
        )
        result.interaction_logged = True

        if action == "qualified":
            self.repository.update_lead(lead_id, status=LeadStatus.QUALIFIED)
            result.status_updated = True
        elif action == "scheduled_followup":
            try:
                followup_type = FollowUpType(metadata.get("followupType") or FollowUpType.CALL.value)
            except ValueError:
                logger.warning("Unknown followupType %r, scheduling a call", metadata.get("followupType"))
                followup_type = FollowUpType.CALL
            scheduled_at = _parse_scheduled_at(metadata.get("scheduledAt"))
            self.repository.schedule_followup(lead_id, scheduled_at=scheduled_at, followup_type=followup_type)
            result.followup_scheduled = True
            if self.gateway is not None:
                try:
                    self.gateway.schedule_followup(lead, scheduled_at, followup_type.value)
                    result.followup_sent = True
                except GatewayError as e:
                    logger.error("Follow-up for lead %s not sent to gateway: %s", lead_id, e)
        elif action:
            logger.debug("Webhook action %r for lead %s has no handler", action, lead_id)

        return result
