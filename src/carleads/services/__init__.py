"""Application services built on the routing core."""

from .lead_service import LeadService, LeadIntakeResult, validate_submission
from .webhook_service import WebhookService, WebhookResult

__all__ = [
    "LeadService",
    "LeadIntakeResult",
    "validate_submission",
    "WebhookService",
    "WebhookResult",
]
