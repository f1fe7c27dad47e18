"""
Lead intake service.

Validates a buyer submission, scores and stores the lead, routes it to a
dealer and fans out notifications. Routing or notification failures never
undo the stored lead.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from ..db import Repository
from ..errors import (
    GatewayError,
    LeadNotFound,
    LeadValidationError,
    NoDealerAvailable,
    TransactionFailure,
)
from ..integrations.messaging import MessagingGateway
from ..models.assignment import LeadAssignment
from ..models.dealer import Dealer
from ..models.enums import AssignedBy, InteractionDirection
from ..models.lead import Lead, LeadSubmission
from ..routing import LeadRouter
from ..scoring import LeadScorer, ScoreBreakdown

logger = logging.getLogger(__name__)


@dataclass
class LeadIntakeResult:
    """Outcome of a lead submission."""

    lead: Lead
    breakdown: ScoreBreakdown
    dealer: Optional[Dealer] = None
    assignment: Optional[LeadAssignment] = None
    routing_error: Optional[str] = None
    notification_errors: list[str] = field(default_factory=list)
    interaction_error: Optional[str] = None

    @property
    def assigned(self) -> bool:
        return self.assignment is not None


def validate_submission(payload: dict) -> LeadSubmission:
    """
    Validate raw intake fields.

    Raises:
        LeadValidationError: With pydantic's field-level error details
    """
    try:
        return LeadSubmission.model_validate(payload)
    except ValidationError as e:
        details = [
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in e.errors()
        ]
        raise LeadValidationError(details) from e


class LeadService:
    """Runs the lead submission flow."""

    def __init__(
        self,
        repository: Repository,
        router: Optional[LeadRouter] = None,
        scorer: Optional[LeadScorer] = None,
        gateway: Optional[MessagingGateway] = None,
    ):
        self.repository = repository
        self.router = router or LeadRouter(repository)
        self.scorer = scorer or LeadScorer()
        self.gateway = gateway

    def submit(self, payload: dict) -> LeadIntakeResult:
        """
        Validate, score, store, route and notify.

        Args:
            payload: Raw submitted fields (snake_case or camelCase keys)

        Returns:
            LeadIntakeResult with the stored lead and routing outcome

        Raises:
            LeadValidationError: Submission rejected before anything is stored
        """
        submission = validate_submission(payload)

        score, breakdown = self.scorer.score_lead(submission)
        lead = self.repository.save_lead(Lead.from_submission(submission, score))
        logger.info("Lead %s stored with score %d", lead.id, score)

        result = LeadIntakeResult(lead=lead, breakdown=breakdown)

        try:
            result.dealer, result.assignment = self.router.route_and_assign(lead, AssignedBy.SYSTEM)
        except (NoDealerAvailable, TransactionFailure) as e:
            # Lead stays stored and unassigned for manual routing
            logger.warning("Routing failed for lead %s: %s", lead.id, e)
            result.routing_error = str(e)

        result.lead = self.repository.get_lead(lead.id) or lead

        if self.gateway is not None:
            self._notify(result)

        try:
            self.repository.log_interaction(
                lead.id,
                interaction_type="chat",
                direction=InteractionDirection.INBOUND,
                channel="website",
                content=json.dumps(submission.model_dump(mode="json")),
            )
        except SQLAlchemyError as e:
            logger.error("Intake interaction for lead %s not logged: %s", lead.id, e)
            result.interaction_error = str(e)

        return result

    def reroute(self, lead_id: str, assigned_by: AssignedBy = AssignedBy.ADMIN) -> tuple[Dealer, LeadAssignment]:
        """
        Route an existing lead again, e.g. after a rejection.

        Errors propagate to the caller.
        """
        lead = self.repository.get_lead(lead_id)
        if lead is None:
            raise LeadNotFound(lead_id)
        return self.router.route_and_assign(lead, assigned_by)

    def _notify(self, result: LeadIntakeResult) -> None:
        lead = result.lead
        steps = [
            ("process_lead", lambda: self.gateway.process_lead(lead)),
            ("lead_confirmation", lambda: self.gateway.send_lead_confirmation(lead)),
        ]
        if result.dealer is not None and result.assignment is not None:
            steps.append(("dealer_notification", lambda: self.gateway.notify_dealer(result.dealer, lead)))

        for name, send in steps:
            try:
                send()
            except GatewayError as e:
                logger.error("Gateway %s failed for lead %s: %s", name, lead.id, e)
                result.notification_errors.append(f"{name}: {e}")
