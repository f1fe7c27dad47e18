"""Error types raised by the CarLeads routing core and its collaborators."""

from typing import Any, Optional


class CarLeadsError(Exception):
    """Base class for all CarLeads errors."""


class LeadValidationError(CarLeadsError):
    """Submitted lead fields failed validation."""

    def __init__(self, details: list[dict[str, Any]]):
        self.details = details
        fields = ", ".join(
            ".".join(str(part) for part in d.get("loc", ())) or "?" for d in details
        )
        super().__init__(f"Invalid lead submission: {fields}")


class NoDealerAvailable(CarLeadsError):
    """No active dealer has spare capacity."""


class TransactionFailure(CarLeadsError):
    """The assignment unit of work could not be committed and was rolled back."""


class DealerNotFound(TransactionFailure):
    """Dealer does not exist or is inactive."""

    def __init__(self, dealer_id: str):
        self.dealer_id = dealer_id
        super().__init__(f"Dealer {dealer_id} not found or inactive")


class DealerAtCapacity(TransactionFailure):
    """Dealer has no spare capacity left."""

    def __init__(self, dealer_id: str):
        self.dealer_id = dealer_id
        super().__init__(f"Dealer {dealer_id} has no available capacity")


class LeadNotFound(TransactionFailure):
    """Lead does not exist."""

    def __init__(self, lead_id: str):
        self.lead_id = lead_id
        super().__init__(f"Lead {lead_id} not found")


class LeadAlreadyAssigned(TransactionFailure):
    """Lead already has a pending or accepted assignment."""

    def __init__(self, lead_id: str, assignment_id: Optional[str] = None):
        self.lead_id = lead_id
        self.assignment_id = assignment_id
        super().__init__(f"Lead {lead_id} already has an active assignment")


class InvalidAssignmentTransition(CarLeadsError):
    """Requested assignment status change is not allowed."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move assignment from {current} to {requested}")


class AssignmentNotFound(CarLeadsError):
    """Assignment does not exist."""

    def __init__(self, assignment_id: str):
        self.assignment_id = assignment_id
        super().__init__(f"Assignment {assignment_id} not found")


class GatewayError(CarLeadsError):
    """The messaging gateway rejected or failed a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
