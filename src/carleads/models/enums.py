"""Enumerations for the CarLeads routing service."""

from enum import Enum


class LeadStatus(str, Enum):
    """Status of a lead in the sales pipeline."""

    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    LOST = "lost"


class ContactMethod(str, Enum):
    """How the buyer prefers to be contacted."""

    EMAIL = "email"
    PHONE = "phone"
    SMS = "sms"


class LeadSource(str, Enum):
    """Channel the lead came in through."""

    WEBSITE = "website"
    AD = "ad"
    REFERRAL = "referral"
    CHAT = "chat"


class Specialty(str, Enum):
    """Vehicle categories a dealer declares affinity for."""

    SEDAN = "sedan"
    SUV = "suv"
    TRUCK = "truck"
    LUXURY = "luxury"
    ELECTRIC = "electric"


class AssignmentStatus(str, Enum):
    """Status of a lead-to-dealer assignment."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CLOSED = "closed"


# Assignments in these states count against the dealer's load
ACTIVE_ASSIGNMENT_STATUSES = (AssignmentStatus.PENDING.value, AssignmentStatus.ACCEPTED.value)

ASSIGNMENT_TRANSITIONS: dict[str, set[str]] = {
    AssignmentStatus.PENDING.value: {
        AssignmentStatus.ACCEPTED.value,
        AssignmentStatus.REJECTED.value,
        AssignmentStatus.CLOSED.value,
    },
    AssignmentStatus.ACCEPTED.value: {AssignmentStatus.CLOSED.value},
    AssignmentStatus.REJECTED.value: set(),
    AssignmentStatus.CLOSED.value: set(),
}


class AssignedBy(str, Enum):
    """Who made the routing decision."""

    SYSTEM = "system"
    ADMIN = "admin"
    AGENT = "agent"  # External messaging agent


class InteractionDirection(str, Enum):
    """Direction of a logged lead interaction."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class FollowUpType(str, Enum):
    """Kinds of scheduled follow-up."""

    CALL = "call"
    EMAIL = "email"
    SMS = "sms"
