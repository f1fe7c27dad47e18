"""Data models for the CarLeads routing service."""

from .enums import (
    LeadStatus,
    ContactMethod,
    LeadSource,
    Specialty,
    AssignmentStatus,
    AssignedBy,
    InteractionDirection,
    FollowUpType,
)
from .lead import Lead, LeadSubmission
from .dealer import Dealer
from .assignment import LeadAssignment, LeadInteraction, LeadFollowUp

__all__ = [
    # Enums
    "LeadStatus",
    "ContactMethod",
    "LeadSource",
    "Specialty",
    "AssignmentStatus",
    "AssignedBy",
    "InteractionDirection",
    "FollowUpType",
    # Lead
    "Lead",
    "LeadSubmission",
    # Dealer
    "Dealer",
    # Assignment
    "LeadAssignment",
    "LeadInteraction",
    "LeadFollowUp",
]
