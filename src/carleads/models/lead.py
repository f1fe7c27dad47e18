"""Lead models for car buyer inquiries."""

from datetime import datetime
from typing import Optional
import re
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ContactMethod, LeadSource, LeadStatus

EMAIL_RE = re.compile(r"^[\w\.\-\+]+@[\w\.\-]+\.\w+$")


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class LeadSubmission(BaseModel):
    """
    Raw inquiry fields as submitted by a buyer.

    Accepts both snake_case and the camelCase keys used by the web form.
    """

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    name: str = Field(..., min_length=2, max_length=255)
    email: str
    phone: str = Field(..., min_length=10)
    vehicle_interest: Optional[str] = Field(default=None, alias="vehicleInterest")
    budget: Optional[str] = None
    timeline: Optional[str] = None
    preferred_contact: ContactMethod = Field(default=ContactMethod.EMAIL, alias="preferredContact")
    source: LeadSource = LeadSource.WEBSITE

    @field_validator("name", "phone", mode="before")
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if v is None:
            raise ValueError("Email is required")
        v = str(v).strip()
        if not EMAIL_RE.match(v):
            raise ValueError(f"Invalid email: {v}")
        return v.lower()

    @field_validator("vehicle_interest", "budget", "timeline", mode="before")
    @classmethod
    def normalize_optional(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)

    @field_validator("preferred_contact", "source", mode="before")
    @classmethod
    def default_when_missing(cls, v, info):
        if v is None or v == "":
            return ContactMethod.EMAIL if info.field_name == "preferred_contact" else LeadSource.WEBSITE
        return v


class Lead(BaseModel):
    """
    A prospective buyer's inquiry as stored.

    Score is computed once at intake. Status and dealer_id are mutated by
    the assignment transaction and by downstream qualification callbacks.
    """

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    # Identifiers
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    # Contact
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    # Intent
    vehicle_interest: Optional[str] = None
    budget: Optional[str] = None
    timeline: Optional[str] = None
    preferred_contact: ContactMethod = ContactMethod.EMAIL
    source: LeadSource = LeadSource.WEBSITE

    # Lead Management
    score: int = Field(default=0, ge=0, le=100)
    status: LeadStatus = LeadStatus.NEW
    dealer_id: Optional[str] = None
    notes: Optional[str] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_submission(cls, submission: LeadSubmission, score: int) -> "Lead":
        """Build a new lead from validated intake fields."""
        return cls(
            name=submission.name,
            email=submission.email,
            phone=submission.phone,
            vehicle_interest=submission.vehicle_interest,
            budget=submission.budget,
            timeline=submission.timeline,
            preferred_contact=submission.preferred_contact,
            source=submission.source,
            score=score,
            status=LeadStatus.NEW,
        )

    @property
    def session_key(self) -> str:
        """Conversation key used with the messaging gateway."""
        return f"lead:{self.id}"
