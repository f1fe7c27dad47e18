"""Assignment, interaction and follow-up records attached to a lead."""

from datetime import datetime
from typing import Any, Optional
import json
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import (
    AssignedBy,
    AssignmentStatus,
    FollowUpType,
    InteractionDirection,
)


class LeadAssignment(BaseModel):
    """The record linking a lead to the dealer chosen to handle it."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    lead_id: str
    dealer_id: str
    assigned_by: AssignedBy = AssignedBy.SYSTEM
    status: AssignmentStatus = AssignmentStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class LeadInteraction(BaseModel):
    """A logged message or event exchanged with a lead."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    lead_id: str
    interaction_type: str = "chat"
    direction: InteractionDirection = InteractionDirection.INBOUND
    channel: str = "website"
    content: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("metadata", mode="before")
    @classmethod
    def parse_metadata(cls, v) -> dict:
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            return json.loads(v)
        return v


class LeadFollowUp(BaseModel):
    """A follow-up scheduled for a lead."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    lead_id: str
    scheduled_at: datetime
    followup_type: FollowUpType = FollowUpType.CALL
    status: str = "scheduled"
    created_at: datetime = Field(default_factory=datetime.utcnow)
