"""Dealer model for vehicle sellers receiving leads."""

from datetime import datetime
from typing import Optional
import json
import uuid

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .enums import Specialty


class Dealer(BaseModel):
    """A vehicle seller with a finite number of concurrent leads."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None

    # Routing
    capacity: int = Field(default=10, ge=0, description="Max concurrent leads")
    current_load: int = Field(default=0, ge=0, description="Active assignments")
    priority: int = 0
    specialties: list[Specialty] = Field(default_factory=list)
    active: bool = True

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("specialties", mode="before")
    @classmethod
    def parse_specialties(cls, v) -> list:
        if v is None or v == "":
            return []
        # Stored as a JSON array in the dealers table
        if isinstance(v, str):
            v = json.loads(v)
        return [s.lower() if isinstance(s, str) else s for s in v]

    @computed_field
    @property
    def available_capacity(self) -> int:
        """Leads this dealer can still take."""
        return self.capacity - self.current_load

    @property
    def has_capacity(self) -> bool:
        return self.active and self.available_capacity > 0

    def handles_any(self, specialties: list[str]) -> bool:
        """True when the dealer declares at least one of the given specialties."""
        return bool(set(self.specialties) & set(specialties))
