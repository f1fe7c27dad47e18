"""Lead routing: dealer matching and the routing fallback chain."""

from .matcher import DealerMatcher, extract_specialties
from .router import (
    LeadRouter,
    RoutingStrategy,
    SpecialtyMatchStrategy,
    AnyAvailableStrategy,
)

__all__ = [
    "DealerMatcher",
    "extract_specialties",
    "LeadRouter",
    "RoutingStrategy",
    "SpecialtyMatchStrategy",
    "AnyAvailableStrategy",
]
