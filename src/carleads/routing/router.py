"""
Lead Router - Pick the dealer that should handle a lead.

Routing tries an ordered list of strategies; the first one that returns a
dealer wins. The default chain prefers specialty-matched dealers and falls
back to any dealer with spare capacity.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..db import Repository
from ..errors import NoDealerAvailable
from ..models.assignment import LeadAssignment
from ..models.dealer import Dealer
from ..models.enums import AssignedBy
from .matcher import DealerMatcher

logger = logging.getLogger(__name__)


class RoutingStrategy(ABC):
    """One step of the routing fallback chain."""

    name: str = "strategy"

    @abstractmethod
    def select(self, lead) -> Optional[Dealer]:
        """Return a dealer for the lead, or None to defer to the next strategy."""


class SpecialtyMatchStrategy(RoutingStrategy):
    """Best-ranked candidate from the dealer matcher."""

    name = "specialty_match"

    def __init__(self, matcher: DealerMatcher):
        self.matcher = matcher

    def select(self, lead) -> Optional[Dealer]:
        candidates = self.matcher.find_candidates(lead)
        return candidates[0] if candidates else None


class AnyAvailableStrategy(RoutingStrategy):
    """Highest-priority, least-loaded active dealer with spare capacity."""

    name = "any_available"

    def __init__(self, repository: Repository):
        self.repository = repository

    def select(self, lead) -> Optional[Dealer]:
        dealers = self.repository.list_available_dealers(limit=1, rank_by_capacity=False)
        return dealers[0] if dealers else None


class LeadRouter:
    """
    Routes leads to dealers and commits the assignment.

    Routing itself only reads. The capacity check is repeated atomically
    by Repository.assign_lead when the assignment is written.
    """

    def __init__(
        self,
        repository: Repository,
        strategies: Optional[Sequence[RoutingStrategy]] = None,
    ):
        self.repository = repository
        self.strategies = list(strategies) if strategies is not None else [
            SpecialtyMatchStrategy(DealerMatcher(repository)),
            AnyAvailableStrategy(repository),
        ]

    def route(self, lead) -> Dealer:
        """
        Pick the single best dealer for a lead.

        Raises:
            NoDealerAvailable: No strategy found a dealer
        """
        for strategy in self.strategies:
            dealer = strategy.select(lead)
            if dealer is not None:
                logger.info(
                    "Lead %s routed to dealer %s via %s",
                    getattr(lead, "id", "?"), dealer.id, strategy.name,
                )
                return dealer

        raise NoDealerAvailable("No active dealer has available capacity")

    def route_and_assign(
        self,
        lead,
        assigned_by: AssignedBy = AssignedBy.SYSTEM,
    ) -> tuple[Dealer, LeadAssignment]:
        """
        Route a stored lead and commit the assignment.

        Store errors propagate unchanged; nothing is retried.

        Returns:
            Tuple of (dealer, assignment). The dealer reflects its load after
            the assignment when it can be re-read.
        """
        dealer = self.route(lead)
        assignment = self.repository.assign_lead(lead.id, dealer.id, assigned_by)
        return self.repository.get_dealer(dealer.id) or dealer, assignment
