"""
Dealer Matcher - Find dealers able to take a lead.

Maps the buyer's vehicle interest to dealer specialties and ranks the
eligible dealers by priority and spare capacity.
"""

import logging
from typing import Optional

from ..config import settings, SPECIALTY_KEYWORDS
from ..db import Repository
from ..models.dealer import Dealer

logger = logging.getLogger(__name__)


def extract_specialties(vehicle_interest: Optional[str]) -> list[str]:
    """
    Specialty tags mentioned in free-text vehicle interest.

    Every keyword contained in the lowercased text contributes its tag, in
    table order. Duplicates are kept ("tesla ev" yields electric twice);
    callers use the result as a set-overlap filter.
    """
    if not vehicle_interest:
        return []
    lowered = vehicle_interest.lower()
    return [specialty for keyword, specialty in SPECIALTY_KEYWORDS if keyword in lowered]


class DealerMatcher:
    """Selects candidate dealers for a lead."""

    def __init__(self, repository: Repository, limit: Optional[int] = None):
        self.repository = repository
        self.limit = settings.MATCH_LIMIT if limit is None else limit

    def find_candidates(self, lead) -> list[Dealer]:
        """
        Find candidate dealers for a lead, most preferred first.

        Eligible dealers are active with capacity - current_load > 0. When the
        lead's vehicle interest names any specialty, dealers must declare at
        least one of them; otherwise specialty is ignored.

        Args:
            lead: Object with a vehicle_interest attribute

        Returns:
            Up to `limit` dealers ordered by priority desc, available capacity
            desc, current load asc. Empty when nothing qualifies.
        """
        specialties = extract_specialties(getattr(lead, "vehicle_interest", None))

        candidates = self.repository.list_available_dealers(
            specialties=specialties or None,
            limit=self.limit,
        )

        logger.debug(
            "Lead %s: %d candidate dealers for specialties %s",
            getattr(lead, "id", "?"), len(candidates), sorted(set(specialties)) or "any",
        )
        return candidates
