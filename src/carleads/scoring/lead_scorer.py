"""
Lead Scoring Algorithm

Scores buyer inquiries by how ready they are to purchase, using additive
point buckets over budget, timeline, contact preference, source and
completeness of the submitted contact details.
"""

from dataclasses import dataclass
from typing import Optional

from ..config import (
    settings,
    BUDGET_TIERS,
    BUDGET_FALLBACK_POINTS,
    TIMELINE_TIERS,
    TIMELINE_FALLBACK_POINTS,
    CONTACT_POINTS,
    CONTACT_FALLBACK_POINTS,
    SOURCE_POINTS,
    SOURCE_FALLBACK_POINTS,
    COMPLETENESS_BONUS,
)

Tiers = tuple[tuple[tuple[str, ...], int], ...]


@dataclass
class ScoreBreakdown:
    """Points earned in each bucket."""

    budget: int = 0
    timeline: int = 0
    contact: int = 0
    source: int = 0
    completeness: int = 0
    total: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for storage and display."""
        return {
            "budget": self.budget,
            "timeline": self.timeline,
            "contact": self.contact,
            "source": self.source,
            "completeness": self.completeness,
            "total": self.total,
        }


def match_tier(text: Optional[str], tiers: Tiers, fallback: int) -> int:
    """
    Points for free text against an ordered keyword table.

    The first tier with a keyword contained in the lowercased text wins.
    Any other non-empty text earns the fallback; absent text earns nothing.
    """
    if not text:
        return 0
    lowered = text.lower()
    for keywords, points in tiers:
        if any(keyword in lowered for keyword in keywords):
            return points
    return fallback


def _enum_text(value) -> Optional[str]:
    if value is None:
        return None
    return value.value if hasattr(value, "value") else str(value)


class LeadScorer:
    """
    Scores leads on a 0-100 scale.

    Accepts any object exposing the lead intake attributes (a Lead, a
    LeadSubmission, or a plain namespace). Missing attributes score as absent.
    """

    def __init__(self, max_score: Optional[int] = None):
        self.max_score = settings.MAX_LEAD_SCORE if max_score is None else max_score

    def score_budget(self, budget: Optional[str]) -> int:
        return match_tier(budget, BUDGET_TIERS, BUDGET_FALLBACK_POINTS)

    def score_timeline(self, timeline: Optional[str]) -> int:
        return match_tier(timeline, TIMELINE_TIERS, TIMELINE_FALLBACK_POINTS)

    def score_contact(self, preferred_contact) -> int:
        """Phone and SMS buyers are more engaged than email-only ones."""
        return CONTACT_POINTS.get(_enum_text(preferred_contact), CONTACT_FALLBACK_POINTS)

    def score_source(self, source) -> int:
        return SOURCE_POINTS.get(_enum_text(source), SOURCE_FALLBACK_POINTS)

    def score_completeness(self, lead) -> int:
        required = (
            getattr(lead, "name", None),
            getattr(lead, "email", None),
            getattr(lead, "phone", None),
            getattr(lead, "vehicle_interest", None),
        )
        return COMPLETENESS_BONUS if all(required) else 0

    def score_lead(self, lead) -> tuple[int, ScoreBreakdown]:
        """
        Calculate the lead score and its breakdown.

        Args:
            lead: Object with budget, timeline, preferred_contact, source,
                name, email, phone and vehicle_interest attributes

        Returns:
            Tuple of (score, breakdown)
        """
        breakdown = ScoreBreakdown(
            budget=self.score_budget(getattr(lead, "budget", None)),
            timeline=self.score_timeline(getattr(lead, "timeline", None)),
            contact=self.score_contact(getattr(lead, "preferred_contact", None)),
            source=self.score_source(getattr(lead, "source", None)),
            completeness=self.score_completeness(lead),
        )

        total = (
            breakdown.budget
            + breakdown.timeline
            + breakdown.contact
            + breakdown.source
            + breakdown.completeness
        )
        breakdown.total = min(self.max_score, total)
        return breakdown.total, breakdown


# =============================================================================
# Convenience Functions
# =============================================================================

# Global scorer instance
_scorer = LeadScorer()


def score_lead(lead) -> int:
    """Quick score a lead with the default scorer."""
    score, _ = _scorer.score_lead(lead)
    return score
