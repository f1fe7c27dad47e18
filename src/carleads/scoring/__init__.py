"""Scoring algorithms for the CarLeads routing service."""

from .lead_scorer import LeadScorer, ScoreBreakdown, score_lead

__all__ = ["LeadScorer", "ScoreBreakdown", "score_lead"]
