"""
Lead Routing Tests

Verifies the specialty-first fallback chain and routing failures.
"""

import pytest

from carleads.errors import NoDealerAvailable
from carleads.models import AssignedBy, LeadStatus
from carleads.routing import AnyAvailableStrategy, LeadRouter, RoutingStrategy


class TestLeadRouter:
    """The first strategy returning a dealer wins."""

    def test_specialty_match_preferred(self, repo, make_dealer, make_lead):
        make_dealer(name="General", priority=10)
        volt = make_dealer(name="Volt Motors", specialties=["electric"])
        lead = make_lead(vehicle_interest="Tesla Model 3")

        assert LeadRouter(repo).route(lead).id == volt.id

    def test_falls_back_to_any_available(self, repo, make_dealer, make_lead):
        """No dealer carries the requested specialty"""
        busy = make_dealer(name="Busy", priority=5, capacity=10, current_load=9)
        idle = make_dealer(name="Idle", priority=5, capacity=2, current_load=0)
        lead = make_lead(vehicle_interest="Ford truck")

        # Ties on priority break on lowest current load
        assert LeadRouter(repo).route(lead).id == idle.id
        assert busy.id != idle.id

    def test_no_dealer_available(self, repo, make_dealer, make_lead):
        make_dealer(name="Closed", active=False)
        make_dealer(name="Full", capacity=1, current_load=1)
        lead = make_lead(vehicle_interest="SUV")

        with pytest.raises(NoDealerAvailable):
            LeadRouter(repo).route(lead)

        stored = repo.get_lead(lead.id)
        assert stored.dealer_id is None
        assert stored.status == LeadStatus.NEW.value

    def test_custom_strategy_chain(self, repo, make_dealer, make_lead):
        class NeverStrategy(RoutingStrategy):
            name = "never"

            def select(self, lead):
                return None

        dealer = make_dealer(name="Only")
        lead = make_lead()
        router = LeadRouter(repo, strategies=[NeverStrategy(), AnyAvailableStrategy(repo)])

        assert router.route(lead).id == dealer.id
        with pytest.raises(NoDealerAvailable):
            LeadRouter(repo, strategies=[NeverStrategy()]).route(lead)


class TestRouteAndAssign:
    """Routing followed by the assignment transaction."""

    def test_assigns_and_returns_updated_dealer(self, repo, make_dealer, make_lead):
        dealer = make_dealer(name="Volt Motors", capacity=2, specialties=["electric"])
        lead = make_lead(vehicle_interest="electric hatchback")

        routed, assignment = LeadRouter(repo).route_and_assign(lead, AssignedBy.AGENT)

        assert routed.id == dealer.id
        assert routed.current_load == 1
        assert assignment.lead_id == lead.id
        assert assignment.assigned_by == AssignedBy.AGENT.value
        assert repo.get_lead(lead.id).dealer_id == dealer.id
