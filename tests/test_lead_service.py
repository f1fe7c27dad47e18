"""
Lead Intake Tests

Verifies the submit flow: validation, scoring, storage, routing and
notification fan-out.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from carleads.errors import GatewayError, LeadNotFound, LeadValidationError, NoDealerAvailable
from carleads.integrations import MessagingGateway
from carleads.models import AssignedBy, LeadStatus
from carleads.services import LeadService, validate_submission


class TestValidation:
    """Bad submissions are rejected before anything is stored."""

    def test_missing_and_invalid_fields(self, repo):
        with pytest.raises(LeadValidationError) as exc_info:
            LeadService(repo).submit({"name": "J", "email": "not-an-email", "phone": "123"})

        fields = {detail["loc"][0] for detail in exc_info.value.details}
        assert fields == {"name", "email", "phone"}
        assert repo.count_leads() == 0

    def test_camel_case_and_defaults(self, jane_payload):
        submission = validate_submission({**jane_payload, "email": "Jane@Example.com", "timeline": "  "})

        assert submission.email == "jane@example.com"
        assert submission.vehicle_interest == "Tesla Model 3"
        assert submission.timeline is None
        assert submission.preferred_contact == "email"
        assert submission.source == "website"


class TestSubmit:
    """A valid submission is always stored, routed when possible."""

    def test_routed_to_specialty_dealer(self, repo, make_dealer, jane_payload):
        make_dealer(name="Big Lot", priority=100, specialties=["sedan"])
        volt = make_dealer(name="Volt Motors", priority=1, specialties=["electric"])

        result = LeadService(repo).submit(jane_payload)

        assert result.assigned
        assert result.dealer.id == volt.id
        assert result.dealer.current_load == 1
        assert result.lead.dealer_id == volt.id
        assert result.lead.status == LeadStatus.QUALIFIED.value
        # budget 30, email 5, website 5, complete 10
        assert result.lead.score == 50
        assert result.breakdown.budget == 30

    def test_no_dealer_keeps_lead_unassigned(self, repo, make_dealer, jane_payload):
        make_dealer(name="Closed", active=False)

        result = LeadService(repo).submit(jane_payload)

        assert not result.assigned
        assert result.routing_error
        stored = repo.get_lead(result.lead.id)
        assert stored is not None
        assert stored.dealer_id is None
        assert stored.status == LeadStatus.NEW.value

    def test_submission_logged_as_interaction(self, repo, jane_payload):
        result = LeadService(repo).submit(jane_payload)

        interactions = repo.list_interactions(result.lead.id)
        assert len(interactions) == 1
        assert interactions[0].channel == "website"
        assert "Tesla Model 3" in interactions[0].content

    def test_gateway_notified(self, repo, make_dealer, jane_payload):
        make_dealer(name="Volt Motors", specialties=["electric"], phone="+15550000000")
        gateway = MagicMock(spec=MessagingGateway)

        result = LeadService(repo, gateway=gateway).submit(jane_payload)

        gateway.process_lead.assert_called_once()
        gateway.send_lead_confirmation.assert_called_once()
        gateway.notify_dealer.assert_called_once()
        assert gateway.notify_dealer.call_args.args[0].id == result.dealer.id

    def test_gateway_failure_does_not_undo_lead(self, repo, make_dealer, jane_payload):
        make_dealer(name="Volt Motors", specialties=["electric"])
        gateway = MagicMock(spec=MessagingGateway)
        gateway.process_lead.side_effect = GatewayError("Gateway error: 502", status_code=502)

        result = LeadService(repo, gateway=gateway).submit(jane_payload)

        assert result.assigned
        assert len(result.notification_errors) == 1
        assert result.notification_errors[0].startswith("process_lead")
        gateway.send_lead_confirmation.assert_called_once()
        assert repo.get_lead(result.lead.id) is not None

    def test_interaction_log_failure_keeps_assignment(self, repo, make_dealer, jane_payload, monkeypatch):
        dealer = make_dealer(name="Volt Motors", specialties=["electric"])

        def fail(*args, **kwargs):
            raise OperationalError("INSERT INTO lead_interactions", {}, Exception("disk I/O error"))

        monkeypatch.setattr(repo, "log_interaction", fail)

        result = LeadService(repo).submit(jane_payload)

        assert result.assigned
        assert "disk I/O error" in result.interaction_error
        stored = repo.get_lead(result.lead.id)
        assert stored.dealer_id == dealer.id
        assert repo.get_dealer(dealer.id).current_load == 1


class TestReroute:
    """Stored leads can be routed again."""

    def test_reroute_after_rejection(self, repo, make_dealer, jane_payload):
        first = make_dealer(name="First", priority=5)
        service = LeadService(repo)
        result = service.submit(jane_payload)
        assert result.dealer.id == first.id

        repo.update_assignment_status(result.assignment.id, "rejected")
        second = make_dealer(name="Second", priority=10)

        dealer, assignment = service.reroute(result.lead.id)

        assert dealer.id == second.id
        assert assignment.assigned_by == AssignedBy.ADMIN.value

    def test_reroute_unknown_lead(self, repo):
        with pytest.raises(LeadNotFound):
            LeadService(repo).reroute("missing")

    def test_reroute_without_dealers(self, repo, jane_payload):
        service = LeadService(repo)
        result = service.submit(jane_payload)

        with pytest.raises(NoDealerAvailable):
            service.reroute(result.lead.id)
