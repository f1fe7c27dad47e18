"""
API Tests

Exercises the FastAPI endpoints against a temporary database.
"""

import inspect
from unittest.mock import MagicMock

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from carleads.config import settings
from carleads import server
from carleads.db import get_repository
from carleads.integrations import MessagingGateway
from carleads.server import app


@pytest.fixture
def client(repo, monkeypatch):
    monkeypatch.setattr(settings, "GATEWAY_URL", None)
    monkeypatch.setattr(settings, "WEBHOOK_TOKEN", None)
    app.dependency_overrides[get_repository] = lambda: repo
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestSystemEndpoints:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["database_connected"] is True

    def test_root(self, client):
        assert client.get("/").json()["name"] == "CarLeads API"

    def test_handlers_run_in_threadpool(self):
        """Handlers do blocking store and gateway I/O, so none may be a coroutine."""
        routes = [r for r in app.routes if isinstance(r, APIRoute)]

        assert routes
        assert [r.path for r in routes if inspect.iscoroutinefunction(r.endpoint)] == []


class TestLeadEndpoints:
    """Lead submission, listing and updates."""

    def test_create_lead_routes_to_dealer(self, client, make_dealer, jane_payload):
        volt = make_dealer(name="Volt Motors", specialties=["electric"])

        response = client.post("/v1/leads", json=jane_payload)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["dealer"] == {"id": volt.id, "name": "Volt Motors"}
        assert body["lead"]["dealer_id"] == volt.id
        assert body["score_breakdown"]["total"] == body["lead"]["score"]

    def test_create_lead_validation_error(self, client):
        response = client.post("/v1/leads", json={"name": "Jane Roe", "email": "bad", "phone": "5551234567"})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "Validation error"
        assert detail["details"][0]["loc"] == ["email"]

    def test_create_lead_without_dealers(self, client, jane_payload):
        response = client.post("/v1/leads", json=jane_payload)

        assert response.status_code == 201
        body = response.json()
        assert body["dealer"] is None
        assert body["routing_error"]
        assert body["lead"]["status"] == "new"

    def test_list_and_get_lead(self, client, make_lead):
        lead = make_lead()

        listed = client.get("/v1/leads", params={"status": "new"}).json()
        detail = client.get(f"/v1/leads/{lead.id}").json()

        assert listed["count"] == 1
        assert detail["lead"]["id"] == lead.id
        assert detail["dealer"] is None
        assert detail["assignments"] == []
        assert client.get("/v1/leads/missing").status_code == 404

    def test_patch_assigns_dealer(self, client, make_dealer, make_lead, repo):
        dealer = make_dealer()
        lead = make_lead()

        response = client.patch(f"/v1/leads/{lead.id}", json={"dealerId": dealer.id, "notes": "VIP"})

        assert response.status_code == 200
        assert response.json()["lead"]["dealer_id"] == dealer.id
        assert response.json()["lead"]["notes"] == "VIP"
        assert repo.get_dealer(dealer.id).current_load == 1

        again = client.patch(f"/v1/leads/{lead.id}", json={"dealerId": dealer.id})
        assert again.status_code == 409

    def test_patch_unknown_dealer_conflicts(self, client, make_lead):
        lead = make_lead()

        response = client.patch(f"/v1/leads/{lead.id}", json={"dealerId": "missing"})

        assert response.status_code == 409
        assert client.get(f"/v1/leads/{lead.id}").json()["lead"]["dealer_id"] is None

    def test_patch_requires_fields(self, client, make_lead):
        lead = make_lead()
        assert client.patch(f"/v1/leads/{lead.id}", json={}).status_code == 400

    def test_candidates(self, client, make_dealer, make_lead):
        volt = make_dealer(name="Volt Motors", specialties=["electric"])
        make_dealer(name="Sedans", specialties=["sedan"], priority=9)
        lead = make_lead(vehicle_interest="Tesla Model Y")

        response = client.get(f"/v1/leads/{lead.id}/candidates")

        assert [d["id"] for d in response.json()] == [volt.id]


class TestDealerAndAssignmentEndpoints:
    def test_create_and_list_dealers(self, client):
        response = client.post("/v1/dealers", json={"name": "Volt Motors", "capacity": 2, "specialties": ["electric"]})

        assert response.status_code == 201
        assert response.json()["available_capacity"] == 2
        assert [d["name"] for d in client.get("/v1/dealers").json()] == ["Volt Motors"]

    def test_assignment_status_flow(self, client, make_dealer, make_lead, repo):
        dealer = make_dealer()
        assignment = repo.assign_lead(make_lead().id, dealer.id)
        url = f"/v1/assignments/{assignment.id}/status"

        assert client.post(url, json={"status": "accepted"}).json()["status"] == "accepted"
        assert client.post(url, json={"status": "closed"}).status_code == 200
        assert client.post(url, json={"status": "accepted"}).status_code == 409
        assert client.post("/v1/assignments/missing/status", json={"status": "closed"}).status_code == 404
        assert repo.get_dealer(dealer.id).current_load == 0

    def test_stats(self, client, make_lead):
        make_lead()

        body = client.get("/v1/stats").json()

        assert body["success"] is True
        assert body["leads"]["total"] == 1


class TestWebhookEndpoint:
    def test_token_required_when_configured(self, client, make_lead, monkeypatch):
        monkeypatch.setattr(settings, "WEBHOOK_TOKEN", "hook-secret")
        lead = make_lead()
        payload = {"sessionKey": lead.session_key, "action": "qualified"}

        assert client.post("/v1/webhooks/gateway", json=payload).status_code == 401

        response = client.post(
            "/v1/webhooks/gateway",
            json=payload,
            headers={"X-Webhook-Token": "hook-secret"},
        )
        assert response.status_code == 200
        assert response.json()["status_updated"] is True

    def test_query_token_accepted(self, client, make_lead, monkeypatch):
        monkeypatch.setattr(settings, "WEBHOOK_TOKEN", "hook-secret")
        lead = make_lead()

        response = client.post(
            "/v1/webhooks/gateway",
            params={"token": "hook-secret"},
            json={"sessionKey": lead.session_key, "message": "hi"},
        )

        assert response.status_code == 200
        assert response.json()["lead_id"] == lead.id

    def test_followup_forwarded_to_configured_gateway(self, client, make_lead, monkeypatch):
        gateway = MagicMock(spec=MessagingGateway)
        monkeypatch.setattr(server, "get_gateway", lambda: gateway)
        lead = make_lead()

        response = client.post("/v1/webhooks/gateway", json={
            "sessionKey": lead.session_key,
            "action": "scheduled_followup",
            "metadata": {"followupType": "call"},
        })

        body = response.json()
        assert body["followup_scheduled"] is True
        assert body["followup_sent"] is True
        gateway.schedule_followup.assert_called_once()


class TestRouteEndpoint:
    def test_route_stored_lead(self, client, make_dealer, make_lead):
        lead = make_lead()

        assert client.post(f"/v1/leads/{lead.id}/route").status_code == 503

        dealer = make_dealer()
        response = client.post(f"/v1/leads/{lead.id}/route")

        assert response.status_code == 200
        assert response.json()["dealer"]["id"] == dealer.id
        assert client.post(f"/v1/leads/{lead.id}/route").status_code == 409
        assert client.post("/v1/leads/missing/route").status_code == 404
