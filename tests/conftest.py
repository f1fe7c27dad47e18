"""Shared fixtures for the CarLeads test suite."""

import pytest

from carleads.db import Repository
from carleads.models import Dealer, Lead


@pytest.fixture
def repo(tmp_path):
    """Repository backed by a throwaway SQLite file."""
    repository = Repository(f"sqlite:///{tmp_path / 'carleads.db'}")
    repository.init_db()
    yield repository
    repository.engine.dispose()


@pytest.fixture
def make_dealer(repo):
    """Create and store a dealer."""

    def _make(name="Dealer", capacity=5, current_load=0, priority=0, specialties=None, active=True, phone=None):
        return repo.save_dealer(Dealer(
            name=name,
            capacity=capacity,
            current_load=current_load,
            priority=priority,
            specialties=specialties or [],
            active=active,
            phone=phone,
        ))

    return _make


@pytest.fixture
def make_lead(repo):
    """Create and store a lead."""

    def _make(vehicle_interest=None, **fields):
        fields.setdefault("name", "Jane Roe")
        fields.setdefault("email", "jane@example.com")
        fields.setdefault("phone", "5551234567")
        return repo.save_lead(Lead(vehicle_interest=vehicle_interest, **fields))

    return _make


@pytest.fixture
def jane_payload():
    return {
        "name": "Jane Roe",
        "email": "jane@example.com",
        "phone": "5551234567",
        "vehicleInterest": "Tesla Model 3",
        "budget": "$50k-$100k",
    }
