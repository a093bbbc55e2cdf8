"""
Shared fixtures: an app wired to an in-memory store and local admin auth.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from tradebarriers.core.service import TrackerService
from tradebarriers.db.store import InMemoryAgreementStore
from tradebarriers.main import create_app
from tradebarriers.observability import get_metrics
from tradebarriers.schemas import (
    Agreement,
    AgreementInput,
    AgreementStatus,
    HistoryEntry,
    JurisdictionName,
    JurisdictionParticipation,
    JurisdictionStatus,
)
from tradebarriers.web.auth import LocalAuthBackend, hash_password, reset_rate_limits


ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct-horse"
SESSION_SECRET = "test-secret-with-enough-characters"


def make_agreement(
    title: str = "Harmonize Trucking Rules",
    status: AgreementStatus = AgreementStatus.UNDER_NEGOTIATION,
    deadline=None,
    theme=None,
    jurisdictions=None,
    history=None,
    agreement_id: str = "a1",
) -> Agreement:
    """Build a stored-shape Agreement without going through a store."""
    return Agreement(
        id=agreement_id,
        title=title,
        summary="summary",
        description="description",
        status=status,
        deadline=deadline,
        theme=theme,
        jurisdictions=jurisdictions if jurisdictions is not None else [
            JurisdictionParticipation(name=JurisdictionName.ONTARIO, status=JurisdictionStatus.ENGAGED),
        ],
        agreement_history=[
            HistoryEntry(status=s, date_entered=d) for s, d in (history or [])
        ],
    )


def agreement_body(**overrides) -> dict:
    body = {
        "title": "Mutual Recognition of Trades",
        "summary": "Certified trades work anywhere.",
        "description": "Recognize trade certifications across jurisdictions.",
        "status": "Under Negotiation",
        "deadline": "2030-06-30",
        "theme": "Labour Mobility",
        "jurisdictions": [
            {"name": "Ontario", "status": "Committed", "notes": ""},
            {"name": "Quebec", "status": "Declined", "notes": "Not participating"},
        ],
        "agreement_history": [
            {"status": "Awaiting Sponsorship", "date_entered": "2023-01-10"},
            {"status": "Under Negotiation", "date_entered": "2024-03-01"},
        ],
    }
    body.update(overrides)
    return body


@pytest.fixture(autouse=True)
def _reset_globals():
    reset_rate_limits()
    get_metrics().reset()
    yield
    reset_rate_limits()


@pytest.fixture
def store():
    return InMemoryAgreementStore()


@pytest.fixture
def service(store):
    return TrackerService(store)


@pytest.fixture(scope="session")
def admin_password_hash():
    return hash_password(ADMIN_PASSWORD)


@pytest.fixture
def auth(admin_password_hash):
    return LocalAuthBackend(
        admin_email=ADMIN_EMAIL,
        password_hash=admin_password_hash,
        secret=SESSION_SECRET,
    )


@pytest.fixture
def app(store, auth):
    return create_app(store=store, auth=auth)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def token(auth):
    return auth.sign_in(ADMIN_EMAIL, ADMIN_PASSWORD).access_token


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def seeded(service):
    """A small collection covering every status."""
    made = []
    for i, (status, deadline, theme) in enumerate([
        ("Awaiting Sponsorship", None, "Transportation"),
        ("Under Negotiation", "2030-01-01", "Labour Mobility"),
        ("Agreement Reached", "2020-01-01", "Labour Mobility"),
        ("Implemented", "2020-01-01", None),
        ("Deferred", "2030-01-01", "Transportation"),
    ]):
        made.append(service.create_agreement(AgreementInput.model_validate(agreement_body(
            title=f"Agreement {i} {status}",
            status=status,
            deadline=deadline,
            theme=theme,
        ))))
    return made


@pytest.fixture
def today():
    return date(2025, 6, 15)
