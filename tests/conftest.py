# tests/conftest.py — shared fixtures: singleton resets, JWTs, a mocked database

import os
import time
from unittest.mock import MagicMock

import jwt
import pytest

# app.py loads config at import time
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")

TEST_JWT_SECRET = "test-jwt-secret"

# Reference data used across tests
ORTHO_ID = "11111111-1111-4111-8111-111111111111"
FOOT_ANKLE_ID = "22222222-2222-4222-8222-222222222222"
SPORTS_ID = "33333333-3333-4333-8333-333333333333"
PODIATRY_ID = "44444444-4444-4444-8444-444444444444"
GENERALIST_ID = "55555555-5555-4555-8555-555555555555"
PLASTICS_ID = "66666666-6666-4666-8666-666666666666"

SPECIALTIES = [
    {"id": ORTHO_ID, "name": "Orthopaedic Surgery"},
    {"id": PODIATRY_ID, "name": "Podiatry"},
    {"id": PLASTICS_ID, "name": "Plastic Surgery"},
]
SUBSPECIALTIES = [
    {"id": FOOT_ANKLE_ID, "name": "Foot and Ankle", "specialty_id": ORTHO_ID},
    {"id": SPORTS_ID, "name": "Sports", "specialty_id": ORTHO_ID},
    {"id": GENERALIST_ID, "name": "Generalist", "specialty_id": ORTHO_ID},
]


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset process-wide singletons around every test."""
    from api.deps import reset_deps
    from core.limits import reset_limiter
    from core.metrics import reset_metrics
    from core.rbac import reset_resolver
    from core.subscriptions import reset_registry

    def reset():
        reset_resolver()
        reset_limiter()
        reset_registry()
        reset_metrics()
        reset_deps()

    reset()
    yield
    reset()


@pytest.fixture
def reference():
    from core.visibility import InMemoryReferenceData
    return InMemoryReferenceData(SPECIALTIES, SUBSPECIALTIES)


def make_token(user_id: str, email: str = "user@example.com", secret: str = TEST_JWT_SECRET, **claims) -> str:
    payload = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
        **claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_header(user_id: str, **claims) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, **claims)}"}


@pytest.fixture
def profiles():
    """profiles rows keyed by user id; tests add rows as needed."""
    return {}


@pytest.fixture
def mock_db(reference, profiles):
    """
    MagicMock standing in for DatabaseAdapter.

    Reference lookups answer from the in-memory reference data and
    get_profile from the `profiles` fixture.
    """
    db = MagicMock()
    db.get_specialty_name.side_effect = reference.get_specialty_name
    db.get_subspecialty_name.side_effect = reference.get_subspecialty_name
    db.find_specialty_id.side_effect = reference.find_specialty_id
    db.find_subspecialty_id.side_effect = reference.find_subspecialty_id
    db.subspecialty_ids_for.side_effect = reference.subspecialty_ids_for
    db.get_subspecialty_specialty_id.side_effect = reference.get_subspecialty_specialty_id
    db.get_profile.side_effect = lambda user_id: profiles.get(user_id)
    db.get_categories.return_value = []
    db.get_resources.return_value = []
    db.get_active_companies.return_value = []
    db.list_favorites.return_value = []
    db.list_upcoming_cases.return_value = []
    return db


@pytest.fixture
def tracker():
    from core.analytics import AnalyticsTracker
    tracker = MagicMock(spec=AnalyticsTracker)
    tracker.track.return_value = True
    return tracker


@pytest.fixture
def client(mock_db, tracker, profiles):
    """TestClient for the real app, with the database and tracker swapped out."""
    from fastapi.testclient import TestClient

    from api.deps import get_db, get_tracker
    from app import app
    from core.rbac import configure_resolver

    configure_resolver(supabase_jwt_secret=TEST_JWT_SECRET, profile_loader=lambda uid: profiles.get(uid))
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_tracker] = lambda: tracker

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def feature_flags_on(monkeypatch):
    """Every feature flag reads as enabled without touching Supabase."""
    monkeypatch.setattr("router.catalog.get_feature_flag", lambda name, default=None: True)
    monkeypatch.setattr("router.rep.get_feature_flag", lambda name, default=None: True)
