"""
Shared fixtures: required settings, an in-memory database and Redis wired
into the service singletons, and a TestClient for the API.
"""
import os

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-unit-tests-only")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("MODERATION_ENABLED", "false")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from app.core.security import create_session_token
from app.main import app
from app.services.anonymous_usage import anonymous_usage
from app.services.auth_service import auth_service
from app.services.community_service import community_service
from app.services.entitlement_service import entitlement_service
from app.services.promotion_service import promotion_service
from app.services.saved_items_service import saved_items_service

from fakes import FakeRedis, FakeSupabase

SERVICES = (
    entitlement_service,
    auth_service,
    community_service,
    saved_items_service,
    promotion_service,
)


@pytest.fixture
def fake_db():
    db = FakeSupabase()
    for service in SERVICES:
        service.supabase = db
    yield db
    for service in SERVICES:
        service.supabase = None


@pytest.fixture
def fake_redis():
    redis = FakeRedis()
    anonymous_usage.redis_client = redis
    yield redis
    anonymous_usage.redis_client = None


@pytest.fixture
def client(fake_db, fake_redis):
    return TestClient(app)


@pytest.fixture
def make_user(fake_db):
    """Insert a user row; counters default to zero and the period to now."""
    def _make_user(email="driver@example.com", plan="FREE", **fields):
        row = {
            "email": email,
            "plan_code": plan,
            "perf_used": 0,
            "build_used": 0,
            "image_used": 0,
            "reset_date": datetime.now(timezone.utc).isoformat(),
        }
        row.update(fields)
        return fake_db.insert_row("users", row)
    return _make_user


def auth_headers(email: str, plan: str = "FREE") -> dict:
    return {"Authorization": f"Bearer {create_session_token(email, None, plan)}"}


@pytest.fixture
def headers_for():
    return auth_headers
