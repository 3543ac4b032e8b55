"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import tempfile
from pathlib import Path

# Set environment variables BEFORE any imports that might use them
TEST_DB_PATH = tempfile.mktemp(suffix=".db")

os.environ["DATABASE_PATH"] = TEST_DB_PATH
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["FEED_CSV_URL"] = "https://sheets.example.test/export?format=csv"
os.environ["ENVIRONMENT"] = "development"

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


SAMPLE_FEED = """Member ID,Name (Primary Member),Email Address,Contact Number (Primary Member),Flat No.,Wing,Role,Maintenance Status,Outstanding Dues
M001,Asha Rao,Asha@Example.com,9876500001,101,A,manager,Paid,0
,Vikram Shah,vikram@example.com,9876500002,202,B,,Pending,"₹7,500"
M003,"Iyer, Meena",meena@example.com,9876500003,303,C,,Overdue,1200
M004,Unknown,ghost@example.com,,404,D,,Paid,
"""


class FakeFeedClient:
    """Stands in for FeedClient; serves fixed CSV text and counts fetches."""

    def __init__(self, text: str = SAMPLE_FEED, error: Exception = None):
        self.text = text
        self.error = error
        self.calls = 0

    def fetch_text(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text

    def fetch_rows(self):
        from services.feed_parser import parse_feed

        return parse_feed(self.fetch_text())


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Set up test environment variables (already set at module level)."""
    from api.auth import reset_jwt_secret
    from core.config import reset_config

    reset_config()
    reset_jwt_secret()
    yield
    # Cleanup
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def feed_factory():
    """Build fake feed clients: feed_factory(text=..., error=...)."""
    return FakeFeedClient


@pytest.fixture
def sample_feed_text():
    return SAMPLE_FEED


@pytest.fixture
def fake_feed():
    """Fake feed client serving SAMPLE_FEED."""
    return FakeFeedClient()


@pytest.fixture(scope="session")
def app():
    """Create FastAPI test application."""
    from api.main import app

    return app


@pytest.fixture(scope="session")
def client(app):
    """Create test client (runs startup, which initializes the database)."""
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def feed_override(app, fake_feed):
    """Route the API's feed client and membership validator through ``fake_feed``."""
    from api.dependencies import get_feed_client, get_validator
    from services.feed_cache import FeedCache
    from services.membership import MembershipValidator
    from services.rate_limiter import RateLimiter

    validator = MembershipValidator(
        feed_client=fake_feed,
        cache=FeedCache(ttl_seconds=300),
        rate_limiter=RateLimiter(max_requests=5, window_seconds=60),
    )
    app.dependency_overrides[get_feed_client] = lambda: fake_feed
    app.dependency_overrides[get_validator] = lambda: validator
    yield fake_feed
    app.dependency_overrides.pop(get_feed_client, None)
    app.dependency_overrides.pop(get_validator, None)


@pytest.fixture
def db_connection(client):
    """Get database connection for test assertions."""
    from api.database import get_connection

    with get_connection() as conn:
        yield conn


@pytest.fixture
def clean_db(db_connection):
    """Clean database tables before test."""
    for table in ("messages", "user_roles", "profiles", "society_settings"):
        db_connection.execute(f"DELETE FROM {table}")
    db_connection.execute("INSERT INTO society_settings (id) VALUES (1)")
    db_connection.commit()
    yield


def _make_user(email: str, role):
    from api.auth import create_token, register_profile

    profile = register_profile(email=email, password="password123", role=role, name=email.split("@")[0])
    token = create_token(profile.user_id, role.value)
    return profile, {"Authorization": f"Bearer {token}"}


@pytest.fixture
def manager(clean_db):
    """A stored manager profile and its auth headers."""
    from models.society import UserRole

    return _make_user("manager@example.com", UserRole.MANAGER)


@pytest.fixture
def resident(clean_db):
    """A stored resident profile and its auth headers."""
    from models.society import UserRole

    return _make_user("resident@example.com", UserRole.USER)
