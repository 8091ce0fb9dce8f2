"""Pytest configuration and fixtures."""

import asyncio
import os
import secrets

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("COOKIE_SECURE", "false")

from fastapi.testclient import TestClient  # noqa: E402

from gigboard.api.auth import create_access_token, hash_password  # noqa: E402
from gigboard.api.context import build_context  # noqa: E402
from gigboard.api.main import create_app  # noqa: E402
from gigboard.config import Settings  # noqa: E402
from gigboard.market.bids import BidService, InMemoryBidStorage  # noqa: E402
from gigboard.market.common import new_id  # noqa: E402
from gigboard.market.gigs import Gig, GigService, InMemoryGigStorage  # noqa: E402
from gigboard.market.hiring import HiringCoordinator  # noqa: E402
from gigboard.market.users import InMemoryUserStorage, User, UserRole  # noqa: E402

GIG_DESCRIPTION = "Build a responsive landing page for a product launch"
BID_MESSAGE = "I have shipped dozens of landing pages like this"


def make_gig(owner_id: str = "client_1", **overrides) -> Gig:
    fields = dict(
        id=new_id(),
        owner_id=owner_id,
        title="Landing page",
        description=GIG_DESCRIPTION,
        budget=500,
    )
    fields.update(overrides)
    return Gig(**fields)


@pytest.fixture
def settings():
    return Settings(
        jwt_secret_key=_TEST_JWT_SECRET,
        storage_backend="memory",
        hire_backoff_min_ms=0,
        hire_backoff_max_ms=1,
        orphan_grace_seconds=0,
        cookie_secure=False,
    )


@pytest.fixture
def gig_storage():
    return InMemoryGigStorage()


@pytest.fixture
def bid_storage():
    return InMemoryBidStorage()


@pytest.fixture
def user_storage():
    return InMemoryUserStorage()


@pytest.fixture
def coordinator(gig_storage, bid_storage):
    return HiringCoordinator(gig_storage, bid_storage, backoff_ms=(0, 1))


@pytest.fixture
def bid_service(gig_storage, bid_storage):
    return BidService(gig_storage, bid_storage)


@pytest.fixture
def gig_service(gig_storage, bid_storage):
    return GigService(gig_storage, bid_storage)


@pytest.fixture
def context(settings, gig_storage, bid_storage, user_storage):
    return build_context(settings, gigs=gig_storage, bids=bid_storage, users=user_storage)


@pytest.fixture
def app(context):
    return create_app(context)


@pytest.fixture
def client(app):
    """Create a test client with the app lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(context):
    """Register a user directly in the store and return (user, auth headers)."""

    def _make(name: str = "Test User", role: str = UserRole.USER.value):
        user = User(
            id=new_id(),
            name=name,
            email=f"{new_id()[:8]}@example.com",
            password_hash=hash_password("secret-pass"),
            role=role,
        )
        asyncio.run(context.users.save(user))
        token = create_access_token(user, context.settings)
        return user, {"Authorization": f"Bearer {token}"}

    return _make
