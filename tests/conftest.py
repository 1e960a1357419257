"""
Test fixtures for the Session Authentication service.

This module provides pytest fixtures for the user directory, a controllable
clock, the session cache, the lifecycle manager and the application test
client.
"""
import datetime

import pytest
from fastapi.testclient import TestClient

from session_auth.auth import TokenLifecycleManager
from session_auth.cache import MemorySessionCache
from session_auth.config.jwt_config import JwtProperties
from session_auth.database import Database
from session_auth.directory import DatabaseIdentityProvider
from session_auth.token import JwtSigner
from main import create_app

TEST_SECRET = "test-process-secret"
TEST_EXPIRE_SECONDS = 3600
TEST_COUNTDOWN_SECONDS = 600


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime.datetime):
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, seconds: float) -> datetime.datetime:
        self.now = self.now + datetime.timedelta(seconds=seconds)
        return self.now


@pytest.fixture(scope="function")
def clock():
    """Create a frozen clock."""
    return FrozenClock(datetime.datetime(2026, 1, 1, 12, 0, tzinfo=datetime.timezone.utc))


@pytest.fixture(scope="function")
def jwt_properties():
    """JWT configuration used across the tests."""
    return JwtProperties(
        secret=TEST_SECRET,
        expire_seconds=TEST_EXPIRE_SECONDS,
        refresh_token=True,
        refresh_token_countdown=TEST_COUNTDOWN_SECONDS,
    )


@pytest.fixture(scope="function")
def database():
    """Create an in-memory test database."""
    db = Database("sqlite:///:memory:", echo=False)
    db.create_all()
    yield db
    db.drop_all()


@pytest.fixture(scope="function")
def provider(database):
    """Create the database-backed identity provider."""
    return DatabaseIdentityProvider(database)


@pytest.fixture(scope="function")
def alice(provider):
    """Create a test user with the admin role."""
    return provider.create_user("alice", roles={"admin"}, salt="666")


@pytest.fixture(scope="function")
def bob(provider):
    """Create a second test user."""
    return provider.create_user("bob", roles={"user", "auditor"})


@pytest.fixture(scope="function")
def cache(clock):
    """Create an in-memory session cache driven by the frozen clock."""
    return MemorySessionCache(clock)


@pytest.fixture(scope="function")
def signer(jwt_properties, clock):
    """Create a token signer driven by the frozen clock."""
    return JwtSigner(jwt_properties, clock=clock)


@pytest.fixture(scope="function")
def manager(provider, cache, jwt_properties, signer, clock):
    """Create the token lifecycle manager."""
    return TokenLifecycleManager(
        provider=provider,
        cache=cache,
        properties=jwt_properties,
        signer=signer,
        clock=clock,
    )


@pytest.fixture(scope="function")
def app(manager):
    """Create the application around the test manager."""
    return create_app(manager)


@pytest.fixture(scope="function")
def client(app):
    """Create a test client for the application."""
    return TestClient(app)


@pytest.fixture(scope="function")
def alice_session(manager, alice):
    """Log alice in and return the session context."""
    return manager.login("alice")


@pytest.fixture(scope="function")
def refresh_window_reached(clock):
    """Move the clock into the refresh window of a token minted at the start time."""
    def _advance():
        return clock.advance(TEST_EXPIRE_SECONDS - TEST_COUNTDOWN_SECONDS + 1)
    return _advance
