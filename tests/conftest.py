"""Pytest configuration and fixtures for PhotoMirror tests.

This module provides reusable fixtures for:
- Settings overrides
- A controllable clock for cache tests
- A stub SmugMug upstream served through httpx.MockTransport
- Transport, cache, coalescer and repository wired to the stub
"""

import httpx
import pytest

from photomirror.config import Settings
from photomirror.repositories.album import AlbumRepository
from photomirror.services.cache import CacheStore
from photomirror.services.coalescer import RequestCoalescer
from photomirror.services.oauth import OAuthCredentials
from photomirror.services.transport import SignedTransport
from tests.mocks.smugmug_responses import API_ROOT, SmugMugStub

# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Create test-specific settings.

    Credentials are fake; the upstream is always a MockTransport.
    """
    return Settings(
        app_env="development",  # type: ignore[arg-type]
        debug=True,
        log_level="DEBUG",  # type: ignore[arg-type]
        log_format="console",  # type: ignore[arg-type]
        smugmug_api_key="test-consumer-key",  # type: ignore[arg-type]
        smugmug_api_secret="test-consumer-secret",  # type: ignore[arg-type]
        smugmug_access_token="test-token",  # type: ignore[arg-type]
        smugmug_access_token_secret="test-token-secret",  # type: ignore[arg-type]
        smugmug_username="nino",
        smugmug_backoff_base=0,
    )


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Upstream Fixtures
# =============================================================================


@pytest.fixture
def credentials() -> OAuthCredentials:
    return OAuthCredentials(
        consumer_key="test-consumer-key",
        consumer_secret="test-consumer-secret",
        token="test-token",
        token_secret="test-token-secret",
    )


@pytest.fixture
def stub() -> SmugMugStub:
    """Empty stub upstream; tests register the routes they need."""
    return SmugMugStub()


@pytest.fixture
def transport(credentials: OAuthCredentials, stub: SmugMugStub) -> SignedTransport:
    """SignedTransport talking to the stub upstream with no backoff delay."""
    return SignedTransport(
        credentials,
        base_url=API_ROOT,
        max_attempts=3,
        backoff_base=0,
        client=httpx.AsyncClient(transport=stub.transport()),
    )


@pytest.fixture
def cache(clock: FakeClock) -> CacheStore:
    return CacheStore(max_entries=100, clock=clock)


@pytest.fixture
def repository(transport: SignedTransport, cache: CacheStore) -> AlbumRepository:
    """Repository for account "nino" over the stub upstream."""
    return AlbumRepository(transport, cache, RequestCoalescer(), username="nino")
