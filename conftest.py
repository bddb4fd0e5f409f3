"""
Shared fixtures for token lifecycle tests.
"""

import asyncio

import pytest

from shared.config import TokenServiceConfig
from shared.errors import InvalidCredentialError, StoreUnavailableError
from shared.metrics import MetricsCollector
from service_tokens.app.main import build_services
from service_tokens.app.models import UserProfile
from service_tokens.app.revocation import InMemoryRevocationStore
from service_tokens.app.signing import JwtSigner

SIGNING_SECRET = "0123456789abcdef" * 8
START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = START_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeResolver:
    """Identity resolver answering from a token -> profile map."""

    def __init__(self):
        self.profiles = {
            "google-token": UserProfile(
                user_id="user-123",
                email="jane@example.com",
                name="Jane Doe",
                email_verified=True,
                provider="google",
            ),
        }
        self.errors = {}
        self.calls = []
        self.delay = 0.0
        self.closed = False

    async def resolve(self, provider_token, provider_name):
        self.calls.append((provider_token, provider_name))
        if self.delay:
            await asyncio.sleep(self.delay)
        if provider_token in self.errors:
            raise self.errors[provider_token]
        if provider_token not in self.profiles:
            raise InvalidCredentialError()
        return self.profiles[provider_token]

    async def close(self):
        self.closed = True


class CountingStore(InMemoryRevocationStore):
    """In-memory store that records calls and can be made to fail or hang."""

    def __init__(self):
        super().__init__()
        self.calls = []
        self.fail = False
        self.delay = 0.0

    async def _track(self, name):
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise StoreUnavailableError("Store is down")

    async def put_token_revocation(self, token_id, revoked_at):
        await self._track("put_token_revocation")
        return await super().put_token_revocation(token_id, revoked_at)

    async def put_user_revocation(self, user_id, revoked_at):
        await self._track("put_user_revocation")
        return await super().put_user_revocation(user_id, revoked_at)

    async def is_token_revoked(self, token_id):
        await self._track("is_token_revoked")
        return await super().is_token_revoked(token_id)

    async def is_user_revoked(self, user_id):
        await self._track("is_user_revoked")
        return await super().is_user_revoked(user_id)

    async def ping(self):
        await self._track("ping")
        return await super().ping()


class FakeMembership:
    """Domain membership backed by a set of (subject, domain) pairs."""

    def __init__(self, members=()):
        self.members = set(members)

    async def is_member(self, subject, domain_id):
        return (subject, domain_id) in self.members


@pytest.fixture
def config():
    """Configuration with short dependency timeouts."""
    return TokenServiceConfig(
        signing_secret=SIGNING_SECRET,
        access_token_ttl_seconds=3600,
        refresh_token_ttl_seconds=7 * 24 * 3600,
        provider_timeout_seconds=0.2,
        store_timeout_seconds=0.2,
        drain_timeout_seconds=0.5,
        default_scopes=["read"],
        default_roles=["user"],
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def membership():
    return FakeMembership()


@pytest.fixture
def signer(config):
    return JwtSigner.from_config(config)


@pytest.fixture
def metrics():
    return MetricsCollector("token-lifecycle-test")


@pytest.fixture
def services(config, resolver, store, signer, clock, metrics):
    """Issuer and verifier wired around the fakes."""
    return build_services(
        config,
        resolver=resolver,
        store=store,
        signer=signer,
        clock=clock,
        metrics=metrics,
    )


@pytest.fixture
def issuer(services):
    return services.issuer


@pytest.fixture
def verifier(services):
    return services.verifier
