"""
Unit tests for RedisRevocationStore.
"""

import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from redis.exceptions import ConnectionError as RedisConnectionError
from unittest.mock import AsyncMock

from shared.errors import StoreUnavailableError
from service_tokens.app.revocation import RedisRevocationStore


class TestRedisRevocationStore:
    """Test cases for RedisRevocationStore."""

    @pytest.fixture
    def client(self):
        return FakeAsyncRedis(server=FakeServer(), decode_responses=True)

    @pytest.fixture
    def store(self, client):
        return RedisRevocationStore(client, record_ttl_seconds=3600)

    @pytest.mark.asyncio
    async def test_token_revocation_keeps_first_timestamp(self, store):
        """Test SET NX semantics for token records."""
        assert await store.put_token_revocation("jti-1", 100.5) is True
        assert await store.put_token_revocation("jti-1", 200.0) is False

        record = await store.is_token_revoked("jti-1")
        assert record.revoked is True
        assert record.revoked_at == 100.5

    @pytest.mark.asyncio
    async def test_user_revocation_keeps_latest_timestamp(self, store):
        """Test compare-and-set semantics for user records."""
        assert await store.put_user_revocation("user-123", 100.0) is True
        assert await store.put_user_revocation("user-123", 300.25) is True
        assert await store.put_user_revocation("user-123", 200.0) is False

        assert (await store.is_user_revoked("user-123")).revoked_at == 300.25

    @pytest.mark.asyncio
    async def test_unknown_ids_are_not_revoked(self, store):
        assert (await store.is_token_revoked("missing")).revoked is False
        assert (await store.is_user_revoked("missing")).revoked is False

    @pytest.mark.asyncio
    async def test_records_expire(self, store, client):
        """Test that records carry the longest token lifetime as TTL."""
        await store.put_token_revocation("jti-1", 1.0)
        await store.put_user_revocation("user-123", 1.0)

        token_ttl = await client.ttl("revocation:token:jti-1")
        user_ttl = await client.ttl("revocation:user:user-123")
        assert 0 < token_ttl <= 3600
        assert 0 < user_ttl <= 3600

    @pytest.mark.asyncio
    async def test_ping(self, store):
        assert await store.ping() is True

    @pytest.mark.asyncio
    async def test_purge_relies_on_expiry(self, store):
        await store.put_token_revocation("jti-1", 1.0)

        assert await store.purge(before=10.0) == 0
        assert (await store.is_token_revoked("jti-1")).revoked is True

    @pytest.mark.asyncio
    async def test_backend_errors_become_store_unavailable(self, store, client):
        """Test that connection failures are mapped."""
        client.get = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        client.set = AsyncMock(side_effect=RedisConnectionError("connection refused"))

        with pytest.raises(StoreUnavailableError):
            await store.is_token_revoked("jti-1")
        with pytest.raises(StoreUnavailableError):
            await store.is_user_revoked("user-123")
        with pytest.raises(StoreUnavailableError):
            await store.put_token_revocation("jti-1", 1.0)

    @pytest.mark.asyncio
    async def test_ping_failure(self, store, client):
        client.ping = AsyncMock(side_effect=RedisConnectionError("connection refused"))

        with pytest.raises(StoreUnavailableError):
            await store.ping()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, store, client):
        client.aclose = AsyncMock()

        await store.close()
        await store.close()

        client.aclose.assert_awaited_once()

    def test_ttl_must_be_positive(self, client):
        with pytest.raises(ValueError):
            RedisRevocationStore(client, record_ttl_seconds=0)
