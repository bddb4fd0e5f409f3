"""
Redis-backed revocation store.
"""

import math
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import StoreUnavailableError
from shared.logging import get_logger
from ..models import NOT_REVOKED, RevocationRecord

# Keep the later of the stored and the offered timestamp.
_PUT_LATEST = """
local current = redis.call('GET', KEYS[1])
if current and tonumber(current) >= tonumber(ARGV[1]) then
    return 0
end
redis.call('SET', KEYS[1], ARGV[1], 'EX', ARGV[2])
return 1
"""


class RedisRevocationStore:
    """Revocation records in Redis, expiring after the longest token lifetime.

    Once every token a record could affect has expired the record is useless,
    so Redis key expiry replaces an explicit sweep.
    """

    TOKEN_PREFIX = "revocation:token:"
    USER_PREFIX = "revocation:user:"

    def __init__(self, client: redis.Redis, record_ttl_seconds: int):
        if record_ttl_seconds <= 0:
            raise ValueError("record_ttl_seconds must be positive")
        self.redis = client
        self.record_ttl_seconds = int(math.ceil(record_ttl_seconds))
        self.logger = get_logger("tokens.revocation.redis")
        self._put_latest = self.redis.register_script(_PUT_LATEST)
        self._closed = False

    @classmethod
    def from_url(cls, redis_url: str, record_ttl_seconds: int,
                 socket_timeout: Optional[float] = 5.0) -> "RedisRevocationStore":
        client = redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
            health_check_interval=30
        )
        return cls(client, record_ttl_seconds)

    def _backend_error(self, operation: str, error: Exception) -> StoreUnavailableError:
        self.logger.error("Revocation store call failed", operation=operation, error=str(error))
        return StoreUnavailableError(
            f"Revocation store failed during {operation}",
            details={"operation": operation}
        )

    @staticmethod
    def _record(value: Optional[str]) -> RevocationRecord:
        if value is None:
            return NOT_REVOKED
        return RevocationRecord(revoked=True, revoked_at=float(value))

    async def put_token_revocation(self, token_id: str, revoked_at: float) -> bool:
        try:
            created = await self.redis.set(
                f"{self.TOKEN_PREFIX}{token_id}",
                repr(float(revoked_at)),
                nx=True,
                ex=self.record_ttl_seconds
            )
        except RedisError as e:
            raise self._backend_error("put_token_revocation", e) from e
        return bool(created)

    async def put_user_revocation(self, user_id: str, revoked_at: float) -> bool:
        try:
            updated = await self._put_latest(
                keys=[f"{self.USER_PREFIX}{user_id}"],
                args=[repr(float(revoked_at)), self.record_ttl_seconds]
            )
        except RedisError as e:
            raise self._backend_error("put_user_revocation", e) from e
        return bool(updated)

    async def is_token_revoked(self, token_id: str) -> RevocationRecord:
        try:
            value = await self.redis.get(f"{self.TOKEN_PREFIX}{token_id}")
        except RedisError as e:
            raise self._backend_error("is_token_revoked", e) from e
        return self._record(value)

    async def is_user_revoked(self, user_id: str) -> RevocationRecord:
        try:
            value = await self.redis.get(f"{self.USER_PREFIX}{user_id}")
        except RedisError as e:
            raise self._backend_error("is_user_revoked", e) from e
        return self._record(value)

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except RedisError as e:
            raise self._backend_error("ping", e) from e

    async def purge(self, before: float) -> int:
        # Records expire through their TTL
        return 0

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.redis.aclose()
        self.logger.info("Redis revocation store closed")
