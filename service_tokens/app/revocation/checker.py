"""
Revocation lookups and writes bounded by the store timeout.
"""

import asyncio
from typing import Any, Awaitable, Optional

from shared.errors import StoreUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..models import TokenClaims
from .store import RevocationStore


class RevocationChecker:
    """Single-attempt, time-bounded access to a revocation store.

    Timeouts and backend failures surface as :class:`StoreUnavailableError`.
    """

    def __init__(self, store: RevocationStore, timeout: float,
                 metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("tokens.revocation")

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            if self.metrics is None:
                return await asyncio.wait_for(awaitable, timeout=self.timeout)
            with self.metrics.time_dependency("revocation_store"):
                return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            self.logger.warning("Revocation store timed out", operation=operation, timeout=self.timeout)
            raise StoreUnavailableError(
                "Revocation store did not answer in time",
                details={"operation": operation}
            ) from e
        except StoreUnavailableError:
            raise
        except Exception as e:
            self.logger.error("Revocation store failed", operation=operation, error=str(e))
            raise StoreUnavailableError(
                "Revocation store failed",
                details={"operation": operation}
            ) from e

    async def is_revoked(self, claims: TokenClaims, now: float) -> bool:
        """Whether the token or its subject has been revoked as of ``now``.

        A token id record always revokes. A user record revokes tokens issued
        at or before the revocation time.
        """
        token_record, user_record = await self._call(
            "lookup",
            asyncio.gather(
                self.store.is_token_revoked(claims.token_id),
                self.store.is_user_revoked(claims.subject),
            )
        )
        if token_record.revoked:
            return True
        return user_record.applies_to(claims.issued_at, now)

    async def revoke_token(self, token_id: str, revoked_at: float) -> bool:
        return await self._call("revoke_token", self.store.put_token_revocation(token_id, revoked_at))

    async def revoke_user(self, user_id: str, revoked_at: float) -> bool:
        return await self._call("revoke_user", self.store.put_user_revocation(user_id, revoked_at))

    async def ping(self) -> bool:
        return await self._call("ping", self.store.ping())

    async def purge(self, before: float) -> int:
        return await self._call("purge", self.store.purge(before))
