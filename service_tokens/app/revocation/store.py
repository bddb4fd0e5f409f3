"""
Revocation store interface and in-memory implementation.
"""

from typing import Dict, Protocol

from shared.errors import StoreUnavailableError
from shared.logging import get_logger
from ..models import NOT_REVOKED, RevocationRecord


class RevocationStore(Protocol):
    """Durable record of revoked token ids and revoked users.

    Token revocations keep the first timestamp written; user revocations keep
    the latest. Every method raises :class:`StoreUnavailableError` when the
    backend cannot be reached.
    """

    async def put_token_revocation(self, token_id: str, revoked_at: float) -> bool:
        """Record a token revocation. Returns False if one already existed."""
        ...

    async def put_user_revocation(self, user_id: str, revoked_at: float) -> bool:
        """Record a user revocation. Returns False if a later one already existed."""
        ...

    async def is_token_revoked(self, token_id: str) -> RevocationRecord:
        ...

    async def is_user_revoked(self, user_id: str) -> RevocationRecord:
        ...

    async def ping(self) -> bool:
        ...

    async def purge(self, before: float) -> int:
        """Drop records with a timestamp older than ``before``."""
        ...

    async def close(self) -> None:
        ...


class InMemoryRevocationStore:
    """Dict-backed revocation store for tests and single-process deployments.

    Mutations never await between read and write, so each one is atomic on
    the event loop.
    """

    def __init__(self):
        self.logger = get_logger("tokens.revocation.memory")
        self._tokens: Dict[str, float] = {}
        self._users: Dict[str, float] = {}
        self._closed = False

    def _ensure_open(self):
        if self._closed:
            raise StoreUnavailableError("Revocation store is closed")

    async def put_token_revocation(self, token_id: str, revoked_at: float) -> bool:
        self._ensure_open()
        if token_id in self._tokens:
            return False
        self._tokens[token_id] = revoked_at
        return True

    async def put_user_revocation(self, user_id: str, revoked_at: float) -> bool:
        self._ensure_open()
        current = self._users.get(user_id)
        if current is not None and current >= revoked_at:
            return False
        self._users[user_id] = revoked_at
        return True

    async def is_token_revoked(self, token_id: str) -> RevocationRecord:
        self._ensure_open()
        revoked_at = self._tokens.get(token_id)
        if revoked_at is None:
            return NOT_REVOKED
        return RevocationRecord(revoked=True, revoked_at=revoked_at)

    async def is_user_revoked(self, user_id: str) -> RevocationRecord:
        self._ensure_open()
        revoked_at = self._users.get(user_id)
        if revoked_at is None:
            return NOT_REVOKED
        return RevocationRecord(revoked=True, revoked_at=revoked_at)

    async def ping(self) -> bool:
        self._ensure_open()
        return True

    async def purge(self, before: float) -> int:
        self._ensure_open()
        removed = 0
        for records in (self._tokens, self._users):
            stale = [key for key, revoked_at in records.items() if revoked_at < before]
            for key in stale:
                del records[key]
            removed += len(stale)

        if removed:
            self.logger.info("Purged revocation records", removed=removed)
        return removed

    async def close(self) -> None:
        self._closed = True

    def __len__(self) -> int:
        return len(self._tokens) + len(self._users)
