from .checker import RevocationChecker
from .redis_store import RedisRevocationStore
from .store import InMemoryRevocationStore, RevocationStore

__all__ = ["InMemoryRevocationStore", "RedisRevocationStore", "RevocationChecker", "RevocationStore"]
