"""
Identity resolver interface and provider routing.
"""

from typing import Dict, List, Protocol

from shared.errors import UnsupportedProviderError
from shared.logging import get_logger
from ..models import UserProfile


class IdentityResolver(Protocol):
    """Turns a provider credential into a user profile.

    Raises :class:`InvalidCredentialError`, :class:`ProviderUnavailableError`
    or :class:`UnknownSubjectError`.
    """

    async def resolve(self, provider_token: str, provider_name: str) -> UserProfile:
        ...

    async def close(self) -> None:
        ...


class ProviderRegistry:
    """Routes credentials to the resolver registered for their provider."""

    def __init__(self):
        self.logger = get_logger("tokens.providers")
        self._resolvers: Dict[str, IdentityResolver] = {}

    def register(self, provider_name: str, resolver: IdentityResolver) -> None:
        key = provider_name.strip().lower()
        if not key:
            raise ValueError("Provider name must not be empty")
        self._resolvers[key] = resolver
        self.logger.info("Identity provider registered", provider=key)

    def providers(self) -> List[str]:
        return sorted(self._resolvers)

    def get(self, provider_name: str) -> IdentityResolver:
        resolver = self._resolvers.get(provider_name.strip().lower())
        if resolver is None:
            raise UnsupportedProviderError(provider_name)
        return resolver

    async def resolve(self, provider_token: str, provider_name: str) -> UserProfile:
        return await self.get(provider_name).resolve(provider_token, provider_name)

    async def close(self) -> None:
        for resolver in self._resolvers.values():
            await resolver.close()
