"""
OpenID Connect userinfo resolver.
"""

from typing import Any, Dict, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from shared.errors import (
    InvalidCredentialError, ProviderUnavailableError, UnknownSubjectError
)
from shared.logging import get_logger
from ..models import UserProfile


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


class UserInfoResolver:
    """Resolve a bearer credential against a provider's userinfo endpoint."""

    def __init__(self, provider: str, userinfo_url: str,
                 timeout: float = 5.0,
                 client: Optional[httpx.AsyncClient] = None,
                 circuit_breaker: Optional[CircuitBreaker] = None):
        self.provider = provider.lower()
        self.userinfo_url = userinfo_url
        self.logger = get_logger(f"tokens.providers.{self.provider}")

        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=httpx.Timeout(timeout))

        # Only outages trip the breaker, rejected credentials do not
        if circuit_breaker is None:
            circuit_breaker = CircuitBreaker(
                failure_threshold=5,
                recovery_timeout=30.0,
                expected_exception=ProviderUnavailableError,
                name=f"provider-{self.provider}"
            )
        self.circuit_breaker = circuit_breaker

    async def resolve(self, provider_token: str, provider_name: str) -> UserProfile:
        try:
            payload = await self.circuit_breaker.call(self._fetch_userinfo, provider_token)
        except CircuitBreakerOpenError as e:
            raise ProviderUnavailableError(
                f"Provider {self.provider} is temporarily unavailable",
                details={"provider": self.provider, "retry_after": round(e.retry_after, 1)}
            ) from e

        return self._to_profile(payload)

    async def _fetch_userinfo(self, provider_token: str) -> Dict[str, Any]:
        try:
            response = await self._client.get(
                self.userinfo_url,
                headers={"Authorization": f"Bearer {provider_token}"}
            )
        except httpx.TimeoutException as e:
            self.logger.warning("Userinfo request timed out", error=str(e))
            raise ProviderUnavailableError(
                "Provider did not answer in time",
                details={"provider": self.provider}
            ) from e
        except httpx.TransportError as e:
            self.logger.warning("Userinfo request failed", error=str(e))
            raise ProviderUnavailableError(
                "Provider unreachable",
                details={"provider": self.provider}
            ) from e

        if response.status_code >= 500:
            self.logger.warning("Provider error", status_code=response.status_code)
            raise ProviderUnavailableError(
                "Provider returned a server error",
                details={"provider": self.provider, "status_code": response.status_code}
            )
        if response.status_code >= 400:
            raise InvalidCredentialError(
                "Provider rejected the credential",
                details={"provider": self.provider, "status_code": response.status_code}
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderUnavailableError(
                "Provider returned an unreadable response",
                details={"provider": self.provider}
            ) from e

        if not isinstance(payload, dict):
            raise ProviderUnavailableError(
                "Provider returned an unexpected response",
                details={"provider": self.provider}
            )
        return payload

    def _to_profile(self, payload: Dict[str, Any]) -> UserProfile:
        user_id = payload.get("sub") or payload.get("id")
        email = payload.get("email")
        if not user_id and not email:
            raise UnknownSubjectError(
                "Provider response carries neither subject nor email",
                details={"provider": self.provider}
            )

        return UserProfile(
            user_id=str(user_id) if user_id else None,
            email=email,
            name=payload.get("name"),
            given_name=payload.get("given_name"),
            family_name=payload.get("family_name"),
            picture_url=payload.get("picture"),
            email_verified=_as_bool(payload.get("email_verified", False)),
            provider=self.provider,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
