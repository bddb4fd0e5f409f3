"""
Token issuer: mints, refreshes and re-scopes token containers.
"""

import asyncio
import hashlib
import hmac
import time
import uuid
from enum import Enum
from typing import Any, Callable, FrozenSet, Mapping, Optional, Protocol, Tuple, Union

from shared.base_service import BaseService
from shared.config import TokenServiceConfig
from shared.errors import (
    DomainAccessDeniedError, InvalidCredentialError, NotSupportedError,
    ProviderUnavailableError, StoreUnavailableError, TokenExpiredError,
    TokenMalformedError, TokenRevokedError, TokenServiceError, UnknownSubjectError
)
from shared.logging import user_context
from shared.metrics import MetricsCollector
from ..models import (
    ACCESS_TOKEN, REFRESH_TOKEN, AuthPackage, TokenClaims, TokenContainer, UserProfile
)
from ..providers import IdentityResolver
from ..revocation import RevocationChecker, RevocationStore
from ..signing import Signer
from .permissions import (
    AUTH_ORIGIN_DOMAIN_SWITCH, AUTH_ORIGIN_PROVIDER, DefaultPermissions,
    PermissionHook, PermissionPack
)


class Capability(str, Enum):
    """Optional issuer operations."""
    DOMAIN_SWITCHING = "domain_switching"


class DomainMembership(Protocol):
    """Answers whether a subject belongs to a domain."""

    async def is_member(self, subject: str, domain_id: str) -> bool:
        ...


class Issuer(BaseService):
    """Issues token containers from provider credentials and refresh tokens."""

    def __init__(self, config: TokenServiceConfig, signer: Signer,
                 resolver: IdentityResolver, store: RevocationStore,
                 domain_membership: Optional[DomainMembership] = None,
                 permission_hook: Optional[PermissionHook] = None,
                 clock: Callable[[], float] = time.time,
                 metrics: Optional[MetricsCollector] = None):
        super().__init__("issuer", config, metrics)
        self.signer = signer
        self.resolver = resolver
        self.revocations = RevocationChecker(store, config.store_timeout_seconds, self.metrics)
        self.domain_membership = domain_membership
        if permission_hook is None:
            permission_hook = DefaultPermissions(config.default_scopes, config.default_roles)
        self.permission_hook = permission_hook
        self._clock = clock

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        if self.domain_membership is None:
            return frozenset()
        return frozenset({Capability.DOMAIN_SWITCHING})

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    async def create_from_provider_credential(self, provider_token: str,
                                              provider_name: str) -> TokenContainer:
        """Resolve a provider credential and issue a fresh token container."""
        package = await self.create_auth_package(provider_token, provider_name)
        return package.token_container

    async def create_auth_package(self, provider_token: str, provider_name: str) -> AuthPackage:
        """Like :meth:`create_from_provider_credential`, also returning the profile."""
        async with self._operation("create_from_provider_credential"):
            if not provider_token or not provider_name:
                raise InvalidCredentialError("Provider token and provider name are required")

            profile = await self._resolve(provider_token, provider_name)
            subject = self._derive_subject(profile)
            with user_context(subject):
                return await self._issue(subject, profile, provider_name.lower())

    async def _issue(self, subject: str, profile: UserProfile, provider: str) -> AuthPackage:
        pack = await self.permission_hook(PermissionPack(
            user_id=subject,
            auth_origin=f"{AUTH_ORIGIN_PROVIDER}:{provider}",
            domain=self.config.default_domain,
            claims=profile.to_claims(),
        ))
        container = await self._mint(pack)

        self.metrics.record_issued("provider")
        self.logger.info("Token container issued", provider=provider, domain=pack.domain)
        return AuthPackage(token_container=container, user_profile=profile)

    async def refresh(self, refresh_token: str) -> TokenContainer:
        """Exchange a valid refresh token for a new container.

        With rotation enabled a new refresh token is minted and the presented
        one revoked; otherwise it is returned unchanged together with its
        original expiry.
        """
        async with self._operation("refresh"):
            claims = await self._validate_refresh(refresh_token)
            with user_context(claims.subject):
                return await self._exchange(refresh_token, claims)

    async def _exchange(self, refresh_token: str, claims: TokenClaims) -> TokenContainer:
        now = self._clock()
        pack = PermissionPack(
            user_id=claims.subject,
            auth_origin=REFRESH_TOKEN,
            domain=claims.domain,
            scopes=set(claims.scopes),
            roles=set(claims.roles),
            claims=dict(claims.extra),
        )

        if self.config.rotate_refresh_tokens:
            # The presented token stays valid until the new container is signed
            container = await self._mint(pack, now=now)
            if not await self.revocations.revoke_token(claims.token_id, now):
                raise TokenRevokedError(
                    "Refresh token has already been used",
                    details={"jti": claims.token_id}
                )
        else:
            container = await self._mint(pack, now=now, refresh=(refresh_token, claims))

        self.metrics.record_issued("refresh")
        self.logger.info(
            "Token container refreshed",
            jti=claims.token_id,
            rotated=self.config.rotate_refresh_tokens
        )
        return container

    async def switch_domain(self, domain_id: str,
                            current_claims: Union[TokenClaims, Mapping[str, Any]]) -> TokenContainer:
        """Issue a container bound to another domain the subject belongs to."""
        if not self.supports(Capability.DOMAIN_SWITCHING):
            raise NotSupportedError(
                "Domain switching is not configured",
                details={"capability": Capability.DOMAIN_SWITCHING.value}
            )

        async with self._operation("switch_domain"):
            if not domain_id:
                raise DomainAccessDeniedError("Domain id must not be empty")

            claims = current_claims
            if not isinstance(claims, TokenClaims):
                claims = TokenClaims.from_payload(current_claims)
            if self._clock() >= claims.expires_at:
                raise TokenExpiredError(details={"jti": claims.token_id})

            if not await self._is_member(claims.subject, domain_id):
                raise DomainAccessDeniedError(details={"domain": domain_id})

            pack = await self.permission_hook(PermissionPack(
                user_id=claims.subject,
                auth_origin=AUTH_ORIGIN_DOMAIN_SWITCH,
                domain=domain_id,
                scopes=set(claims.scopes),
                roles=set(claims.roles),
                claims=dict(claims.extra),
            ))
            container = await self._mint(pack)

            self.metrics.record_issued("domain_switch")
            self.logger.info("Domain switched", sub=claims.subject, domain=domain_id)
            return container

    async def _resolve(self, provider_token: str, provider_name: str) -> UserProfile:
        timeout = self.config.provider_timeout_seconds
        try:
            with self.metrics.time_dependency("identity_provider"):
                return await asyncio.wait_for(
                    self.resolver.resolve(provider_token, provider_name),
                    timeout=timeout
                )
        except asyncio.TimeoutError as e:
            self.metrics.record_error("provider_timeout", self.service_name)
            self.logger.warning("Identity provider timed out", provider=provider_name, timeout=timeout)
            raise ProviderUnavailableError(
                "Identity provider did not answer in time",
                details={"provider": provider_name}
            ) from e
        except TokenServiceError as e:
            self.metrics.record_error(e.code.lower(), self.service_name)
            raise
        except Exception as e:
            self.metrics.record_error("provider_failure", self.service_name)
            self.logger.error("Identity provider failed", provider=provider_name, error=str(e))
            raise ProviderUnavailableError(
                "Identity provider failed",
                details={"provider": provider_name}
            ) from e

    async def _is_member(self, subject: str, domain_id: str) -> bool:
        try:
            with self.metrics.time_dependency("domain_membership"):
                return await asyncio.wait_for(
                    self.domain_membership.is_member(subject, domain_id),
                    timeout=self.config.provider_timeout_seconds
                )
        except asyncio.TimeoutError as e:
            raise ProviderUnavailableError("Domain membership lookup timed out") from e
        except TokenServiceError:
            raise
        except Exception as e:
            self.logger.error("Domain membership lookup failed", error=str(e))
            raise ProviderUnavailableError("Domain membership lookup failed") from e

    def _derive_subject(self, profile: UserProfile) -> str:
        key = self.config.subject_hash_key
        if key and profile.email:
            return hmac.new(
                key.encode("utf-8"),
                profile.email.strip().lower().encode("utf-8"),
                hashlib.sha256
            ).hexdigest()
        if profile.user_id:
            return profile.user_id
        raise UnknownSubjectError(details={"provider": profile.provider})

    async def _validate_refresh(self, refresh_token: str) -> TokenClaims:
        payload = await self.signer.validate(refresh_token)
        claims = TokenClaims.from_payload(payload)
        if claims.token_type != REFRESH_TOKEN:
            raise TokenMalformedError("Not a refresh token", details={"typ": claims.token_type})

        now = self._clock()
        if now >= claims.expires_at:
            raise TokenExpiredError("Refresh token has expired", details={"jti": claims.token_id})

        try:
            revoked = await self.revocations.is_revoked(claims, now)
        except StoreUnavailableError:
            self.metrics.record_error("store_unavailable", self.service_name)
            raise
        if revoked:
            raise TokenRevokedError("Refresh token has been revoked", details={"jti": claims.token_id})
        return claims

    def _claims(self, pack: PermissionPack, token_type: str,
                now: float, expires_at: float) -> TokenClaims:
        return TokenClaims(
            subject=pack.user_id,
            token_id=str(uuid.uuid4()),
            token_type=token_type,
            issued_at=now,
            expires_at=expires_at,
            not_before=now - self.config.not_before_skew_seconds,
            domain=pack.domain,
            issuer=self.config.issuer,
            audience=self.config.audience,
            scopes=frozenset(pack.scopes),
            roles=frozenset(pack.roles),
            extra=dict(pack.claims),
        )

    async def _mint(self, pack: PermissionPack, now: Optional[float] = None,
                    refresh: Optional[Tuple[str, TokenClaims]] = None) -> TokenContainer:
        """Sign a container; ``refresh`` reuses an existing (token, claims) pair."""
        if now is None:
            now = self._clock()

        if refresh is None:
            refresh_claims = self._claims(
                pack, REFRESH_TOKEN, now, now + self.config.refresh_token_ttl_seconds
            )
            refresh_token = await self.signer.sign(refresh_claims)
        else:
            refresh_token, refresh_claims = refresh

        # Access never outlives the refresh token it came with
        access_expires_at = min(now + self.config.access_token_ttl_seconds, refresh_claims.expires_at)
        access_claims = self._claims(pack, ACCESS_TOKEN, now, access_expires_at)
        access_token = await self.signer.sign(access_claims)

        return TokenContainer(
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expires_at=access_claims.expires_at,
            refresh_token_expires_at=refresh_claims.expires_at,
        )
