"""
Wiring for the token lifecycle services.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from shared.circuit_breaker import CircuitBreaker
from shared.config import TokenServiceConfig
from shared.errors import ProviderUnavailableError
from shared.logging import configure_logging, get_logger
from shared.metrics import MetricsCollector, get_metrics_collector
from .authorization import Authorizer
from .issuer import DomainMembership, Issuer, PermissionHook
from .providers import IdentityResolver, ProviderRegistry, UserInfoResolver
from .revocation import InMemoryRevocationStore, RedisRevocationStore, RevocationStore
from .signing import JwtSigner, Signer
from .verifier import Verifier

logger = get_logger("tokens.main")


@dataclass
class TokenServices:
    """Issuer and verifier sharing one signer, resolver and revocation store.

    The services only borrow these collaborators; ``close`` drains both
    services and then releases each shared collaborator once.
    """
    issuer: Issuer
    verifier: Verifier
    signer: Signer
    store: RevocationStore
    resolver: IdentityResolver
    _closed: bool = field(default=False, init=False, repr=False)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        await asyncio.gather(self.issuer.close(), self.verifier.close())
        await self.resolver.close()
        await self.store.close()
        await self.signer.close()
        logger.info("Token services closed")


def build_provider_registry(config: TokenServiceConfig) -> ProviderRegistry:
    """Register a userinfo resolver per configured provider endpoint."""
    registry = ProviderRegistry()
    for provider, url in config.userinfo_endpoints.items():
        breaker = CircuitBreaker(
            failure_threshold=config.provider_failure_threshold,
            recovery_timeout=config.provider_recovery_timeout,
            expected_exception=ProviderUnavailableError,
            name=f"provider-{provider.lower()}"
        )
        registry.register(provider, UserInfoResolver(
            provider,
            url,
            timeout=config.provider_timeout_seconds,
            circuit_breaker=breaker
        ))
    return registry


def build_revocation_store(config: TokenServiceConfig) -> RevocationStore:
    if config.redis_url:
        return RedisRevocationStore.from_url(
            config.redis_url,
            record_ttl_seconds=config.max_token_lifetime_seconds,
            socket_timeout=config.store_timeout_seconds
        )
    return InMemoryRevocationStore()


def build_services(config: TokenServiceConfig, *,
                   resolver: Optional[IdentityResolver] = None,
                   store: Optional[RevocationStore] = None,
                   signer: Optional[Signer] = None,
                   authorizer: Optional[Authorizer] = None,
                   domain_membership: Optional[DomainMembership] = None,
                   permission_hook: Optional[PermissionHook] = None,
                   clock: Callable[[], float] = time.time,
                   metrics: Optional[MetricsCollector] = None) -> TokenServices:
    """Assemble an issuer and a verifier from configuration.

    Collaborators passed in explicitly take precedence over the ones built
    from ``config``. Either way the returned :class:`TokenServices` owns them
    and releases them in its ``close``.
    """
    configure_logging("token-lifecycle", config.log_level)

    if signer is None:
        signer = JwtSigner.from_config(config)
    if store is None:
        store = build_revocation_store(config)
    if resolver is None:
        resolver = build_provider_registry(config)
    if metrics is None:
        metrics = get_metrics_collector("token-lifecycle")

    issuer = Issuer(
        config,
        signer,
        resolver,
        store,
        domain_membership=domain_membership,
        permission_hook=permission_hook,
        clock=clock,
        metrics=metrics
    )
    verifier = Verifier(
        config,
        signer,
        store,
        authorizer=authorizer,
        clock=clock,
        metrics=metrics
    )

    logger.info(
        "Token services built",
        store=type(store).__name__,
        algorithm=config.signing_algorithm,
        domain_switching=domain_membership is not None
    )
    return TokenServices(
        issuer=issuer,
        verifier=verifier,
        signer=signer,
        store=store,
        resolver=resolver
    )
