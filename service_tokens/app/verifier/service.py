"""
Token verifier: validates tokens against authorization requirements and
manages revocations.
"""

import time
from typing import Any, Callable, Mapping, Optional, Union

from shared.base_service import BaseService
from shared.config import TokenServiceConfig
from shared.errors import (
    AuthorizationModelError, InvalidSignatureError, StoreUnavailableError, TokenMalformedError
)
from shared.logging import user_context
from shared.metrics import MetricsCollector
from ..authorization import Authorization, Authorizer, ClaimsAuthorizer
from ..models import ACCESS_TOKEN, RejectReason, TokenClaims, VerifyResult
from ..revocation import RevocationChecker, RevocationStore
from ..signing import Signer


class Verifier(BaseService):
    """Verifies access tokens and records revocations.

    ``verify`` runs its checks in a fixed order and stops at the first
    failure: structure, signature, expiry, revocation, authorization. Token
    problems are reported through :class:`VerifyResult`, never raised.
    """

    def __init__(self, config: TokenServiceConfig, signer: Signer, store: RevocationStore,
                 authorizer: Optional[Authorizer] = None,
                 clock: Callable[[], float] = time.time,
                 metrics: Optional[MetricsCollector] = None):
        super().__init__("verifier", config, metrics)
        self.signer = signer
        self.store = store
        self.revocations = RevocationChecker(store, config.store_timeout_seconds, self.metrics)
        self.authorizer = authorizer if authorizer is not None else ClaimsAuthorizer()
        self._clock = clock

    async def verify(self, token: str, required_authorization: Authorization) -> VerifyResult:
        """Check a token and the authorization it must carry."""
        async with self._operation("verify"):
            result = await self._verify(token, required_authorization)

        outcome = "accepted" if result.accepted else result.reason.value
        self.metrics.record_verification(outcome)
        if not result.accepted:
            self.logger.info("Token rejected", reason=outcome, detail=result.message)
        return result

    async def _verify(self, token: str, required_authorization: Authorization) -> VerifyResult:
        try:
            payload = await self.signer.validate(token)
            claims = TokenClaims.from_payload(payload)
        except InvalidSignatureError as e:
            return VerifyResult.reject(RejectReason.INVALID_SIGNATURE, e.message)
        except TokenMalformedError as e:
            return VerifyResult.reject(RejectReason.MALFORMED, e.message)

        if claims.token_type != ACCESS_TOKEN:
            return VerifyResult.reject(RejectReason.MALFORMED, "Only access tokens grant access")

        with user_context(claims.subject):
            return await self._check_claims(claims, required_authorization)

    async def _check_claims(self, claims: TokenClaims,
                            required_authorization: Authorization) -> VerifyResult:
        now = self._clock()
        if now >= claims.expires_at:
            return VerifyResult.reject(RejectReason.EXPIRED, "Token has expired")
        if now < claims.not_before:
            return VerifyResult.reject(RejectReason.NOT_YET_VALID, "Token is not valid yet")

        try:
            if await self.revocations.is_revoked(claims, now):
                return VerifyResult.reject(RejectReason.REVOKED, "Token has been revoked")
        except StoreUnavailableError as e:
            self.metrics.record_error("store_unavailable", self.service_name)
            return VerifyResult.reject(RejectReason.STORE_UNAVAILABLE, e.message)

        try:
            authorized = self.authorizer.authorize(claims.to_payload(), required_authorization)
        except AuthorizationModelError as e:
            return VerifyResult.reject(RejectReason.INSUFFICIENT_AUTHORIZATION, e.message)
        if not authorized:
            return VerifyResult.reject(
                RejectReason.INSUFFICIENT_AUTHORIZATION,
                f"Token does not satisfy {required_authorization!r}"
            )

        return VerifyResult.accept(claims)

    async def is_valid(self) -> bool:
        """Whether the verifier is open, the signer ready and the store answering."""
        if self.closing or not self.signer.is_ready():
            return False
        try:
            return await self.revocations.ping()
        except StoreUnavailableError:
            return False

    async def revoke_token(self, token_id: str) -> bool:
        """Revoke a single token by id. Repeated calls succeed."""
        if not token_id:
            raise TokenMalformedError("Token id must not be empty")

        async with self._operation("revoke_token"):
            created = await self.revocations.revoke_token(token_id, self._clock())

        self.metrics.record_revocation("token")
        self.logger.info("Token revoked", jti=token_id, new_record=created)
        return True

    async def revoke_user(self, user_id: str) -> bool:
        """Revoke every token issued to ``user_id`` up to now."""
        if not user_id:
            raise TokenMalformedError("User id must not be empty")

        async with self._operation("revoke_user"):
            created = await self.revocations.revoke_user(user_id, self._clock())

        self.metrics.record_revocation("user")
        self.logger.info("User revoked", sub=user_id, new_record=created)
        return True

    async def verify_authorization(self, claims: Union[TokenClaims, Mapping[str, Any]],
                                   required_authorization: Authorization) -> bool:
        """Evaluate a requirement against already verified claims.

        Raises :class:`AuthorizationModelError` when the claims cannot be
        compared with the requirement.
        """
        if isinstance(claims, TokenClaims):
            claims = claims.to_payload()
        if not isinstance(claims, Mapping):
            raise AuthorizationModelError(
                "Claims must be a mapping",
                details={"type": type(claims).__name__}
            )
        return self.authorizer.authorize(claims, required_authorization)

    async def purge_expired_revocations(self) -> int:
        """Drop revocation records no live token can be affected by."""
        async with self._operation("purge_expired_revocations"):
            cutoff = self._clock() - self.config.max_token_lifetime_seconds
            removed = await self.revocations.purge(cutoff)

        self.logger.info("Revocation records purged", removed=removed)
        return removed
