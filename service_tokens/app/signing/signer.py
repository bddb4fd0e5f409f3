"""
Token signing and signature validation.
"""

from typing import Any, Dict, Protocol

import jwt

from shared.config import SUPPORTED_ALGORITHMS, TokenServiceConfig
from shared.errors import (
    ConfigurationError, InvalidSignatureError, ServiceClosedError, TokenMalformedError
)
from shared.logging import get_logger
from ..models import TokenClaims
from ..models.tokens import REQUIRED_CLAIMS


class Signer(Protocol):
    """Signs claims and validates signed tokens."""

    async def sign(self, claims: TokenClaims) -> str:
        ...

    async def validate(self, token: str) -> Dict[str, Any]:
        """Return the payload of a token with a valid structure and signature.

        Raises :class:`TokenMalformedError` or :class:`InvalidSignatureError`.
        Expiry is not checked here.
        """
        ...

    def is_ready(self) -> bool:
        ...

    async def close(self) -> None:
        ...


class JwtSigner:
    """HMAC JWT signer backed by PyJWT."""

    def __init__(self, secret: str, algorithm: str = "HS512",
                 issuer: str = "token-lifecycle-service",
                 audience: str = "token-lifecycle-clients"):
        if not secret:
            raise ConfigurationError("Signing secret must not be empty")
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ConfigurationError(
                f"Unsupported signing algorithm: {algorithm}",
                details={"supported": list(SUPPORTED_ALGORITHMS)}
            )

        self._key = secret.encode("utf-8")
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.logger = get_logger("tokens.signer")
        self._closed = False

    @classmethod
    def from_config(cls, config: TokenServiceConfig) -> "JwtSigner":
        return cls(
            secret=config.signing_secret,
            algorithm=config.signing_algorithm,
            issuer=config.issuer,
            audience=config.audience,
        )

    async def sign(self, claims: TokenClaims) -> str:
        if self._closed:
            raise ServiceClosedError("Signer is closed")
        return jwt.encode(claims.to_payload(), self._key, algorithm=self.algorithm)

    async def validate(self, token: str) -> Dict[str, Any]:
        if self._closed:
            raise ServiceClosedError("Signer is closed")
        if not isinstance(token, str) or not token:
            raise TokenMalformedError("Token must be a non-empty string")

        try:
            return jwt.decode(
                token,
                self._key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                # Expiry and not-before are judged by the verifier's clock
                options={
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                    "require": list(REQUIRED_CLAIMS),
                }
            )
        except jwt.InvalidSignatureError as e:
            self.logger.debug("Token signature rejected", error=str(e))
            raise InvalidSignatureError("Token signature verification failed")
        except (jwt.InvalidIssuerError, jwt.InvalidAudienceError) as e:
            self.logger.debug("Token issuer or audience rejected", error=str(e))
            raise InvalidSignatureError(
                "Token was not issued for this service",
                details={"error": str(e)}
            )
        except jwt.InvalidTokenError as e:
            raise TokenMalformedError(
                "Token is malformed",
                details={"error": str(e)}
            )

    def is_ready(self) -> bool:
        return not self._closed

    async def close(self) -> None:
        self._closed = True
