"""
Token data models for the token lifecycle service.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from pydantic import BaseModel, Field

from shared.errors import TokenMalformedError

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"
TOKEN_TYPES = (ACCESS_TOKEN, REFRESH_TOKEN)

REGISTERED_CLAIMS = frozenset({
    "sub", "jti", "typ", "iat", "nbf", "exp", "iss", "aud", "domain", "scope", "roles",
})
REQUIRED_CLAIMS = ("sub", "jti", "typ", "iat", "exp")


def _as_timestamp(payload: Mapping[str, Any], name: str) -> float:
    value = payload.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TokenMalformedError(f"Claim '{name}' must be a numeric date", details={"claim": name})
    return float(value)


def _as_string_set(value: Any, name: str) -> FrozenSet[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset(value.split())
    if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
        return frozenset(value)
    raise TokenMalformedError(f"Claim '{name}' must be a string list", details={"claim": name})


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, immutable content of a signed token."""

    subject: str
    token_id: str
    token_type: str
    issued_at: float
    expires_at: float
    not_before: float
    domain: str
    issuer: str
    audience: str
    scopes: FrozenSet[str] = frozenset()
    roles: FrozenSet[str] = frozenset()
    extra: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be later than issued_at")
        if self.token_type not in TOKEN_TYPES:
            raise ValueError(f"Unknown token type: {self.token_type}")

    @property
    def is_refresh(self) -> bool:
        return self.token_type == REFRESH_TOKEN

    def to_payload(self) -> Dict[str, Any]:
        """Render as a JWT payload."""
        payload = {key: value for key, value in self.extra.items() if key not in REGISTERED_CLAIMS}
        payload.update({
            "sub": self.subject,
            "jti": self.token_id,
            "typ": self.token_type,
            "iat": self.issued_at,
            "nbf": self.not_before,
            "exp": self.expires_at,
            "iss": self.issuer,
            "aud": self.audience,
            "domain": self.domain,
            "scope": " ".join(sorted(self.scopes)),
            "roles": sorted(self.roles),
        })
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TokenClaims":
        """Build from a validated JWT payload, rejecting structurally broken ones."""
        missing = [name for name in REQUIRED_CLAIMS if name not in payload]
        if missing:
            raise TokenMalformedError("Token misses required claims", details={"missing": missing})

        subject = payload["sub"]
        token_id = payload["jti"]
        token_type = payload["typ"]
        if not isinstance(subject, str) or not subject:
            raise TokenMalformedError("Claim 'sub' must be a non-empty string")
        if not isinstance(token_id, str) or not token_id:
            raise TokenMalformedError("Claim 'jti' must be a non-empty string")
        if token_type not in TOKEN_TYPES:
            raise TokenMalformedError("Unknown token type", details={"typ": token_type})

        issued_at = _as_timestamp(payload, "iat")
        expires_at = _as_timestamp(payload, "exp")
        not_before = _as_timestamp(payload, "nbf") if "nbf" in payload else issued_at
        if expires_at <= issued_at:
            raise TokenMalformedError("Token expiry precedes its issue time")

        audience = payload.get("aud", "")
        if isinstance(audience, list):
            audience = audience[0] if audience else ""

        return cls(
            subject=subject,
            token_id=token_id,
            token_type=token_type,
            issued_at=issued_at,
            expires_at=expires_at,
            not_before=not_before,
            domain=str(payload.get("domain", "")),
            issuer=str(payload.get("iss", "")),
            audience=str(audience),
            scopes=_as_string_set(payload.get("scope"), "scope"),
            roles=_as_string_set(payload.get("roles"), "roles"),
            extra={key: value for key, value in payload.items() if key not in REGISTERED_CLAIMS},
        )


class TokenContainer(BaseModel):
    """Access and refresh token pair handed to the caller."""

    access_token: str
    refresh_token: str
    access_token_expires_at: float
    refresh_token_expires_at: float
    token_type: str = "Bearer"


class UserProfile(BaseModel):
    """Identity resolved from an identity provider credential."""

    user_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    picture_url: Optional[str] = None
    email_verified: bool = False
    provider: Optional[str] = None

    def to_claims(self) -> Dict[str, Any]:
        """Profile attributes embedded in issued tokens."""
        claims = {
            "email": self.email,
            "name": self.name,
            "given_name": self.given_name,
            "family_name": self.family_name,
            "email_verified": self.email_verified,
            "provider": self.provider,
        }
        return {key: value for key, value in claims.items() if value is not None}


class AuthPackage(BaseModel):
    """Token container together with the profile it was issued for."""

    token_container: TokenContainer
    user_profile: UserProfile


class RejectReason(str, Enum):
    """Why a verification was rejected."""
    MALFORMED = "malformed"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    REVOKED = "revoked"
    INSUFFICIENT_AUTHORIZATION = "insufficient_authorization"
    STORE_UNAVAILABLE = "store_unavailable"

    @property
    def retryable(self) -> bool:
        return self is RejectReason.STORE_UNAVAILABLE


class VerifyResult(BaseModel):
    """Outcome of a single verification attempt."""

    accepted: bool
    subject: Optional[str] = None
    claims: Dict[str, Any] = Field(default_factory=dict)
    reason: Optional[RejectReason] = None
    message: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return self.reason is not None and self.reason.retryable

    @classmethod
    def accept(cls, claims: TokenClaims) -> "VerifyResult":
        return cls(accepted=True, subject=claims.subject, claims=claims.to_payload())

    @classmethod
    def reject(cls, reason: RejectReason, message: Optional[str] = None) -> "VerifyResult":
        return cls(accepted=False, reason=reason, message=message)


@dataclass(frozen=True)
class RevocationRecord:
    """Result of a revocation store lookup."""

    revoked: bool
    revoked_at: Optional[float] = None

    def applies_to(self, issued_at: float, now: float) -> bool:
        """True when the record invalidates a token issued at ``issued_at``."""
        if not self.revoked or self.revoked_at is None:
            return False
        return issued_at <= self.revoked_at <= now


NOT_REVOKED = RevocationRecord(revoked=False)


def merge_string_sets(*values: Optional[Iterable[str]]) -> FrozenSet[str]:
    """Union of optional string iterables."""
    merged = set()
    for value in values:
        if value:
            merged.update(value)
    return frozenset(merged)
