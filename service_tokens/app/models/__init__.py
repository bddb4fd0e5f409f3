from .tokens import (
    ACCESS_TOKEN,
    NOT_REVOKED,
    REFRESH_TOKEN,
    AuthPackage,
    RejectReason,
    RevocationRecord,
    TokenClaims,
    TokenContainer,
    UserProfile,
    VerifyResult,
)

__all__ = [
    "ACCESS_TOKEN",
    "NOT_REVOKED",
    "REFRESH_TOKEN",
    "AuthPackage",
    "RejectReason",
    "RevocationRecord",
    "TokenClaims",
    "TokenContainer",
    "UserProfile",
    "VerifyResult",
]
