"""
Shared error handling for the token lifecycle service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = Field(default_factory=dict)


class TokenServiceError(Exception):
    """Base exception for token lifecycle services."""

    code = "TOKEN_SERVICE_ERROR"
    default_message = "Token service error"
    retryable = False

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            retryable=self.retryable,
            details=self.details
        )


# Issuer errors

class InvalidCredentialError(TokenServiceError):
    """Provider credential rejected or unusable."""

    code = "INVALID_CREDENTIAL"
    default_message = "Provider credential is invalid or expired"


class UnsupportedProviderError(InvalidCredentialError):
    """Provider name does not identify a registered provider."""

    code = "UNSUPPORTED_PROVIDER"

    def __init__(self, provider: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Unknown provider: {provider}", {"provider": provider, **(details or {})})


class ProviderUnavailableError(TokenServiceError):
    """Identity provider unreachable, failing or timed out."""

    code = "PROVIDER_UNAVAILABLE"
    default_message = "Identity provider unavailable"
    retryable = True


class UnknownSubjectError(TokenServiceError):
    """Provider identity cannot be resolved to a subject."""

    code = "UNKNOWN_SUBJECT"
    default_message = "Provider identity does not map to a known subject"


class DomainAccessDeniedError(TokenServiceError):
    """Subject is not a member of the requested domain."""

    code = "DOMAIN_ACCESS_DENIED"
    default_message = "Subject is not a member of the requested domain"


# Token errors

class TokenMalformedError(TokenServiceError):
    """Token cannot be decoded or misses required claims."""

    code = "TOKEN_MALFORMED"
    default_message = "Token is malformed"


class InvalidSignatureError(TokenMalformedError):
    """Token signature, issuer or audience does not validate."""

    code = "INVALID_SIGNATURE"
    default_message = "Token signature is invalid"


class TokenExpiredError(TokenServiceError):
    """Token expiry has been reached."""

    code = "TOKEN_EXPIRED"
    default_message = "Token has expired"


class TokenRevokedError(TokenServiceError):
    """Token or its subject has been revoked."""

    code = "TOKEN_REVOKED"
    default_message = "Token has been revoked"


class InsufficientAuthorizationError(TokenServiceError):
    """Claims do not satisfy the required authorization."""

    code = "INSUFFICIENT_AUTHORIZATION"
    default_message = "Not authorized for this resource"


class AuthorizationModelError(TokenServiceError):
    """Claims are structurally incompatible with the authorization model."""

    code = "AUTHORIZATION_MODEL_ERROR"
    default_message = "Claims do not fit the authorization model"


class StoreUnavailableError(TokenServiceError):
    """Revocation store unreachable, failing or timed out."""

    code = "STORE_UNAVAILABLE"
    default_message = "Revocation store unavailable"
    retryable = True


# Service errors

class NotSupportedError(TokenServiceError):
    """Optional capability is not configured in this deployment."""

    code = "NOT_SUPPORTED"
    default_message = "Operation not supported"


class ServiceClosedError(TokenServiceError):
    """Service has been closed and accepts no more calls."""

    code = "SERVICE_CLOSED"
    default_message = "Service is closed"


class ConfigurationError(TokenServiceError):
    """Invalid service configuration."""

    code = "CONFIGURATION_ERROR"
    default_message = "Invalid configuration"
