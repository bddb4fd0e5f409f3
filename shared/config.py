"""
Shared configuration management for the token lifecycle service.
"""

from typing import Dict, List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_ALGORITHMS = ("HS256", "HS384", "HS512")


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="TOKENS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: Optional[str] = Field(default=None)


class TokenServiceConfig(BaseConfig):
    """Issuer and verifier configuration."""

    # Signing
    signing_secret: str = Field(default="", repr=False)
    signing_algorithm: str = Field(default="HS512")
    issuer: str = Field(default="token-lifecycle-service")
    audience: str = Field(default="token-lifecycle-clients")
    default_domain: str = Field(default="global")

    # Lifetimes
    access_token_ttl_seconds: int = Field(default=5 * 24 * 3600, gt=0)
    refresh_token_ttl_seconds: int = Field(default=35 * 24 * 3600, gt=0)
    not_before_skew_seconds: int = Field(default=300, ge=0)
    rotate_refresh_tokens: bool = Field(default=True)

    # Dependency timeouts
    provider_timeout_seconds: float = Field(default=5.0, gt=0)
    store_timeout_seconds: float = Field(default=2.0, gt=0)
    drain_timeout_seconds: float = Field(default=10.0, gt=0)

    # Identity
    subject_hash_key: Optional[str] = Field(default=None, repr=False)
    userinfo_endpoints: Dict[str, str] = Field(default_factory=dict)
    default_scopes: List[str] = Field(default_factory=list)
    default_roles: List[str] = Field(default_factory=list)

    # Provider circuit breaker
    provider_failure_threshold: int = Field(default=5, gt=0)
    provider_recovery_timeout: float = Field(default=30.0, gt=0)

    @model_validator(mode="after")
    def _check_consistency(self) -> "TokenServiceConfig":
        if not self.signing_secret:
            raise ValueError("signing_secret must not be empty")
        if self.signing_algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"signing_algorithm must be one of {SUPPORTED_ALGORITHMS}")
        if self.refresh_token_ttl_seconds <= self.access_token_ttl_seconds:
            raise ValueError("refresh_token_ttl_seconds must exceed access_token_ttl_seconds")
        return self

    @property
    def max_token_lifetime_seconds(self) -> int:
        """Longest lifetime any issued token can have."""
        return max(self.access_token_ttl_seconds, self.refresh_token_ttl_seconds)


def get_config(**overrides) -> TokenServiceConfig:
    """Load configuration from the environment, applying explicit overrides."""
    return TokenServiceConfig(**overrides)
