"""
Unit tests for token data models.
"""

import pytest

from shared.errors import TokenMalformedError
from service_tokens.app.models import (
    AuthPackage, RejectReason, RevocationRecord, TokenClaims, TokenContainer,
    UserProfile, VerifyResult
)


def make_claims(**overrides):
    values = dict(
        subject="user-123",
        token_id="jti-1",
        token_type="access",
        issued_at=1000.0,
        expires_at=2000.0,
        not_before=700.0,
        domain="global",
        issuer="token-lifecycle-service",
        audience="token-lifecycle-clients",
        scopes=frozenset({"read", "write"}),
        roles=frozenset({"user"}),
        extra={"email": "jane@example.com"},
    )
    values.update(overrides)
    return TokenClaims(**values)


class TestTokenClaims:
    """Test cases for TokenClaims."""

    def test_expiry_must_follow_issue_time(self):
        """Test that exp <= iat is rejected."""
        with pytest.raises(ValueError):
            make_claims(expires_at=1000.0)

    def test_unknown_token_type_rejected(self):
        """Test that only access and refresh types exist."""
        with pytest.raises(ValueError):
            make_claims(token_type="id")

    def test_claims_are_immutable(self):
        """Test that claims cannot be modified after creation."""
        claims = make_claims()
        with pytest.raises(AttributeError):
            claims.subject = "someone-else"

    def test_payload_carries_registered_claims(self):
        """Test JWT payload rendering."""
        payload = make_claims().to_payload()

        assert payload["sub"] == "user-123"
        assert payload["jti"] == "jti-1"
        assert payload["typ"] == "access"
        assert payload["iat"] == 1000.0
        assert payload["nbf"] == 700.0
        assert payload["exp"] == 2000.0
        assert payload["scope"] == "read write"
        assert payload["roles"] == ["user"]
        assert payload["email"] == "jane@example.com"

    def test_extra_claims_cannot_override_registered_ones(self):
        """Test that extra claims never shadow registered claims."""
        payload = make_claims(extra={"sub": "intruder", "locale": "en"}).to_payload()

        assert payload["sub"] == "user-123"
        assert payload["locale"] == "en"

    def test_from_payload_restores_claims(self):
        """Test parsing a payload back into claims."""
        original = make_claims()
        parsed = TokenClaims.from_payload(original.to_payload())

        assert parsed == original
        assert parsed.extra == {"email": "jane@example.com"}

    def test_from_payload_accepts_scope_list(self):
        """Test that list-shaped scope claims are accepted."""
        payload = make_claims().to_payload()
        payload["scope"] = ["read"]

        assert TokenClaims.from_payload(payload).scopes == frozenset({"read"})

    def test_from_payload_defaults_not_before_to_issue_time(self):
        """Test missing nbf falls back to iat."""
        payload = make_claims().to_payload()
        del payload["nbf"]

        assert TokenClaims.from_payload(payload).not_before == 1000.0

    @pytest.mark.parametrize("missing", ["sub", "jti", "typ", "iat", "exp"])
    def test_from_payload_requires_claims(self, missing):
        """Test that required claims must be present."""
        payload = make_claims().to_payload()
        del payload[missing]

        with pytest.raises(TokenMalformedError):
            TokenClaims.from_payload(payload)

    def test_from_payload_rejects_non_numeric_dates(self):
        """Test that dates must be numbers."""
        payload = make_claims().to_payload()
        payload["exp"] = "tomorrow"

        with pytest.raises(TokenMalformedError):
            TokenClaims.from_payload(payload)

    def test_from_payload_rejects_inverted_lifetime(self):
        """Test that exp before iat is malformed."""
        payload = make_claims().to_payload()
        payload["exp"] = 10.0

        with pytest.raises(TokenMalformedError):
            TokenClaims.from_payload(payload)


class TestContainerModels:
    """Test cases for containers, profiles and results."""

    def test_container_serializes_to_json(self):
        """Test stable JSON serialization of the token container."""
        container = TokenContainer(
            access_token="a",
            refresh_token="r",
            access_token_expires_at=10.0,
            refresh_token_expires_at=20.0,
        )

        restored = TokenContainer.model_validate_json(container.model_dump_json())
        assert restored == container
        assert restored.token_type == "Bearer"

    def test_profile_claims_skip_missing_values(self):
        """Test that only known profile attributes are embedded."""
        profile = UserProfile(user_id="u1", email="a@b.c", provider="google")

        assert profile.to_claims() == {
            "email": "a@b.c",
            "email_verified": False,
            "provider": "google",
        }

    def test_auth_package_holds_profile(self):
        """Test the richer issuance result."""
        container = TokenContainer(
            access_token="a", refresh_token="r",
            access_token_expires_at=1.0, refresh_token_expires_at=2.0,
        )
        package = AuthPackage(token_container=container, user_profile=UserProfile(user_id="u1"))

        assert package.user_profile.user_id == "u1"

    def test_only_store_unavailable_is_retryable(self):
        """Test retryable flag on reject reasons."""
        retryable = [reason for reason in RejectReason if reason.retryable]
        assert retryable == [RejectReason.STORE_UNAVAILABLE]

    def test_accept_result_exposes_subject(self):
        """Test accepted verification result."""
        result = VerifyResult.accept(make_claims())

        assert result.accepted is True
        assert result.subject == "user-123"
        assert result.reason is None
        assert result.claims["domain"] == "global"

    def test_reject_result(self):
        """Test rejected verification result."""
        result = VerifyResult.reject(RejectReason.STORE_UNAVAILABLE, "down")

        assert result.accepted is False
        assert result.subject is None
        assert result.retryable is True


class TestRevocationRecord:
    """Test cases for revocation record matching."""

    def test_not_revoked_never_applies(self):
        assert RevocationRecord(revoked=False).applies_to(1.0, 2.0) is False

    def test_applies_to_tokens_issued_at_or_before_revocation(self):
        record = RevocationRecord(revoked=True, revoked_at=100.0)

        assert record.applies_to(issued_at=99.0, now=150.0) is True
        assert record.applies_to(issued_at=100.0, now=150.0) is True
        assert record.applies_to(issued_at=100.5, now=150.0) is False

    def test_future_revocation_does_not_apply_yet(self):
        record = RevocationRecord(revoked=True, revoked_at=200.0)

        assert record.applies_to(issued_at=99.0, now=150.0) is False
