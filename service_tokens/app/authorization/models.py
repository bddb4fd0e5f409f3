"""
Authorization requirement and rule models for the token lifecycle service.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, List, Mapping, Optional, Union

from shared.errors import AuthorizationModelError

WILDCARD = "*"


def claim_set(claims: Mapping[str, Any], name: str) -> FrozenSet[str]:
    """Read a space-delimited or list claim, rejecting incompatible shapes."""
    if name not in claims:
        raise AuthorizationModelError(
            f"Claims carry no '{name}' field",
            details={"claim": name}
        )

    value = claims[name]
    if isinstance(value, str):
        return frozenset(value.split())
    if isinstance(value, (list, tuple, set, frozenset)) and all(isinstance(item, str) for item in value):
        return frozenset(value)

    raise AuthorizationModelError(
        f"Claim '{name}' is not a string list",
        details={"claim": name, "type": type(value).__name__}
    )


def claim_str(claims: Mapping[str, Any], name: str) -> str:
    if name not in claims:
        raise AuthorizationModelError(
            f"Claims carry no '{name}' field",
            details={"claim": name}
        )
    value = claims[name]
    if not isinstance(value, str):
        raise AuthorizationModelError(
            f"Claim '{name}' is not a string",
            details={"claim": name, "type": type(value).__name__}
        )
    return value


class Authorization:
    """Requirement a token's claims must satisfy.

    Descriptors are opaque to the verifier; an authorizer decides whether
    claims satisfy them. ``is_satisfied_by`` raises
    :class:`AuthorizationModelError` when the claims cannot be compared with
    the requirement at all.
    """

    def is_satisfied_by(self, claims: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    @staticmethod
    def validation_only() -> "Authorization":
        return ValidationOnly()


class ValidationOnly(Authorization):
    """Any valid token is enough."""

    def is_satisfied_by(self, claims: Mapping[str, Any]) -> bool:
        return True

    def __repr__(self):
        return "ValidationOnly()"


class RequireScope(Authorization):
    """All listed scopes must be granted."""

    def __init__(self, *scopes: str):
        if not scopes:
            raise ValueError("At least one scope is required")
        self.scopes = frozenset(scopes)

    def is_satisfied_by(self, claims: Mapping[str, Any]) -> bool:
        return self.scopes <= claim_set(claims, "scope")

    def __repr__(self):
        return f"RequireScope({', '.join(sorted(self.scopes))})"


class RequireRole(Authorization):
    """At least one of the listed roles must be held."""

    def __init__(self, *roles: str):
        if not roles:
            raise ValueError("At least one role is required")
        self.roles = frozenset(roles)

    def is_satisfied_by(self, claims: Mapping[str, Any]) -> bool:
        return bool(self.roles & claim_set(claims, "roles"))

    def __repr__(self):
        return f"RequireRole({', '.join(sorted(self.roles))})"


class RequireDomain(Authorization):
    """Token must be bound to the given domain."""

    def __init__(self, domain_id: str):
        self.domain_id = domain_id

    def is_satisfied_by(self, claims: Mapping[str, Any]) -> bool:
        return claim_str(claims, "domain") == self.domain_id

    def __repr__(self):
        return f"RequireDomain({self.domain_id})"


class AllOf(Authorization):
    """Every nested requirement must hold."""

    def __init__(self, *requirements: Authorization):
        self.requirements = requirements

    def is_satisfied_by(self, claims: Mapping[str, Any]) -> bool:
        return all(requirement.is_satisfied_by(claims) for requirement in self.requirements)

    def __repr__(self):
        return f"AllOf({', '.join(repr(r) for r in self.requirements)})"


class ModelPermission(Authorization):
    """Permission to call ``method`` on ``model``, optionally within a domain.

    Without a rule engine the permission is granted by a ``model:method`` or
    ``model:*`` scope, and the token's domain must match ``domain_identifier``
    when one is given.
    """

    def __init__(self, model: str, method: str, domain_identifier: Optional[str] = None):
        self.model = model
        self.method = method
        self.domain_identifier = domain_identifier

    @property
    def scope(self) -> str:
        return f"{self.model}:{self.method}"

    def is_satisfied_by(self, claims: Mapping[str, Any]) -> bool:
        if self.domain_identifier is not None and claim_str(claims, "domain") != self.domain_identifier:
            return False
        granted = claim_set(claims, "scope")
        return self.scope in granted or f"{self.model}:{WILDCARD}" in granted

    def __repr__(self):
        return f"ModelPermission({self.model}, {self.method}, {self.domain_identifier})"


class RuleAction(str, Enum):
    """Rule action types."""
    ALLOW = "allow"
    DENY = "deny"


class RuleConditionOperator(str, Enum):
    """Rule condition operators."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


@dataclass
class RuleCondition:
    """Condition over a claim field."""
    field: str
    operator: RuleConditionOperator
    value: Union[str, int, float, List[Union[str, int, float]]]
    description: Optional[str] = None


@dataclass
class Rule:
    """Authorization rule for model permissions."""
    rule_id: str
    name: str
    model: str = WILDCARD
    method: str = WILDCARD
    action: RuleAction = RuleAction.ALLOW
    conditions: List[RuleCondition] = field(default_factory=list)
    priority: int = 0
    enabled: bool = True
    domain: Optional[str] = None
    description: Optional[str] = None


@dataclass
class EvaluationResult:
    """Result of rule evaluation."""
    allowed: bool
    reason: Optional[str] = None
    matched_rules: List[str] = field(default_factory=list)
