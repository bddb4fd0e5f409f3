from .engine import Authorizer, ClaimsAuthorizer, RuleEngine, RuleEngineAuthorizer
from .models import (
    AllOf,
    Authorization,
    ModelPermission,
    RequireDomain,
    RequireRole,
    RequireScope,
    Rule,
    RuleAction,
    RuleCondition,
    RuleConditionOperator,
    ValidationOnly,
)

__all__ = [
    "AllOf",
    "Authorization",
    "Authorizer",
    "ClaimsAuthorizer",
    "ModelPermission",
    "RequireDomain",
    "RequireRole",
    "RequireScope",
    "Rule",
    "RuleAction",
    "RuleCondition",
    "RuleConditionOperator",
    "RuleEngine",
    "RuleEngineAuthorizer",
    "ValidationOnly",
]
