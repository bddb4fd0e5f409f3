"""
Authorization evaluation for verified token claims.
"""

from typing import Any, Dict, List, Mapping, Optional, Protocol

from shared.errors import AuthorizationModelError
from shared.logging import get_logger
from .models import (
    WILDCARD, Authorization, ModelPermission, Rule, RuleAction,
    RuleCondition, RuleConditionOperator, EvaluationResult
)


class Authorizer(Protocol):
    """Decides whether claims satisfy an authorization requirement."""

    def authorize(self, claims: Mapping[str, Any], requirement: Authorization) -> bool:
        ...


def _check_requirement(requirement: Any) -> Authorization:
    if not isinstance(requirement, Authorization):
        raise AuthorizationModelError(
            "Unsupported authorization requirement",
            details={"type": type(requirement).__name__}
        )
    return requirement


class ClaimsAuthorizer:
    """Default authorizer: each requirement checks the claims itself."""

    def authorize(self, claims: Mapping[str, Any], requirement: Authorization) -> bool:
        return _check_requirement(requirement).is_satisfied_by(claims)


class RuleEngine:
    """Priority-ordered allow/deny rules for model permissions."""

    def __init__(self):
        self.logger = get_logger("tokens.rule_engine")
        self.rules: Dict[str, Rule] = {}
        self._ordered: Optional[List[Rule]] = None

    def add_rule(self, rule: Rule) -> None:
        """Add or replace a rule."""
        self.rules[rule.rule_id] = rule
        self._ordered = None
        self.logger.info("Rule added", rule_id=rule.rule_id, name=rule.name)

    def remove_rule(self, rule_id: str) -> bool:
        """Remove a rule from the engine."""
        rule = self.rules.pop(rule_id, None)
        if rule is None:
            return False
        self._ordered = None
        self.logger.info("Rule removed", rule_id=rule_id, name=rule.name)
        return True

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return self.rules.get(rule_id)

    def _rules_by_priority(self) -> List[Rule]:
        if self._ordered is None:
            rules = [rule for rule in self.rules.values() if rule.enabled]
            # Higher priority first
            rules.sort(key=lambda r: r.priority, reverse=True)
            self._ordered = rules
        return self._ordered

    def evaluate(self, claims: Mapping[str, Any], permission: ModelPermission) -> EvaluationResult:
        """Evaluate rules for a model permission. Unmatched requests are denied."""
        for rule in self._rules_by_priority():
            if not self._is_rule_applicable(rule, claims, permission):
                continue
            if all(self._evaluate_condition(c, claims, permission) for c in rule.conditions):
                result = EvaluationResult(
                    allowed=(rule.action == RuleAction.ALLOW),
                    reason=f"Rule '{rule.name}' matched",
                    matched_rules=[rule.rule_id]
                )
                self.logger.debug(
                    "Rule evaluation result",
                    rule_id=rule.rule_id,
                    allowed=result.allowed
                )
                return result

        return EvaluationResult(allowed=False, reason="No applicable rules matched")

    def _is_rule_applicable(self, rule: Rule, claims: Mapping[str, Any],
                            permission: ModelPermission) -> bool:
        if rule.model not in (WILDCARD, permission.model):
            return False
        if rule.method not in (WILDCARD, permission.method):
            return False
        if rule.domain is not None:
            domain = permission.domain_identifier or claims.get("domain")
            if domain != rule.domain:
                return False
        return True

    def _evaluate_condition(self, condition: RuleCondition, claims: Mapping[str, Any],
                            permission: ModelPermission) -> bool:
        """Evaluate a single condition."""
        field_value = self._get_field_value(condition.field, claims, permission)
        if field_value is None:
            return False

        operator = condition.operator
        try:
            if operator == RuleConditionOperator.EQUALS:
                return field_value == condition.value
            elif operator == RuleConditionOperator.NOT_EQUALS:
                return field_value != condition.value
            elif operator == RuleConditionOperator.IN:
                return field_value in condition.value
            elif operator == RuleConditionOperator.NOT_IN:
                return field_value not in condition.value
            elif operator == RuleConditionOperator.GREATER_THAN:
                return field_value > condition.value
            elif operator == RuleConditionOperator.LESS_THAN:
                return field_value < condition.value
            elif operator == RuleConditionOperator.CONTAINS:
                if isinstance(field_value, (list, tuple, set, frozenset)):
                    return condition.value in field_value
                return str(condition.value) in str(field_value)
            elif operator == RuleConditionOperator.STARTS_WITH:
                return str(field_value).startswith(str(condition.value))
            elif operator == RuleConditionOperator.ENDS_WITH:
                return str(field_value).endswith(str(condition.value))
        except TypeError as e:
            self.logger.warning(
                "Condition not comparable",
                field=condition.field,
                operator=operator.value,
                error=str(e)
            )
            return False

        self.logger.warning("Unknown condition operator", operator=operator)
        return False

    def _get_field_value(self, field: str, claims: Mapping[str, Any],
                         permission: ModelPermission) -> Any:
        if field == "model":
            return permission.model
        if field == "method":
            return permission.method
        if field == "domain_identifier":
            return permission.domain_identifier

        if field == "scope" and isinstance(claims.get("scope"), str):
            return claims["scope"].split()

        if field in claims:
            return claims[field]

        # Nested fields, e.g. "profile.country"
        if "." in field:
            value: Any = claims
            for part in field.split("."):
                if isinstance(value, Mapping) and part in value:
                    value = value[part]
                else:
                    return None
            return value

        return None

    def get_engine_stats(self) -> Dict[str, Any]:
        return {
            "total_rules": len(self.rules),
            "enabled_rules": len([r for r in self.rules.values() if r.enabled]),
            "models": sorted({r.model for r in self.rules.values()}),
        }


class RuleEngineAuthorizer:
    """Authorizer that routes model permissions through a rule engine.

    Other requirements are checked against the claims directly.
    """

    def __init__(self, engine: Optional[RuleEngine] = None):
        self.engine = engine if engine is not None else RuleEngine()

    def authorize(self, claims: Mapping[str, Any], requirement: Authorization) -> bool:
        requirement = _check_requirement(requirement)
        if isinstance(requirement, ModelPermission):
            return self.engine.evaluate(claims, requirement).allowed
        return requirement.is_satisfied_by(claims)
