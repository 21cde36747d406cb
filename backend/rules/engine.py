"""Deterministic rules engine - evaluates condition trees and aggregates outcomes."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from backend.core.errors import RuleConfigurationError
from .schema import (
    DEFAULT_OUTCOME,
    OUTCOME_SEVERITY,
    Condition,
    ConditionGroup,
    ConditionOperator,
    EvaluationResult,
    Rule,
    RuleOutcome,
)

_MISSING = object()


@dataclass
class GroupOutcome:
    """Result of walking one condition group."""

    passed: bool
    passed_conditions: list[str] = field(default_factory=list)
    failed_conditions: list[str] = field(default_factory=list)


class RulesEngine:
    """Evaluates rules against user inputs.

    The engine is stateless: the same rule and inputs always produce the
    same result and rationale.
    """

    def evaluate_rule(self, rule: Rule, inputs: Mapping[str, Any]) -> EvaluationResult:
        """Evaluate a single rule against user inputs.

        Raises:
            RuleConfigurationError: If the rule's condition tree cannot be
                evaluated (unknown operator, bad pattern, non-list operand).
        """
        try:
            group = self._evaluate_group(rule.conditions, inputs)
        except RuleConfigurationError as e:
            if e.rule_key is None:
                raise RuleConfigurationError(rule.key, e.detail) from e
            raise

        return EvaluationResult(
            outcome=rule.outcome,
            matched=group.passed,
            passed_conditions=group.passed_conditions,
            failed_conditions=group.failed_conditions,
            rule_key=rule.key,
            description=rule.description,
            citation=rule.primary_citation(),
        )

    def evaluate_rules(
        self, rules: Iterable[Rule], inputs: Mapping[str, Any]
    ) -> list[EvaluationResult]:
        """Evaluate every rule in order."""
        return [self.evaluate_rule(rule, inputs) for rule in rules]

    def determine_outcome(self, results: Iterable[EvaluationResult]) -> RuleOutcome:
        """Determine the final outcome from multiple rule evaluations.

        Priority order: PROHIBITED > RESTRICTED > CONDITIONAL > ALLOWED.
        With no matched rule the permissive default applies. Rule priority
        does not take part in this step.
        """
        matched = {r.outcome for r in results if r.matched}
        for outcome in OUTCOME_SEVERITY:
            if outcome in matched:
                return outcome
        return DEFAULT_OUTCOME

    def generate_rationale(
        self, outcome: RuleOutcome, results: Iterable[EvaluationResult]
    ) -> str:
        """Generate a human-readable rationale citing the governing rule."""
        matched = [r for r in results if r.matched]
        if not matched:
            return "No restrictions found. This action is allowed under current regulations."

        primary = next((r for r in matched if r.outcome == outcome), matched[0])
        description = primary.description.rstrip(". ")
        citation = primary.citation

        if outcome == RuleOutcome.PROHIBITED:
            text = f"This is prohibited under {description}."
            if citation:
                text += f" See {citation}."
            return text

        if outcome == RuleOutcome.RESTRICTED:
            text = f"This is restricted. {description}."
        elif outcome == RuleOutcome.CONDITIONAL:
            text = f"This is allowed with conditions. {description}."
            if primary.failed_conditions:
                text += (
                    f" {len(primary.failed_conditions)} requirement(s) must be met: "
                    f"{', '.join(primary.failed_conditions)}."
                )
            elif primary.passed_conditions:
                text += f" Conditions: {', '.join(primary.passed_conditions)}."
        else:
            text = f"This is allowed under current regulations. {description}."

        if citation:
            text += f" Citation: {citation}."
        return text

    # =========================================================================
    # Condition tree interpreter
    # =========================================================================

    def _evaluate_group(
        self, group: ConditionGroup, inputs: Mapping[str, Any]
    ) -> GroupOutcome:
        """Evaluate a condition group (all/any logic).

        Every child is evaluated so failed-condition labels from any depth
        are reported, flattened in document order.
        """
        passed_conditions: list[str] = []
        failed_conditions: list[str] = []
        child_results: list[bool] = []

        for check in group.checks:
            if isinstance(check, ConditionGroup):
                nested = self._evaluate_group(check, inputs)
                passed_conditions.extend(nested.passed_conditions)
                failed_conditions.extend(nested.failed_conditions)
                child_results.append(nested.passed)
            else:
                passed = self._evaluate_condition(check, inputs)
                (passed_conditions if passed else failed_conditions).append(check.label())
                child_results.append(passed)

        if group.type == "all":
            passed = all(child_results)
        elif group.type == "any":
            passed = any(child_results)
        else:
            raise RuleConfigurationError(None, f"Unknown group type: {group.type}")

        return GroupOutcome(passed, passed_conditions, failed_conditions)

    def _evaluate_condition(self, condition: Condition, inputs: Mapping[str, Any]) -> bool:
        """Evaluate a single condition. Value type mismatches fail, never raise."""
        try:
            op = ConditionOperator(condition.operator)
        except ValueError:
            raise RuleConfigurationError(None, f"Unknown operator: {condition.operator}")

        actual = inputs.get(condition.field, _MISSING)
        expected = condition.value

        if op in (ConditionOperator.IN, ConditionOperator.NOT_IN):
            if not isinstance(expected, list):
                raise RuleConfigurationError(
                    None, f"Operator '{op.value}' on '{condition.field}' requires a list value"
                )

        if actual is _MISSING or actual is None:
            return op in (ConditionOperator.NOT_EQUALS, ConditionOperator.NOT_IN)

        if op == ConditionOperator.EQUALS:
            return _strict_equals(actual, expected)
        if op == ConditionOperator.NOT_EQUALS:
            return not _strict_equals(actual, expected)
        if op in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
            left, right = _to_number(actual), _to_number(expected)
            if left is None or right is None:
                return False
            return left > right if op == ConditionOperator.GREATER_THAN else left < right
        if op == ConditionOperator.IN:
            return _any_member(actual, expected)
        if op == ConditionOperator.NOT_IN:
            return not _any_member(actual, expected)
        if op == ConditionOperator.CONTAINS:
            needle = str(expected).lower()
            values = actual if isinstance(actual, list) else [actual]
            return any(needle in str(v).lower() for v in values)

        # ConditionOperator.REGEX
        try:
            pattern = re.compile(str(expected))
        except re.error as e:
            raise RuleConfigurationError(None, f"Invalid pattern for '{condition.field}': {e}")
        values = actual if isinstance(actual, list) else [actual]
        return any(pattern.search(str(v)) is not None for v in values)


def _strict_equals(actual: Any, expected: Any) -> bool:
    """Equality that never treats booleans as numbers."""
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    if isinstance(actual, (int, float)) and isinstance(expected, (int, float)):
        return actual == expected
    if type(actual) is not type(expected):
        return False
    return actual == expected


def _any_member(actual: Any, expected: list) -> bool:
    values = actual if isinstance(actual, list) else [actual]
    return any(_strict_equals(v, e) for v in values for e in expected)


def _to_number(value: Any) -> float | None:
    """Coerce to a finite float, or None if the value is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


rules_engine = RulesEngine()
