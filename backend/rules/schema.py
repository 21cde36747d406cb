"""Pydantic models for the rule DSL.

Conditions are stored as a declarative recursive tree (a `Condition` leaf or
a nested `ConditionGroup`) and walked by the interpreter in
`backend.rules.engine`; rules never embed executable code.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from backend.core.errors import RuleConfigurationError


# =============================================================================
# Outcomes
# =============================================================================


class RuleOutcome(str, Enum):
    """The fixed enumeration every evaluation resolves to."""

    ALLOWED = "ALLOWED"
    RESTRICTED = "RESTRICTED"
    CONDITIONAL = "CONDITIONAL"
    PROHIBITED = "PROHIBITED"


# Most restrictive first
OUTCOME_SEVERITY: tuple[RuleOutcome, ...] = (
    RuleOutcome.PROHIBITED,
    RuleOutcome.RESTRICTED,
    RuleOutcome.CONDITIONAL,
    RuleOutcome.ALLOWED,
)

DEFAULT_OUTCOME = RuleOutcome.ALLOWED


# =============================================================================
# Condition Expressions
# =============================================================================


class ConditionOperator(str, Enum):
    """Comparison operators for conditions."""

    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    IN = "in"
    NOT_IN = "notIn"
    CONTAINS = "contains"
    REGEX = "regex"


class Condition(BaseModel):
    """A single field check.

    `operator` is kept as a plain string so an unknown operator surfaces as a
    configuration error when the rule is evaluated.
    """

    field: str = Field(..., description="Input field name to evaluate")
    operator: str = Field(..., description="Comparison operator")
    value: Any = Field(None, description="Expected value")
    message: str | None = Field(None, description="Requirement text shown when reporting")

    def label(self) -> str:
        """Human-readable label used in passed/failed condition lists."""
        if self.message:
            return self.message
        value = self.value
        if isinstance(value, list):
            value = ",".join(str(v) for v in value)
        return f"{self.field} {self.operator} {value}"


class ConditionGroup(BaseModel):
    """Grouped conditions with a boolean combinator."""

    type: Literal["all", "any"] = Field(..., description="all = AND, any = OR")
    checks: list[Condition | ConditionGroup] = Field(default_factory=list)

    def fields(self) -> list[str]:
        """Distinct field names referenced by the tree, in document order."""
        seen: list[str] = []
        for check in self.checks:
            names = check.fields() if isinstance(check, ConditionGroup) else [check.field]
            for name in names:
                if name not in seen:
                    seen.append(name)
        return seen


# =============================================================================
# Citations and Jurisdictions
# =============================================================================


class Citation(BaseModel):
    """An ordinance reference backing a rule."""

    ordinance_number: str
    section: str
    title: str | None = None
    text: str
    url: str | None = None
    page_number: int | None = None

    def reference(self) -> str:
        """Short reference such as 'Ord. 8-55 § Pit bulls'."""
        return f"Ord. {self.ordinance_number} § {self.section}"


class Jurisdiction(BaseModel):
    """A municipality rules are scoped to."""

    name: str = Field(..., description="City or municipality name")
    state: str = Field(..., description="Two-letter region code")
    type: str = Field(default="city")
    county: str | None = None

    @property
    def display_name(self) -> str:
        """The resolved jurisdiction string used as a lookup key."""
        return f"{self.name}, {self.state}"

    def matches(self, query: str) -> bool:
        """Case-insensitive match against 'City, ST' or a bare city name."""
        name, _, state = query.partition(",")
        if name.strip().lower() != self.name.lower():
            return False
        state = state.strip()
        return not state or state.lower() == self.state.lower()


# =============================================================================
# Rules and Rule Sets
# =============================================================================


class Rule(BaseModel):
    """A rule: a condition tree, the outcome it yields and its citations."""

    key: str = Field(..., description="Unique key within its rule set")
    description: str
    outcome: RuleOutcome
    conditions: ConditionGroup
    priority: int = Field(default=100)

    subcategory: str | None = None
    canonical_questions: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    required_inputs: list[str] = Field(default_factory=list)

    citation: str | None = Field(None, description="Primary citation text")
    citations: list[Citation] = Field(default_factory=list)

    def input_fields(self) -> list[str]:
        """Slots a conversation must collect before this rule can be evaluated."""
        return list(self.required_inputs) or self.conditions.fields()

    def primary_citation(self) -> str | None:
        if self.citation:
            return self.citation
        if self.citations:
            return self.citations[0].reference()
        return None


class RuleSet(BaseModel):
    """The versioned rules for one (jurisdiction, category) pair."""

    jurisdiction: str = Field(..., description="Resolved jurisdiction display name")
    category: str
    version: int = 1
    is_active: bool = True
    rules: list[Rule] = Field(default_factory=list)

    def ordered_rules(self, subcategory: str | None = None) -> list[Rule]:
        """Rules in evaluation order: descending priority, ties in stored order."""
        rules = self.rules
        if subcategory:
            rules = [r for r in rules if r.subcategory == subcategory]
        return sorted(rules, key=lambda r: -r.priority)

    def subcategories(self) -> list[str]:
        seen: list[str] = []
        for rule in self.rules:
            if rule.subcategory and rule.subcategory not in seen:
                seen.append(rule.subcategory)
        return seen


# =============================================================================
# Evaluation Results
# =============================================================================


class EvaluationResult(BaseModel):
    """Outcome of evaluating one rule against an input set."""

    outcome: RuleOutcome
    matched: bool
    passed_conditions: list[str] = Field(default_factory=list)
    failed_conditions: list[str] = Field(default_factory=list)
    rule_key: str
    description: str
    citation: str | None = None


# Enable forward references for recursive types
ConditionGroup.model_rebuild()


def parse_rule(data: dict[str, Any]) -> Rule:
    """Build a Rule from stored data, reporting structural problems as configuration errors."""
    try:
        return Rule.model_validate(data)
    except ValidationError as e:
        key = data.get("key") if isinstance(data, dict) else None
        raise RuleConfigurationError(key, str(e)) from e
