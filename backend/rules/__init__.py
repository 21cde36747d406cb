"""Rules domain - rule DSL, deterministic engine and YAML loader.

The `/decisions` and `/jurisdictions` routes live in `backend.rules.router`.
"""

from .engine import RulesEngine, rules_engine
from .loader import RuleSetDocument, RuleSetLoader
from .schema import (
    DEFAULT_OUTCOME,
    OUTCOME_SEVERITY,
    Citation,
    Condition,
    ConditionGroup,
    ConditionOperator,
    EvaluationResult,
    Jurisdiction,
    Rule,
    RuleOutcome,
    RuleSet,
    parse_rule,
)

__all__ = [
    # Engine
    "RulesEngine",
    "rules_engine",
    # Loader
    "RuleSetLoader",
    "RuleSetDocument",
    # DSL
    "RuleOutcome",
    "OUTCOME_SEVERITY",
    "DEFAULT_OUTCOME",
    "ConditionOperator",
    "Condition",
    "ConditionGroup",
    "Citation",
    "Jurisdiction",
    "Rule",
    "RuleSet",
    "EvaluationResult",
    "parse_rule",
]
