"""Civix - hybrid conversational compliance assistant.

Answers "is X allowed here?" questions by collecting inputs through a
conversational front-end backed by interchangeable language-model providers,
then handing them to a deterministic rules engine so the final decision is
reproducible and explainable.

Environment Variables:
    GEMINI_API_KEY / ANTHROPIC_API_KEY / OPENAI_API_KEY: Provider credentials.
                      Providers without a key are skipped.
    AI_PRIMARY_PROVIDER: Default provider ("gemini", "anthropic", "openai").
    DATABASE_URL: SQLAlchemy URL. Defaults to a SQLite file under data/.
"""

# Rules and decision engine
from .rules import (
    Condition,
    ConditionGroup,
    EvaluationResult,
    Rule,
    RuleOutcome,
    RuleSet,
    RulesEngine,
)

__version__ = "0.1.0"

__all__ = [
    "Condition",
    "ConditionGroup",
    "EvaluationResult",
    "Rule",
    "RuleOutcome",
    "RuleSet",
    "RulesEngine",
]
