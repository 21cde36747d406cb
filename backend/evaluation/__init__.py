"""Evaluation bridge domain."""

from .schemas import EvaluationSummary, MatchedRule
from .service import EvaluationBridge

__all__ = [
    "EvaluationBridge",
    "EvaluationSummary",
    "MatchedRule",
]
