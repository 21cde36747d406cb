"""Evaluation bridge result models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from backend.rules.schema import Citation, EvaluationResult, RuleOutcome


class MatchedRule(BaseModel):
    """A rule whose condition group passed."""

    key: str
    description: str
    outcome: RuleOutcome
    citation: str | None = None


class EvaluationSummary(BaseModel):
    """Aggregate result of evaluating one rule set against an input set."""

    jurisdiction: str
    category: str
    subcategory: str | None = None
    ruleset_version: int
    outcome: RuleOutcome
    rationale: str
    matched_rules: list[MatchedRule] = Field(default_factory=list)
    citations: list[str] = Field(
        default_factory=list, description="Citation references of the matched rules"
    )
    sources: list[Citation] = Field(
        default_factory=list, description="Structured ordinance citations of the matched rules"
    )
    results: list[EvaluationResult] = Field(default_factory=list)
    skipped_rules: list[str] = Field(
        default_factory=list, description="Misconfigured rules left out of the evaluation"
    )

    @property
    def question_key(self) -> str:
        return self.subcategory or self.category

