"""Typed results returned by the intent and slot matcher.

Every result carries the completion metadata of the provider call that
produced it so the orchestrator can record it on the assistant message.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from backend.providers.schemas import Completion, ProviderName

# Matches below this confidence are discarded
CONFIDENCE_FLOOR = 0.5


class CategoryMatch(BaseModel):
    """A candidate (category, subcategory) the question may belong to."""

    category: str
    subcategory: str | None = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    required_inputs: list[str] = Field(default_factory=list)
    canonical_question: str
    rule_keys: list[str] = Field(default_factory=list)

    def names(self) -> list[str]:
        """Names a user may type to pick this candidate."""
        return [n for n in (self.canonical_question, self.subcategory, self.category) if n]


class MatcherResult(BaseModel):
    """Provider metadata shared by every matcher result."""

    provider: ProviderName | None = None
    tokens_used: int | None = None
    fallback_used: bool = False

    @classmethod
    def from_completion(cls, completion: Completion, **values: Any):
        return cls(
            provider=completion.provider,
            tokens_used=completion.tokens_used,
            fallback_used=completion.fallback_used,
            **values,
        )


class JurisdictionDetection(MatcherResult):
    jurisdiction: str | None = None


class CategoryMatches(MatcherResult):
    matches: list[CategoryMatch] = Field(default_factory=list)


class InputExtraction(MatcherResult):
    values: dict[str, Any] = Field(default_factory=dict)


class ClarifyingQuestion(MatcherResult):
    field: str
    question: str
