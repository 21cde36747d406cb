"""Intent and slot matcher built on the provider gateway.

Every request runs at temperature zero and parses its completion strictly.
An unparsable completion degrades to the request's empty result; provider
errors propagate to the caller.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from backend.providers.gateway import ProviderGateway
from backend.providers.schemas import Turn
from backend.rules.schema import RuleSet
from .parsing import find_json, first_line, humanize, parse_confidence, parse_jurisdiction
from .prompts import (
    JURISDICTION_PROMPT,
    category_prompt,
    clarifying_prompt,
    extraction_prompt,
)
from .schemas import (
    CONFIDENCE_FLOOR,
    CategoryMatch,
    CategoryMatches,
    ClarifyingQuestion,
    InputExtraction,
    JurisdictionDetection,
)

if TYPE_CHECKING:
    from backend.storage.base import RuleSetStore

logger = logging.getLogger(__name__)


class IntentMatcher:
    """Resolves jurisdictions, categories and slot values from free text."""

    def __init__(self, gateway: ProviderGateway, store: RuleSetStore):
        self.gateway = gateway
        self.store = store

    async def detect_jurisdiction(self, message: str) -> JurisdictionDetection:
        """Find a configured jurisdiction mentioned in the message.

        A jurisdiction the model names but the store does not know is
        reported as not found.
        """
        completion = await self.gateway.complete(
            [Turn(role="user", content=message)],
            system_prompt=JURISDICTION_PROMPT,
            temperature=0.0,
            max_tokens=50,
        )
        candidate = parse_jurisdiction(completion.text)
        resolved = self.store.find_jurisdiction(candidate) if candidate else None
        if candidate and resolved is None:
            logger.info("Detected jurisdiction %r is not configured", candidate)
        return JurisdictionDetection.from_completion(
            completion, jurisdiction=resolved.display_name if resolved else None
        )

    async def match_category(self, message: str, jurisdiction: str) -> CategoryMatches:
        """Rank the jurisdiction's rule categories against the question."""
        rulesets = self.store.list_active_rulesets(jurisdiction)
        if not rulesets:
            return CategoryMatches()

        completion = await self.gateway.complete(
            [Turn(role="user", content=f'User question: "{message}"')],
            system_prompt=category_prompt(jurisdiction, rulesets),
            temperature=0.0,
            max_tokens=500,
        )
        raw = find_json(completion.text, list)
        if raw is None:
            logger.warning("Category match response had no JSON array: %.200s", completion.text)
            return CategoryMatches.from_completion(completion)

        matches: list[CategoryMatch] = []
        seen: set[tuple[str, str | None]] = set()
        for entry in raw:
            match = self._enrich(entry, rulesets)
            if match is None or (match.category, match.subcategory) in seen:
                continue
            seen.add((match.category, match.subcategory))
            matches.append(match)

        # Stable: ties keep the order the model returned them in
        matches.sort(key=lambda m: -m.confidence)
        return CategoryMatches.from_completion(completion, matches=matches)

    def _enrich(self, entry: Any, rulesets: list[RuleSet]) -> CategoryMatch | None:
        """Validate one raw match and attach its rules' slots and keys."""
        if not isinstance(entry, dict):
            return None
        confidence = parse_confidence(entry.get("confidence"))
        if confidence is None or confidence < CONFIDENCE_FLOOR:
            return None

        ruleset = next((rs for rs in rulesets if rs.category == entry.get("category")), None)
        if ruleset is None:
            return None

        subcategory = entry.get("subcategory")
        if not isinstance(subcategory, str) or not subcategory.strip():
            subcategory = None
        rules = [r for r in ruleset.rules if subcategory is None or r.subcategory == subcategory]
        if not rules:
            return None

        required: list[str] = []
        for rule in rules:
            for name in rule.input_fields():
                if name not in required:
                    required.append(name)

        canonical = next(
            (r.canonical_questions[0] for r in rules if r.canonical_questions),
            subcategory or ruleset.category,
        )
        return CategoryMatch(
            category=ruleset.category,
            subcategory=subcategory,
            confidence=confidence,
            required_inputs=required,
            canonical_question=canonical,
            rule_keys=[r.key for r in rules],
        )

    async def extract_inputs(
        self,
        messages: list[str],
        fields: list[str],
        category: str | None = None,
        subcategory: str | None = None,
    ) -> InputExtraction:
        """Extract values for the requested fields only."""
        if not fields or not messages:
            return InputExtraction()

        completion = await self.gateway.complete(
            [Turn(role="user", content="\n".join(messages))],
            system_prompt=extraction_prompt(fields, category, subcategory),
            temperature=0.0,
            max_tokens=200,
        )
        raw = find_json(completion.text, dict)
        if raw is None:
            logger.warning("Input extraction response had no JSON object: %.200s", completion.text)
            return InputExtraction.from_completion(completion)

        values = {
            name: value
            for name, value in raw.items()
            if name in fields and _is_answer(value)
        }
        return InputExtraction.from_completion(completion, values=values)

    async def generate_clarifying_question(
        self,
        field: str,
        jurisdiction: str | None = None,
        category: str | None = None,
        subcategory: str | None = None,
        collected: dict[str, Any] | None = None,
    ) -> ClarifyingQuestion:
        """Phrase one question asking for `field`."""
        completion = await self.gateway.complete(
            [Turn(role="user", content=f"Generate question for: {field}")],
            system_prompt=clarifying_prompt(
                field, jurisdiction, category, subcategory, collected or {}
            ),
            temperature=0.0,
            max_tokens=100,
        )
        question = first_line(completion.text)
        if not question:
            question = f"Could you tell me the {humanize(field)}?"
        return ClarifyingQuestion.from_completion(completion, field=field, question=question)


def _is_answer(value: Any) -> bool:
    """Nulls, blank strings and nested objects mean the model found nothing."""
    if value is None or isinstance(value, dict):
        return False
    if isinstance(value, str) and not value.strip():
        return False
    if isinstance(value, list):
        return all(not isinstance(item, (dict, list)) for item in value)
    return True
