"""System prompts for the four matcher requests."""

from __future__ import annotations

import json
from typing import Any

from backend.rules.schema import RuleSet
from .parsing import UNKNOWN_SENTINEL

JURISDICTION_PROMPT = f"""You are a jurisdiction detector for a regulatory compliance system.
Extract the city/jurisdiction from the user's message.
Return ONLY the jurisdiction name in format "City, State" (e.g., "Cincinnati, OH").
If no jurisdiction is mentioned, return "{UNKNOWN_SENTINEL}"."""


def category_prompt(jurisdiction: str, rulesets: list[RuleSet]) -> str:
    """Classifier prompt listing every category, subcategory and example question."""
    sections = []
    for ruleset in rulesets:
        lines = [f"{ruleset.category}:"]
        if not ruleset.subcategories():
            examples = [r.canonical_questions[0] for r in ruleset.rules if r.canonical_questions]
            if examples:
                lines.append(f"  Examples: {'; '.join(examples[:2])}")
        for subcategory in ruleset.subcategories():
            lines.append(f"  - {subcategory}")
            examples = [
                rule.canonical_questions[0]
                for rule in ruleset.rules
                if rule.subcategory == subcategory and rule.canonical_questions
            ]
            if examples:
                lines.append(f"    Examples: {'; '.join(examples[:2])}")
        sections.append("\n".join(lines))

    return f"""You are a regulatory question classifier for {jurisdiction}.
Your job is to match user questions to the correct rule category and subcategory.

Available categories and subcategories:
{chr(10).join(sections)}

Respond with a JSON array of matches, ranked by confidence (0.0 to 1.0):
[
  {{
    "category": "category_name",
    "subcategory": "subcategory_name",
    "confidence": 0.95,
    "reasoning": "brief explanation"
  }}
]

Return empty array [] if no good match (confidence < 0.5).
Return up to 3 best matches."""


def extraction_prompt(fields: list[str], category: str | None, subcategory: str | None) -> str:
    context = category or "general"
    if subcategory:
        context = f"{context} > {subcategory}"
    wanted = "\n".join(f"- {name}" for name in fields)
    return f"""You are extracting structured data from user responses.

Context: {context}

Required inputs to extract:
{wanted}

Extract any values you can find from the user's messages.
Respond with a JSON object mapping input names to values.
Only include inputs you found - omit missing ones. Never guess.
Use true/false for yes/no answers and numbers for quantities.

If you cannot extract any values, return an empty object: {{}}"""


def clarifying_prompt(
    field: str,
    jurisdiction: str | None,
    category: str | None,
    subcategory: str | None,
    collected: dict[str, Any],
) -> str:
    return f"""You are helping users answer regulatory compliance questions for {jurisdiction or 'their jurisdiction'}.

Context:
- Category: {category or 'unknown'}
- Subcategory: {subcategory or 'unknown'}
- Already collected: {json.dumps(collected, default=str)}

Generate a clear, friendly question to collect this missing input: "{field}"

Requirements:
- Ask only about "{field}"
- Keep it under 20 words
- Don't use technical jargon
- Don't ask about anything already collected

Return ONLY the question text, nothing else."""
