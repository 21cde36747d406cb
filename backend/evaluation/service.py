"""Evaluation bridge - resolves the active rule set and runs the rules engine."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping

from backend.core.errors import RuleConfigurationError, RulesNotConfiguredError
from backend.rules.engine import RulesEngine, rules_engine
from backend.rules.schema import EvaluationResult
from .schemas import EvaluationSummary, MatchedRule

if TYPE_CHECKING:
    from backend.storage.base import RuleSetStore

logger = logging.getLogger(__name__)


class EvaluationBridge:
    """Loads the rule set for a resolved (jurisdiction, category) and evaluates it.

    Misconfigured rules abort the evaluation unless `skip_invalid_rules`
    is set, in which case they are logged and left out.
    """

    def __init__(
        self,
        store: RuleSetStore,
        engine: RulesEngine | None = None,
        skip_invalid_rules: bool = False,
    ):
        self.store = store
        self.engine = engine or rules_engine
        self.skip_invalid_rules = skip_invalid_rules

    def evaluate(
        self,
        jurisdiction: str,
        category: str,
        subcategory: str | None = None,
        inputs: Mapping[str, Any] | None = None,
    ) -> EvaluationSummary:
        """Evaluate every applicable rule.

        Raises:
            RulesNotConfiguredError: Unknown jurisdiction, no active rule set,
                or no rules for the subcategory.
            RuleConfigurationError: A rule cannot be evaluated and invalid
                rules are not being skipped.
        """
        inputs = inputs or {}
        resolved = self.store.find_jurisdiction(jurisdiction)
        if resolved is None:
            raise RulesNotConfiguredError(jurisdiction, category, "jurisdiction not found")
        jurisdiction = resolved.display_name

        ruleset = self.store.find_active_ruleset(jurisdiction, category)
        if ruleset is None:
            raise RulesNotConfiguredError(jurisdiction, category, "no active rule set")

        rules = ruleset.ordered_rules(subcategory)
        if not rules:
            detail = f"no rules for subcategory '{subcategory}'" if subcategory else "empty rule set"
            raise RulesNotConfiguredError(jurisdiction, category, detail)

        results: list[EvaluationResult] = []
        skipped: list[str] = []
        for rule in rules:
            try:
                results.append(self.engine.evaluate_rule(rule, inputs))
            except RuleConfigurationError as e:
                logger.error(
                    "Rule %s in %s/%s v%d is misconfigured: %s",
                    e.rule_key, jurisdiction, category, ruleset.version, e.detail,
                )
                if not self.skip_invalid_rules:
                    raise
                skipped.append(rule.key)

        if not results:
            raise RulesNotConfiguredError(jurisdiction, category, "every rule is misconfigured")

        outcome = self.engine.determine_outcome(results)
        rationale = self.engine.generate_rationale(outcome, results)

        matched_keys = {r.rule_key for r in results if r.matched}
        matched_rules = [
            MatchedRule(
                key=r.rule_key, description=r.description, outcome=r.outcome, citation=r.citation
            )
            for r in results
            if r.matched
        ]

        citations: list[str] = []
        sources = []
        for rule in rules:
            if rule.key not in matched_keys:
                continue
            sources.extend(rule.citations)
            references = [rule.citation] + [c.reference() for c in rule.citations]
            for reference in references:
                if reference and reference not in citations:
                    citations.append(reference)

        logger.info(
            "Evaluated %s/%s%s: %s (%d of %d rules matched)",
            jurisdiction, category, f"/{subcategory}" if subcategory else "",
            outcome.value, len(matched_rules), len(results),
        )

        return EvaluationSummary(
            jurisdiction=jurisdiction,
            category=category,
            subcategory=subcategory,
            ruleset_version=ruleset.version,
            outcome=outcome,
            rationale=rationale,
            matched_rules=matched_rules,
            citations=citations,
            sources=sources,
            results=results,
            skipped_rules=skipped,
        )
