"""Tests for the deterministic rules engine."""

import pytest

from backend.core.errors import RuleConfigurationError
from backend.rules import (
    Condition,
    ConditionGroup,
    EvaluationResult,
    Rule,
    RuleOutcome,
    RulesEngine,
)


def make_rule(conditions: dict, outcome: str = "CONDITIONAL", **extra) -> Rule:
    data = {
        "key": extra.pop("key", "test_rule"),
        "description": extra.pop("description", "Test rule"),
        "outcome": outcome,
        "conditions": conditions,
    }
    data.update(extra)
    return Rule.model_validate(data)


def single(field: str, operator: str, value, **kwargs) -> dict:
    return {"type": "all", "checks": [{"field": field, "operator": operator, "value": value, **kwargs}]}


def result(outcome: str, matched: bool = True, **kwargs) -> EvaluationResult:
    return EvaluationResult(
        outcome=outcome,
        matched=matched,
        rule_key=kwargs.pop("rule_key", f"{outcome.lower()}_rule"),
        description=kwargs.pop("description", f"{outcome.title()} rule"),
        **kwargs,
    )


@pytest.fixture
def pitbull_rule() -> Rule:
    return make_rule(
        {
            "type": "all",
            "checks": [
                {"field": "breed", "operator": "in", "value": ["pitbull"]},
                {"field": "hasPermit", "operator": "equals", "value": True,
                 "message": "Permit required for pitbull ownership"},
                {"field": "hasInsurance", "operator": "equals", "value": True,
                 "message": "Liability insurance required"},
                {"field": "spayedNeutered", "operator": "equals", "value": True,
                 "message": "Animal must be spayed/neutered"},
            ],
        },
        key="pitbull_ownership",
        description="Pitbull ownership regulations",
        citation="Denver Municipal Code § 8-55",
    )


class TestPitbullScenario:
    def test_missing_permit_does_not_match(self, rules_engine: RulesEngine, pitbull_rule):
        inputs = {"breed": "pitbull", "hasPermit": False, "hasInsurance": True, "spayedNeutered": True}
        evaluation = rules_engine.evaluate_rule(pitbull_rule, inputs)

        assert evaluation.matched is False
        assert evaluation.failed_conditions == ["Permit required for pitbull ownership"]
        assert rules_engine.determine_outcome([evaluation]) == RuleOutcome.ALLOWED

    def test_all_requirements_met_is_conditional(self, rules_engine: RulesEngine, pitbull_rule):
        inputs = {"breed": "pitbull", "hasPermit": True, "hasInsurance": True, "spayedNeutered": True}
        evaluation = rules_engine.evaluate_rule(pitbull_rule, inputs)

        assert evaluation.matched is True
        outcome = rules_engine.determine_outcome([evaluation])
        assert outcome == RuleOutcome.CONDITIONAL

        rationale = rules_engine.generate_rationale(outcome, [evaluation])
        assert "Denver Municipal Code § 8-55" in rationale
        assert rationale.startswith("This is allowed with conditions. Pitbull ownership regulations.")

    def test_evaluation_is_idempotent(self, rules_engine: RulesEngine, pitbull_rule):
        inputs = {"breed": "pitbull", "hasPermit": True, "hasInsurance": True, "spayedNeutered": True}
        first = rules_engine.evaluate_rule(pitbull_rule, inputs)
        second = rules_engine.evaluate_rule(pitbull_rule, inputs)

        assert first == second
        assert rules_engine.generate_rationale(
            rules_engine.determine_outcome([first]), [first]
        ) == rules_engine.generate_rationale(rules_engine.determine_outcome([second]), [second])


class TestOperators:
    @pytest.mark.parametrize(
        "operator,expected,actual,passes",
        [
            ("equals", "front-yard", "front-yard", True),
            ("equals", True, True, True),
            ("equals", True, 1, False),
            ("equals", 4, 4.0, True),
            ("equals", "4", 4, False),
            ("notEquals", "front-yard", "back-yard", True),
            ("notEquals", True, 1, True),
            ("greaterThan", 4, 6, True),
            ("greaterThan", 4, "6", True),
            ("greaterThan", 4, 4, False),
            ("greaterThan", 4, "tall", False),
            ("greaterThan", 4, True, False),
            ("lessThan", 7, 6, True),
            ("lessThan", 7, 7, False),
            ("lessThan", "seven", 3, False),
            ("in", ["pitbull", "boxer"], "boxer", True),
            ("in", ["pitbull"], "poodle", False),
            ("in", ["pitbull"], ["poodle", "pitbull"], True),
            ("notIn", ["pitbull"], "poodle", True),
            ("notIn", ["pitbull"], ["poodle", "pitbull"], False),
            ("contains", "WIRE", "barbed-wire", True),
            ("contains", "chain", "barbed-wire", False),
            ("contains", "link", ["wood", "chain-link"], True),
            ("regex", r"^\d{5}$", "45202", True),
            ("regex", r"^\d{5}$", "4520", False),
        ],
    )
    def test_operator(self, rules_engine, operator, expected, actual, passes):
        rule = make_rule(single("field", operator, expected))
        assert rules_engine.evaluate_rule(rule, {"field": actual}).matched is passes

    @pytest.mark.parametrize(
        "operator,value,passes",
        [
            ("equals", True, False),
            ("notEquals", True, True),
            ("greaterThan", 1, False),
            ("lessThan", 1, False),
            ("in", ["a"], False),
            ("notIn", ["a"], True),
            ("contains", "a", False),
            ("regex", "a", False),
        ],
    )
    def test_missing_field(self, rules_engine, operator, value, passes):
        rule = make_rule(single("absent", operator, value))
        assert rules_engine.evaluate_rule(rule, {}).matched is passes

    def test_none_value_counts_as_missing(self, rules_engine):
        rule = make_rule(single("breed", "notEquals", "pitbull"))
        assert rules_engine.evaluate_rule(rule, {"breed": None}).matched is True

    def test_type_mismatch_fails_without_raising(self, rules_engine):
        rule = make_rule(single("height", "greaterThan", 4))
        evaluation = rules_engine.evaluate_rule(rule, {"height": {"feet": 6}})
        assert evaluation.matched is False
        assert evaluation.failed_conditions == ["height greaterThan 4"]


class TestConfigurationErrors:
    def test_unknown_operator(self, rules_engine):
        rule = make_rule(single("height", "between", [1, 2]), key="bad_operator")
        with pytest.raises(RuleConfigurationError) as exc:
            rules_engine.evaluate_rule(rule, {"height": 1})
        assert exc.value.rule_key == "bad_operator"
        assert "between" in exc.value.detail

    def test_membership_requires_list(self, rules_engine):
        rule = make_rule(single("breed", "in", "pitbull"))
        with pytest.raises(RuleConfigurationError):
            rules_engine.evaluate_rule(rule, {"breed": "pitbull"})

    def test_invalid_pattern(self, rules_engine):
        rule = make_rule(single("zip", "regex", "(unclosed"))
        with pytest.raises(RuleConfigurationError):
            rules_engine.evaluate_rule(rule, {"zip": "45202"})

    def test_unknown_operator_fails_even_when_field_missing(self, rules_engine):
        rule = make_rule(single("height", "approximately", 4))
        with pytest.raises(RuleConfigurationError):
            rules_engine.evaluate_rule(rule, {})


class TestConditionGroups:
    def test_any_group(self, rules_engine):
        rule = make_rule({
            "type": "any",
            "checks": [
                {"field": "material", "operator": "equals", "value": "electric"},
                {"field": "material", "operator": "equals", "value": "barbed-wire"},
            ],
        })
        assert rules_engine.evaluate_rule(rule, {"material": "barbed-wire"}).matched is True
        assert rules_engine.evaluate_rule(rule, {"material": "wood"}).matched is False

    def test_empty_groups(self, rules_engine):
        assert rules_engine.evaluate_rule(make_rule({"type": "all", "checks": []}), {}).matched is True
        assert rules_engine.evaluate_rule(make_rule({"type": "any", "checks": []}), {}).matched is False

    def test_nested_failures_flatten_in_document_order(self, rules_engine):
        rule = make_rule({
            "type": "all",
            "checks": [
                {"field": "a", "operator": "equals", "value": 1, "message": "first"},
                {
                    "type": "any",
                    "checks": [
                        {"field": "b", "operator": "equals", "value": 2, "message": "second"},
                        {"type": "all", "checks": [
                            {"field": "c", "operator": "equals", "value": 3, "message": "third"},
                        ]},
                    ],
                },
                {"field": "d", "operator": "equals", "value": 4, "message": "fourth"},
            ],
        })
        evaluation = rules_engine.evaluate_rule(rule, {"d": 4})

        assert evaluation.matched is False
        assert evaluation.failed_conditions == ["first", "second", "third"]
        assert evaluation.passed_conditions == ["fourth"]

    def test_nested_any_inside_all_can_match(self, rules_engine):
        rule = make_rule({
            "type": "all",
            "checks": [
                {"field": "location", "operator": "in", "value": ["side-yard", "back-yard"]},
                {"type": "any", "checks": [
                    {"field": "height", "operator": "greaterThan", "value": 6},
                    {"field": "material", "operator": "equals", "value": "masonry"},
                ]},
            ],
        })
        evaluation = rules_engine.evaluate_rule(
            rule, {"location": "back-yard", "height": 5, "material": "masonry"}
        )
        assert evaluation.matched is True
        assert evaluation.failed_conditions == ["height greaterThan 6"]

    def test_condition_label_joins_lists(self):
        condition = Condition(field="breed", operator="in", value=["pitbull", "boxer"])
        assert condition.label() == "breed in pitbull,boxer"

    def test_group_fields_in_document_order(self):
        group = ConditionGroup.model_validate({
            "type": "all",
            "checks": [
                {"field": "b", "operator": "equals", "value": 1},
                {"type": "any", "checks": [
                    {"field": "a", "operator": "equals", "value": 1},
                    {"field": "b", "operator": "equals", "value": 2},
                ]},
            ],
        })
        assert group.fields() == ["b", "a"]


class TestDetermineOutcome:
    def test_no_results_is_allowed(self, rules_engine):
        assert rules_engine.determine_outcome([]) == RuleOutcome.ALLOWED

    def test_prohibited_wins(self, rules_engine):
        results = [result("ALLOWED"), result("CONDITIONAL"), result("PROHIBITED"), result("RESTRICTED")]
        assert rules_engine.determine_outcome(results) == RuleOutcome.PROHIBITED

    def test_unmatched_results_are_ignored(self, rules_engine):
        results = [result("PROHIBITED", matched=False), result("CONDITIONAL")]
        assert rules_engine.determine_outcome(results) == RuleOutcome.CONDITIONAL

    def test_restricted_beats_conditional(self, rules_engine):
        results = [result("CONDITIONAL"), result("RESTRICTED")]
        assert rules_engine.determine_outcome(results) == RuleOutcome.RESTRICTED


class TestRationale:
    def test_no_matches(self, rules_engine):
        rationale = rules_engine.generate_rationale(RuleOutcome.ALLOWED, [result("PROHIBITED", matched=False)])
        assert rationale == "No restrictions found. This action is allowed under current regulations."

    def test_prohibited(self, rules_engine):
        results = [result("PROHIBITED", description="Roosters may not be kept.", citation="CMC § 701-33")]
        assert rules_engine.generate_rationale(RuleOutcome.PROHIBITED, results) == (
            "This is prohibited under Roosters may not be kept. See CMC § 701-33."
        )

    def test_restricted_without_citation(self, rules_engine):
        results = [result("RESTRICTED", description="Front yard fences are limited in height")]
        assert rules_engine.generate_rationale(RuleOutcome.RESTRICTED, results) == (
            "This is restricted. Front yard fences are limited in height."
        )

    def test_conditional_lists_failed_requirements(self, rules_engine):
        results = [result(
            "CONDITIONAL",
            description="Backyard hens",
            failed_conditions=["Hens must be kept in a covered coop"],
            passed_conditions=["No more than six hens"],
            citation="CMC § 701-35",
        )]
        assert rules_engine.generate_rationale(RuleOutcome.CONDITIONAL, results) == (
            "This is allowed with conditions. Backyard hens. 1 requirement(s) must be met: "
            "Hens must be kept in a covered coop. Citation: CMC § 701-35."
        )

    def test_uses_first_rule_of_winning_outcome(self, rules_engine):
        results = [
            result("CONDITIONAL", description="Permit rule"),
            result("PROHIBITED", description="First prohibition", rule_key="p1"),
            result("PROHIBITED", description="Second prohibition", rule_key="p2"),
        ]
        rationale = rules_engine.generate_rationale(RuleOutcome.PROHIBITED, results)
        assert rationale == "This is prohibited under First prohibition."

    def test_allowed_with_match(self, rules_engine):
        results = [result("ALLOWED", description="Garden sheds under 120 sq ft", citation="Sec. 3")]
        assert rules_engine.generate_rationale(RuleOutcome.ALLOWED, results) == (
            "This is allowed under current regulations. Garden sheds under 120 sq ft. Citation: Sec. 3."
        )
