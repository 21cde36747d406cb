"""Tests for the YAML rule-set loader."""

import pytest

from backend.core.errors import RuleConfigurationError
from backend.rules import RuleOutcome, RuleSetLoader


VALID_DOCUMENT = """
jurisdiction:
  name: Austin
  state: TX
category: noise
version: 2
rules:
  - key: amplified_sound
    description: Amplified sound after 10pm
    outcome: RESTRICTED
    conditions:
      type: all
      checks:
        - field: hour
          operator: greaterThan
          value: 22
"""


class TestLoadDirectory:
    def test_loads_bundled_rulesets(self, rules_dir):
        documents = RuleSetLoader(rules_dir).load_directory()

        pairs = [(d.jurisdiction.display_name, d.category) for d in documents]
        assert pairs == [
            ("Cincinnati, OH", "animals"),
            ("Cincinnati, OH", "zoning"),
            ("Denver, CO", "animals"),
        ]

    def test_bundled_rules_parse_fully(self, rule_documents):
        denver = next(d for d in rule_documents if d.jurisdiction.name == "Denver")
        pitbull = next(r for r in denver.rules if r.key == "pitbull_ownership")

        assert pitbull.outcome == RuleOutcome.CONDITIONAL
        assert pitbull.subcategory == "pitbull_ownership"
        assert pitbull.citations[0].reference() == "Ord. 8-55 § Pit bulls; breed-restricted license"
        assert pitbull.input_fields() == [
            "breed", "hasPermit", "hasInsurance", "isSpayedNeutered", "priorBiteIncident"
        ]

    def test_skips_invalid_files(self, tmp_path):
        (tmp_path / "austin_noise.yaml").write_text(VALID_DOCUMENT)
        (tmp_path / "broken.yaml").write_text("jurisdiction: [unclosed\n")
        (tmp_path / "no_rules_shape.yaml").write_text("- just\n- a list\n")

        documents = RuleSetLoader(tmp_path).load_directory()

        assert [d.category for d in documents] == ["noise"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            RuleSetLoader(tmp_path / "nope").load_directory()

    def test_requires_directory(self):
        with pytest.raises(ValueError):
            RuleSetLoader().load_directory()


class TestLoadFile:
    def test_single_document(self, tmp_path):
        path = tmp_path / "austin.yaml"
        path.write_text(VALID_DOCUMENT)
        loader = RuleSetLoader()

        [document] = loader.load_file(path)

        assert document.version == 2
        assert document.rules[0].priority == 100
        assert loader.get_document("Austin, TX", "noise") is document
        ruleset = document.to_ruleset()
        assert ruleset.jurisdiction == "Austin, TX"
        assert ruleset.is_active is True

    def test_list_of_documents(self, tmp_path):
        path = tmp_path / "many.yaml"
        second = VALID_DOCUMENT.replace("category: noise", "category: parking")
        path.write_text(
            "- " + VALID_DOCUMENT.strip().replace("\n", "\n  ")
            + "\n- " + second.strip().replace("\n", "\n  ") + "\n"
        )
        loader = RuleSetLoader()

        documents = loader.load_file(path)

        assert [d.category for d in documents] == ["noise", "parking"]
        assert len(loader.get_all_documents()) == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            RuleSetLoader().load_file(tmp_path / "missing.yaml")

    def test_invalid_outcome_is_configuration_error(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(VALID_DOCUMENT.replace("RESTRICTED", "MAYBE"))

        with pytest.raises(RuleConfigurationError):
            RuleSetLoader().load_file(path)

    def test_unknown_operator_loads(self, tmp_path):
        # Operators are checked at evaluation time
        path = tmp_path / "odd.yaml"
        path.write_text(VALID_DOCUMENT.replace("greaterThan", "between"))

        [document] = RuleSetLoader().load_file(path)

        assert document.rules[0].conditions.checks[0].operator == "between"

    def test_parse_document_rejects_non_mapping(self):
        with pytest.raises(RuleConfigurationError):
            RuleSetLoader().parse_document(["not", "a", "mapping"])
