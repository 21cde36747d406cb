"""YAML rule-set loader and validator."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from backend.core.errors import RuleConfigurationError
from .schema import Jurisdiction, Rule, RuleSet

logger = logging.getLogger(__name__)


class RuleSetDocument(BaseModel):
    """A rule set as authored on disk, with its owning jurisdiction."""

    jurisdiction: Jurisdiction
    category: str
    version: int = 1
    rules: list[Rule] = Field(default_factory=list)

    def to_ruleset(self) -> RuleSet:
        return RuleSet(
            jurisdiction=self.jurisdiction.display_name,
            category=self.category,
            version=self.version,
            rules=self.rules,
        )


class RuleSetLoader:
    """Loads and validates YAML rule sets from files or directories."""

    def __init__(self, rules_dir: str | Path | None = None):
        self.rules_dir = Path(rules_dir) if rules_dir else None
        self._documents: dict[tuple[str, str], RuleSetDocument] = {}

    def load_file(self, path: str | Path) -> list[RuleSetDocument]:
        """Load rule sets from a single YAML file (one document or a list)."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Rule file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)

        items = content if isinstance(content, list) else [content]
        documents = []
        for item in items:
            document = self.parse_document(item, source=path.name)
            documents.append(document)
            self._documents[(document.jurisdiction.display_name, document.category)] = document
        return documents

    def load_directory(self, path: str | Path | None = None) -> list[RuleSetDocument]:
        """Load all YAML rule sets from a directory, skipping files that fail to parse."""
        path = Path(path) if path else self.rules_dir
        if not path:
            raise ValueError("No rules directory specified")
        if not path.exists():
            raise FileNotFoundError(f"Rules directory not found: {path}")

        documents = []
        for yaml_file in sorted(path.glob("*.yaml")):
            try:
                documents.extend(self.load_file(yaml_file))
            except (RuleConfigurationError, yaml.YAMLError) as e:
                logger.warning("Failed to load %s: %s", yaml_file, e)
        return documents

    def get_document(self, jurisdiction: str, category: str) -> RuleSetDocument | None:
        return self._documents.get((jurisdiction, category))

    def get_all_documents(self) -> list[RuleSetDocument]:
        return list(self._documents.values())

    def parse_document(self, data: Any, source: str = "<data>") -> RuleSetDocument:
        """Parse a rule-set document from dictionary data."""
        if not isinstance(data, dict):
            raise RuleConfigurationError(None, f"{source}: expected a mapping at top level")
        try:
            return RuleSetDocument.model_validate(data)
        except ValidationError as e:
            raise RuleConfigurationError(None, f"{source}: {e}") from e
