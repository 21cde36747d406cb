"""
Migration utilities for loading YAML rule sets into the database.

Importing a rule set makes it the active version for its (jurisdiction,
category) pair and deactivates every other version of that pair.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from backend.core.database import get_engine, init_db
from backend.core.errors import PersistenceError
from backend.rules.loader import RuleSetDocument, RuleSetLoader
from .models import CitationRecord, JurisdictionRecord, RuleRecord, RuleSetRecord

logger = logging.getLogger(__name__)

DEFAULT_RULES_DIR = Path(__file__).resolve().parent.parent / "rules" / "data"


def _get_or_create_jurisdiction(session: Session, document: RuleSetDocument) -> JurisdictionRecord:
    j = document.jurisdiction
    record = session.exec(
        select(JurisdictionRecord).where(
            JurisdictionRecord.name == j.name, JurisdictionRecord.state == j.state
        )
    ).first()
    if record is None:
        record = JurisdictionRecord(name=j.name, state=j.state, type=j.type, county=j.county)
        session.add(record)
        session.flush()
    return record


def _import_document(session: Session, document: RuleSetDocument) -> str:
    """Upsert one rule-set version. Returns 'created' or 'replaced'."""
    owner = _get_or_create_jurisdiction(session, document)

    versions = session.exec(
        select(RuleSetRecord).where(
            RuleSetRecord.jurisdiction_id == owner.id,
            RuleSetRecord.category == document.category,
        )
    ).all()

    status = "created"
    for existing in versions:
        if existing.version == document.version:
            session.delete(existing)
            status = "replaced"
        elif existing.is_active:
            existing.is_active = False
            session.add(existing)
    session.flush()

    ruleset = RuleSetRecord(
        jurisdiction_id=owner.id,
        category=document.category,
        version=document.version,
        is_active=True,
    )
    session.add(ruleset)
    session.flush()

    for rule in document.rules:
        record = RuleRecord(
            ruleset_id=ruleset.id,
            key=rule.key,
            description=rule.description,
            outcome=rule.outcome.value,
            priority=rule.priority,
            subcategory=rule.subcategory,
            conditions=rule.conditions.model_dump(mode="json"),
            canonical_questions=list(rule.canonical_questions),
            keywords=list(rule.keywords),
            required_inputs=list(rule.required_inputs),
            citation=rule.citation,
        )
        session.add(record)
        session.flush()
        for citation in rule.citations:
            session.add(CitationRecord(rule_id=record.id, **citation.model_dump()))

    return status


def import_rulesets(
    documents: Iterable[RuleSetDocument],
    engine: Engine | None = None,
) -> dict[str, Any]:
    """Import rule-set documents in one transaction.

    Returns:
        Result dict with created/replaced counts.

    Raises:
        PersistenceError: Nothing was imported.
    """
    result: dict[str, Any] = {"created": 0, "replaced": 0, "rulesets": []}
    try:
        with Session(engine or get_engine()) as session:
            for document in documents:
                status = _import_document(session, document)
                result[status] += 1
                result["rulesets"].append(
                    f"{document.jurisdiction.display_name}/{document.category} v{document.version}"
                )
            session.commit()
    except SQLAlchemyError as e:
        logger.error("Rule-set import failed: %s", e)
        raise PersistenceError(str(e)) from e

    logger.info(
        "Imported %d rule set(s) (%d new, %d replaced)",
        len(result["rulesets"]), result["created"], result["replaced"],
    )
    return result


def seed_from_directory(
    rules_dir: str | Path | None = None,
    engine: Engine | None = None,
) -> dict[str, Any]:
    """Create tables and import every YAML rule set in a directory."""
    engine = engine or get_engine()
    init_db(engine)
    loader = RuleSetLoader(rules_dir or DEFAULT_RULES_DIR)
    documents = loader.load_directory()
    return import_rulesets(documents, engine=engine)
