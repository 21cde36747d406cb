"""SQLModel-backed implementations of the store interfaces."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from backend.conversation.schemas import (
    ConversationState,
    ConversationStatus,
    Decision,
    Message,
    utcnow,
)
from backend.core.database import get_engine
from backend.core.errors import (
    ConversationNotFoundError,
    PersistenceError,
    RuleConfigurationError,
)
from backend.matcher.schemas import CategoryMatch
from backend.rules.schema import Jurisdiction, Rule, RuleSet, parse_rule
from .base import ConversationStore, RuleSetStore
from .models import (
    ConversationRecord,
    DecisionRecord,
    JurisdictionRecord,
    MessageRecord,
    RuleRecord,
    RuleSetRecord,
)

logger = logging.getLogger(__name__)


class _SqlStore:
    def __init__(self, engine: Engine | None = None):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine or get_engine()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Open a session, reporting database failures as PersistenceError."""
        try:
            with Session(self.engine) as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("Database operation failed: %s", e)
            raise PersistenceError(str(e)) from e


# =============================================================================
# Rule Sets
# =============================================================================


def jurisdiction_from_record(record: JurisdictionRecord) -> Jurisdiction:
    return Jurisdiction(
        name=record.name, state=record.state, type=record.type, county=record.county
    )


def rule_from_record(record: RuleRecord) -> Rule:
    """Rebuild a Rule; a stored tree that no longer parses raises RuleConfigurationError."""
    return parse_rule({
        "key": record.key,
        "description": record.description,
        "outcome": record.outcome,
        "priority": record.priority,
        "subcategory": record.subcategory,
        "conditions": record.conditions,
        "canonical_questions": record.canonical_questions or [],
        "keywords": record.keywords or [],
        "required_inputs": record.required_inputs or [],
        "citation": record.citation,
        "citations": [
            c.model_dump(exclude={"id", "rule_id"}) for c in record.citations
        ],
    })


class SqlRuleSetStore(_SqlStore, RuleSetStore):
    """Rule sets stored in the jurisdictions/rulesets/rules tables."""

    def _find_jurisdiction_record(
        self, session: Session, name: str
    ) -> JurisdictionRecord | None:
        city, _, state = name.partition(",")
        statement = select(JurisdictionRecord).where(
            func.lower(JurisdictionRecord.name) == city.strip().lower()
        )
        if state.strip():
            statement = statement.where(
                func.lower(JurisdictionRecord.state) == state.strip().lower()
            )
        records = session.exec(statement).all()
        # A bare city name must identify exactly one jurisdiction
        return records[0] if len(records) == 1 else None

    def find_jurisdiction(self, name: str) -> Jurisdiction | None:
        with self.session() as session:
            record = self._find_jurisdiction_record(session, name)
            return jurisdiction_from_record(record) if record else None

    def list_jurisdictions(self) -> list[Jurisdiction]:
        with self.session() as session:
            statement = select(JurisdictionRecord).order_by(
                JurisdictionRecord.state, JurisdictionRecord.name
            )
            return [jurisdiction_from_record(r) for r in session.exec(statement).all()]

    def _active_records(
        self, session: Session, jurisdiction: str, category: str | None = None
    ) -> list[RuleSetRecord]:
        owner = self._find_jurisdiction_record(session, jurisdiction)
        if owner is None:
            return []
        statement = select(RuleSetRecord).where(
            RuleSetRecord.jurisdiction_id == owner.id,
            RuleSetRecord.is_active == True,  # noqa: E712
        )
        if category is not None:
            statement = statement.where(RuleSetRecord.category == category)
        return list(session.exec(statement.order_by(RuleSetRecord.category)).all())

    @staticmethod
    def _to_ruleset(jurisdiction: str, record: RuleSetRecord) -> RuleSet:
        return RuleSet(
            jurisdiction=jurisdiction,
            category=record.category,
            version=record.version,
            is_active=record.is_active,
            rules=[rule_from_record(r) for r in record.rules],
        )

    def find_active_ruleset(self, jurisdiction: str, category: str) -> RuleSet | None:
        with self.session() as session:
            records = self._active_records(session, jurisdiction, category)
            if not records:
                return None
            if len(records) > 1:
                logger.warning(
                    "%d active rule sets for %s/%s; using the newest version",
                    len(records), jurisdiction, category,
                )
            record = max(records, key=lambda r: r.version)
            return self._to_ruleset(jurisdiction, record)

    def list_active_rulesets(self, jurisdiction: str) -> list[RuleSet]:
        """Active rule sets that parse; a broken one is logged and left out."""
        rulesets: list[RuleSet] = []
        with self.session() as session:
            for record in self._active_records(session, jurisdiction):
                try:
                    rulesets.append(self._to_ruleset(jurisdiction, record))
                except RuleConfigurationError as e:
                    logger.error(
                        "Skipping %s/%s v%d: %s",
                        jurisdiction, record.category, record.version, e,
                    )
        return rulesets


# =============================================================================
# Conversations
# =============================================================================


def state_from_record(record: ConversationRecord) -> ConversationState:
    return ConversationState(
        id=record.id,
        user_id=record.user_id,
        fingerprint=record.fingerprint,
        jurisdiction=record.jurisdiction,
        category=record.category,
        subcategory=record.subcategory,
        inputs=dict(record.inputs or {}),
        required_inputs=list(record.required_inputs or []),
        pending_matches=[CategoryMatch.model_validate(m) for m in record.pending_matches or []],
        messages=[
            Message(
                role=m.role,
                content=m.content,
                provider=m.provider,
                tokens_used=m.tokens_used,
                created_at=m.created_at,
            )
            for m in record.messages
        ],
        status=ConversationStatus(record.status),
        primary_provider=record.primary_provider,
        fallback_used=record.fallback_used,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class SqlConversationStore(_SqlStore, ConversationStore):
    """Conversations, transcripts and decision records in SQL tables."""

    def create_conversation(self, user_id=None, fingerprint=None) -> ConversationState:
        record = ConversationRecord(
            id=str(uuid.uuid4()), user_id=user_id, fingerprint=fingerprint
        )
        with self.session() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return state_from_record(record)

    def load_conversation(self, conversation_id: str) -> ConversationState | None:
        with self.session() as session:
            record = session.get(ConversationRecord, conversation_id)
            return state_from_record(record) if record else None

    def persist_turn(self, state, new_messages, decision=None) -> None:
        with self.session() as session:
            record = session.get(ConversationRecord, state.id)
            if record is None:
                raise ConversationNotFoundError(state.id)

            record.jurisdiction = state.jurisdiction
            record.category = state.category
            record.subcategory = state.subcategory
            record.inputs = dict(state.inputs)
            record.required_inputs = list(state.required_inputs)
            record.pending_matches = [m.model_dump() for m in state.pending_matches]
            record.status = state.status.value
            record.primary_provider = state.primary_provider
            record.fallback_used = state.fallback_used
            record.updated_at = utcnow()
            session.add(record)

            for message in new_messages:
                session.add(MessageRecord(
                    conversation_id=state.id,
                    role=message.role,
                    content=message.content,
                    provider=message.provider,
                    tokens_used=message.tokens_used,
                    created_at=message.created_at,
                ))

            if decision is not None:
                session.add(decision_record(decision))

            # State, transcript and decision commit together
            session.commit()

    def record_decision(self, decision: Decision) -> int:
        """Store a decision made outside any conversation; returns its id."""
        with self.session() as session:
            record = decision_record(decision)
            session.add(record)
            session.commit()
            session.refresh(record)
            return record.id

    def list_decisions(self, conversation_id: str) -> list[Decision]:
        with self.session() as session:
            statement = (
                select(DecisionRecord)
                .where(DecisionRecord.conversation_id == conversation_id)
                .order_by(DecisionRecord.id)
            )
            return [
                Decision.model_validate(r.model_dump(exclude={"id"}))
                for r in session.exec(statement).all()
            ]


def decision_record(decision: Decision) -> DecisionRecord:
    return DecisionRecord(
        conversation_id=decision.conversation_id,
        jurisdiction=decision.jurisdiction,
        category=decision.category,
        question_key=decision.question_key,
        inputs=dict(decision.inputs),
        outcome=decision.outcome.value,
        rationale=decision.rationale,
        matched_rules=list(decision.matched_rules),
        user_id=decision.user_id,
        fingerprint=decision.fingerprint,
        created_at=decision.created_at,
    )


# =============================================================================
# Shared State
# =============================================================================

_rule_store: SqlRuleSetStore | None = None
_conversation_store: SqlConversationStore | None = None


def get_rule_store() -> SqlRuleSetStore:
    """Get or create the process-wide rule-set store."""
    global _rule_store
    if _rule_store is None:
        _rule_store = SqlRuleSetStore()
    return _rule_store


def get_conversation_store() -> SqlConversationStore:
    """Get or create the process-wide conversation store."""
    global _conversation_store
    if _conversation_store is None:
        _conversation_store = SqlConversationStore()
    return _conversation_store
