"""SQLModel table definitions for rules, conversations, decisions and usage."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Rules
# =============================================================================


class JurisdictionRecord(SQLModel, table=True):
    """A municipality rule sets are scoped to."""

    __tablename__ = "jurisdictions"
    __table_args__ = (UniqueConstraint("name", "state", name="uq_jurisdiction_name_state"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(..., index=True, description="City or municipality name")
    state: str = Field(..., description="Two-letter region code")
    type: str = Field(default="city")
    county: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=_now)

    rulesets: list["RuleSetRecord"] = Relationship(
        back_populates="jurisdiction",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class RuleSetRecord(SQLModel, table=True):
    """One version of the rules for a (jurisdiction, category) pair."""

    __tablename__ = "rulesets"
    __table_args__ = (
        UniqueConstraint("jurisdiction_id", "category", "version", name="uq_ruleset_version"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    category: str = Field(..., index=True)
    version: int = Field(default=1)
    is_active: bool = Field(default=True, description="Exactly one version per pair is active")
    created_at: datetime = Field(default_factory=_now)

    jurisdiction_id: int = Field(foreign_key="jurisdictions.id", ondelete="CASCADE")
    jurisdiction: Optional[JurisdictionRecord] = Relationship(back_populates="rulesets")
    rules: list["RuleRecord"] = Relationship(
        back_populates="ruleset",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "lazy": "selectin",
            "order_by": "RuleRecord.id",
        },
    )


class RuleRecord(SQLModel, table=True):
    """A rule with its condition tree stored as JSON."""

    __tablename__ = "rules"

    id: Optional[int] = Field(default=None, primary_key=True)
    key: str = Field(..., index=True)
    description: str
    outcome: str
    priority: int = Field(default=100)
    subcategory: Optional[str] = Field(default=None, index=True)
    conditions: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    canonical_questions: list = Field(default_factory=list, sa_column=Column(JSON))
    keywords: list = Field(default_factory=list, sa_column=Column(JSON))
    required_inputs: list = Field(default_factory=list, sa_column=Column(JSON))
    citation: Optional[str] = Field(default=None)

    ruleset_id: int = Field(foreign_key="rulesets.id", ondelete="CASCADE")
    ruleset: Optional[RuleSetRecord] = Relationship(back_populates="rules")
    citations: list["CitationRecord"] = Relationship(
        back_populates="rule",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "lazy": "selectin",
            "order_by": "CitationRecord.id",
        },
    )


class CitationRecord(SQLModel, table=True):
    """Ordinance reference attached to a rule."""

    __tablename__ = "citations"

    id: Optional[int] = Field(default=None, primary_key=True)
    ordinance_number: str
    section: str
    title: Optional[str] = Field(default=None)
    text: str
    url: Optional[str] = Field(default=None)
    page_number: Optional[int] = Field(default=None)

    rule_id: int = Field(foreign_key="rules.id", ondelete="CASCADE")
    rule: Optional[RuleRecord] = Relationship(back_populates="citations")


# =============================================================================
# Conversations
# =============================================================================


class ConversationRecord(SQLModel, table=True):
    """Persisted conversation state."""

    __tablename__ = "conversations"

    id: str = Field(primary_key=True)
    user_id: Optional[str] = Field(default=None, index=True)
    fingerprint: Optional[str] = Field(default=None, index=True)

    jurisdiction: Optional[str] = Field(default=None)
    category: Optional[str] = Field(default=None)
    subcategory: Optional[str] = Field(default=None)
    inputs: dict = Field(default_factory=dict, sa_column=Column(JSON))
    required_inputs: list = Field(default_factory=list, sa_column=Column(JSON))
    pending_matches: list = Field(default_factory=list, sa_column=Column(JSON))

    status: str = Field(default="active", index=True)
    primary_provider: Optional[str] = Field(default=None)
    fallback_used: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    messages: list["MessageRecord"] = Relationship(
        back_populates="conversation",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "lazy": "selectin",
            "order_by": "MessageRecord.id",
        },
    )


class MessageRecord(SQLModel, table=True):
    """One transcript entry."""

    __tablename__ = "messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    role: str
    content: str
    provider: Optional[str] = Field(default=None)
    tokens_used: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=_now)

    conversation_id: str = Field(foreign_key="conversations.id", ondelete="CASCADE")
    conversation: Optional[ConversationRecord] = Relationship(back_populates="messages")


class DecisionRecord(SQLModel, table=True):
    """Audit trail of completed evaluations."""

    __tablename__ = "decisions"

    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: Optional[str] = Field(default=None, index=True)
    jurisdiction: str
    category: str
    question_key: str
    inputs: dict = Field(default_factory=dict, sa_column=Column(JSON))
    outcome: str
    rationale: str
    matched_rules: list = Field(default_factory=list, sa_column=Column(JSON))
    user_id: Optional[str] = Field(default=None)
    fingerprint: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=_now)


# =============================================================================
# Usage
# =============================================================================


class UsageRecord(SQLModel, table=True):
    """One charged query."""

    __tablename__ = "usage"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[str] = Field(default=None, index=True)
    fingerprint: Optional[str] = Field(default=None, index=True)
    conversation_id: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=_now, index=True)


# Resolve forward references
JurisdictionRecord.model_rebuild()
RuleSetRecord.model_rebuild()
RuleRecord.model_rebuild()
ConversationRecord.model_rebuild()
