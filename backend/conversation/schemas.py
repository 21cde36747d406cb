"""Conversation state, transcript and turn request/response models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from backend.matcher.schemas import CategoryMatch
from backend.rules.schema import RuleOutcome


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================


class ConversationStatus(str, Enum):
    """Persisted lifecycle status. `abandoned` is only ever set externally."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class DialogueStage(str, Enum):
    """Where the dialogue state machine currently stands."""

    NEED_JURISDICTION = "need_jurisdiction"
    NEED_CATEGORY = "need_category"
    NEED_INPUTS = "need_inputs"
    COMPLETED = "completed"
    ERROR = "error"


class ResponseType(str, Enum):
    QUESTION = "question"
    CLARIFICATION = "clarification"
    RESULT = "result"
    ERROR = "error"


# =============================================================================
# State
# =============================================================================


class Message(BaseModel):
    """One transcript entry."""

    role: Literal["user", "assistant"]
    content: str
    provider: str | None = None
    tokens_used: int | None = None
    created_at: datetime = Field(default_factory=utcnow)


class ConversationState(BaseModel):
    """Everything the orchestrator knows about one conversation."""

    id: str
    user_id: str | None = None
    fingerprint: str | None = None

    jurisdiction: str | None = None
    category: str | None = None
    subcategory: str | None = None

    inputs: dict[str, Any] = Field(default_factory=dict)
    required_inputs: list[str] = Field(default_factory=list)
    pending_matches: list[CategoryMatch] = Field(
        default_factory=list,
        description="Candidates offered for selection (several) or confirmation (one)",
    )

    messages: list[Message] = Field(default_factory=list)
    status: ConversationStatus = ConversationStatus.ACTIVE

    primary_provider: str | None = None
    fallback_used: bool = False

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def missing_inputs(self) -> list[str]:
        """Required fields not yet collected, in required-list order."""
        return [name for name in self.required_inputs if name not in self.inputs]

    @property
    def stage(self) -> DialogueStage:
        if self.status == ConversationStatus.COMPLETED:
            return DialogueStage.COMPLETED
        if not self.jurisdiction:
            return DialogueStage.NEED_JURISDICTION
        if not self.category:
            return DialogueStage.NEED_CATEGORY
        return DialogueStage.NEED_INPUTS

    @property
    def is_closed(self) -> bool:
        return self.status != ConversationStatus.ACTIVE

    def user_messages(self) -> list[str]:
        return [m.content for m in self.messages if m.role == "user"]


class Decision(BaseModel):
    """Audit record of a completed evaluation."""

    conversation_id: str | None = None
    jurisdiction: str
    category: str
    question_key: str
    inputs: dict[str, Any]
    outcome: RuleOutcome
    rationale: str
    matched_rules: list[str] = Field(default_factory=list)
    user_id: str | None = None
    fingerprint: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# Turn Contract
# =============================================================================


class TurnResponse(BaseModel):
    """What the caller gets back for one user message."""

    type: ResponseType
    text: str
    options: list[str] | None = None
    outcome: RuleOutcome | None = None
    rationale: str | None = None
    citations: list[str] | None = None
    conversation_id: str | None = None
    stage: DialogueStage | None = None


class QueryRequest(BaseModel):
    """Request body for POST /query."""

    message: str = Field(..., description="The user's message")
    conversation_id: str | None = None
    user_id: str | None = None
    fingerprint: str | None = Field(None, description="Anonymous caller identifier")


class QueryResponse(TurnResponse):
    remaining_queries: int | None = None


class ConversationView(BaseModel):
    """Response body for GET /query/{conversation_id}."""

    id: str
    status: ConversationStatus
    stage: DialogueStage
    jurisdiction: str | None
    category: str | None
    subcategory: str | None
    inputs: dict[str, Any]
    missing_inputs: list[str]
    messages: list[Message]

    @classmethod
    def from_state(cls, state: ConversationState) -> ConversationView:
        return cls(
            id=state.id,
            status=state.status,
            stage=state.stage,
            jurisdiction=state.jurisdiction,
            category=state.category,
            subcategory=state.subcategory,
            inputs=state.inputs,
            missing_inputs=state.missing_inputs(),
            messages=state.messages,
        )
