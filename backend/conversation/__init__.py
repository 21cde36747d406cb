"""Conversation domain - the dialogue state machine and its turn contract.

The `/query` routes live in `backend.conversation.router`.
"""

from .schemas import (
    ConversationState,
    ConversationStatus,
    ConversationView,
    Decision,
    DialogueStage,
    Message,
    QueryRequest,
    QueryResponse,
    ResponseType,
    TurnResponse,
)
from .service import ConversationOrchestrator, format_result_message, merge_inputs

__all__ = [
    # Orchestrator
    "ConversationOrchestrator",
    "format_result_message",
    "merge_inputs",
    # State
    "ConversationState",
    "ConversationStatus",
    "DialogueStage",
    "Message",
    "Decision",
    # Turn contract
    "ResponseType",
    "TurnResponse",
    "QueryRequest",
    "QueryResponse",
    "ConversationView",
]
