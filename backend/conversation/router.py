"""Conversation routes - one user message in, one turn response out."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from backend.core.config import get_settings
from backend.core.errors import (
    ConversationNotFoundError,
    InputValidationError,
    PersistenceError,
    TurnCancelledError,
)
from backend.evaluation.service import EvaluationBridge
from backend.matcher.service import IntentMatcher
from backend.providers.router import get_gateway
from backend.storage.base import ConversationStore
from backend.storage.sql import get_conversation_store, get_rule_store
from backend.usage.schemas import CallerIdentity
from backend.usage.service import UsageLimiter
from .schemas import ConversationView, QueryRequest, QueryResponse, ResponseType
from .service import ConversationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/query", tags=["query"])


# =============================================================================
# Shared State
# =============================================================================

_orchestrator: ConversationOrchestrator | None = None
_limiter: UsageLimiter | None = None


def get_orchestrator() -> ConversationOrchestrator:
    """Get or create the orchestrator wired to the SQL stores and gateway."""
    global _orchestrator
    if _orchestrator is None:
        settings = get_settings()
        rule_store = get_rule_store()
        _orchestrator = ConversationOrchestrator(
            matcher=IntentMatcher(get_gateway(), rule_store),
            bridge=EvaluationBridge(rule_store, skip_invalid_rules=settings.skip_invalid_rules),
            store=get_conversation_store(),
            auto_accept_threshold=settings.auto_accept_confidence,
        )
    return _orchestrator


def get_limiter() -> UsageLimiter:
    """Get or create the usage limiter."""
    global _limiter
    if _limiter is None:
        _limiter = UsageLimiter(get_settings().free_query_limit)
    return _limiter


def get_store() -> ConversationStore:
    return get_conversation_store()


# =============================================================================
# Endpoints
# =============================================================================


@router.post("", response_model=QueryResponse)
async def query(
    request: QueryRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
    limiter: UsageLimiter = Depends(get_limiter),
) -> QueryResponse:
    """Process one user message.

    The caller's quota is checked first; one query is charged only when the
    turn produces a result.
    """
    identity = CallerIdentity(user_id=request.user_id, fingerprint=request.fingerprint)

    try:
        usage = limiter.check_allowed(identity)
        if not usage.allowed:
            raise HTTPException(
                status_code=402,
                detail={
                    "message": usage.paywall_message(),
                    "remaining": usage.remaining,
                    "limit": usage.limit,
                    "requires_auth": usage.requires_auth,
                },
            )

        response = await orchestrator.process_turn(
            request.message,
            conversation_id=request.conversation_id,
            user_id=request.user_id,
            fingerprint=request.fingerprint,
            timeout=get_settings().turn_timeout_seconds,
        )

        remaining = usage.remaining
        if response.type == ResponseType.RESULT:
            limiter.consume_one(identity, conversation_id=response.conversation_id)
            remaining = max(0, remaining - 1)
    except InputValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TurnCancelledError:
        raise HTTPException(status_code=504, detail="Request cancelled")
    except PersistenceError:
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable")

    return QueryResponse(**response.model_dump(), remaining_queries=remaining)


@router.get("/{conversation_id}", response_model=ConversationView)
async def get_conversation(
    conversation_id: str,
    store: ConversationStore = Depends(get_store),
) -> ConversationView:
    """Return a conversation's transcript and status."""
    try:
        state = store.load_conversation(conversation_id)
    except PersistenceError:
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable")
    if state is None:
        raise HTTPException(status_code=404, detail=f"Conversation not found: {conversation_id}")
    return ConversationView.from_state(state)
