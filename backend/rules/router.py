"""Rules API routes - direct decisions and jurisdiction listing."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from backend.conversation.schemas import Decision
from backend.core.config import get_settings
from backend.core.errors import (
    PersistenceError,
    RuleConfigurationError,
    RulesNotConfiguredError,
)
from backend.evaluation.service import EvaluationBridge
from backend.storage.base import RuleSetStore
from backend.storage.sql import SqlConversationStore, get_conversation_store, get_rule_store
from .schemas import (
    DecisionRequest,
    DecisionResponse,
    JurisdictionInfo,
    JurisdictionListResponse,
)

decisions_router = APIRouter(prefix="/decisions", tags=["decisions"])
jurisdictions_router = APIRouter(prefix="/jurisdictions", tags=["jurisdictions"])


# =============================================================================
# Shared State
# =============================================================================

_bridge: EvaluationBridge | None = None


def get_bridge() -> EvaluationBridge:
    """Get or create the evaluation bridge over the SQL rule store."""
    global _bridge
    if _bridge is None:
        _bridge = EvaluationBridge(
            get_rule_store(), skip_invalid_rules=get_settings().skip_invalid_rules
        )
    return _bridge


def get_decision_store() -> SqlConversationStore:
    return get_conversation_store()


def get_store() -> RuleSetStore:
    return get_rule_store()


# =============================================================================
# Decision Endpoints
# =============================================================================


@decisions_router.post("", response_model=DecisionResponse)
async def decide(
    request: DecisionRequest,
    bridge: EvaluationBridge = Depends(get_bridge),
    decisions: SqlConversationStore = Depends(get_decision_store),
) -> DecisionResponse:
    """Evaluate explicit inputs against the active rule set.

    Bypasses the conversation entirely; the decision is still recorded.
    """
    try:
        summary = bridge.evaluate(
            request.jurisdiction, request.category, request.subcategory, request.inputs
        )
    except RulesNotConfiguredError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RuleConfigurationError:
        raise HTTPException(
            status_code=500,
            detail="Rules are unavailable for this jurisdiction and category",
        )
    except PersistenceError:
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable")

    try:
        decision_id = decisions.record_decision(Decision(
            jurisdiction=summary.jurisdiction,
            category=summary.category,
            question_key=summary.question_key,
            inputs=request.inputs,
            outcome=summary.outcome,
            rationale=summary.rationale,
            matched_rules=[r.key for r in summary.matched_rules],
        ))
    except PersistenceError:
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable")

    return DecisionResponse(decision_id=decision_id, result=summary)


# =============================================================================
# Jurisdiction Endpoints
# =============================================================================


@jurisdictions_router.get("", response_model=JurisdictionListResponse)
async def list_jurisdictions(
    store: RuleSetStore = Depends(get_store),
) -> JurisdictionListResponse:
    """List configured jurisdictions."""
    try:
        jurisdictions = store.list_jurisdictions()
    except PersistenceError:
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable")

    return JurisdictionListResponse(
        jurisdictions=[
            JurisdictionInfo(
                name=j.name,
                state=j.state,
                type=j.type,
                county=j.county,
                display_name=j.display_name,
            )
            for j in jurisdictions
        ],
        total=len(jurisdictions),
    )
