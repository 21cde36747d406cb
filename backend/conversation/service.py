"""Conversation orchestrator - the dialogue state machine.

Each user message advances the conversation through

    need_jurisdiction -> need_category -> need_inputs -> completed

and every (stage, matcher result) pair has exactly one next step. A turn
works on a private copy of the state; the copy, the turn's two messages and
any decision record are persisted together once the turn has a response.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from backend.core.errors import (
    ConversationNotFoundError,
    InputValidationError,
    ProviderError,
    RuleConfigurationError,
    RulesNotConfiguredError,
    TurnCancelledError,
)
from backend.evaluation.service import EvaluationBridge
from backend.matcher.parsing import humanize
from backend.matcher.schemas import CategoryMatch, MatcherResult
from backend.matcher.service import IntentMatcher
from backend.rules.schema import RuleOutcome
from .schemas import (
    ConversationState,
    ConversationStatus,
    Decision,
    DialogueStage,
    Message,
    ResponseType,
    TurnResponse,
)

if TYPE_CHECKING:
    from backend.storage.base import ConversationStore

logger = logging.getLogger(__name__)


# =============================================================================
# Response Text
# =============================================================================

ASK_JURISDICTION = "What city or municipality are you located in?"
ASK_WHICH_MATCH = "I found a few possibilities. Which best matches your question?"
ASK_REPHRASE = "No problem. Could you rephrase your question with a little more detail?"
CONFIRM_OPTIONS = ["Yes", "No, something else"]

PROVIDER_FAILURE = "Sorry, I'm having trouble answering right now. Please try again in a moment."
EVALUATION_FAILURE = (
    "I encountered an error evaluating the rules. Please try again or contact support."
)
CONVERSATION_CLOSED = (
    "This conversation has ended. Please start a new conversation to ask another question."
)

OUTCOME_ICONS = {
    RuleOutcome.ALLOWED: "✅",
    RuleOutcome.PROHIBITED: "❌",
    RuleOutcome.CONDITIONAL: "⚠️",
    RuleOutcome.RESTRICTED: "⚠️",
}

AFFIRMATIVE = {"yes", "y", "yeah", "yep", "yup", "correct", "right", "sure", "yes please"}
NEGATIVE = {"no", "n", "nope", "no, something else", "something else", "neither"}


def no_rules_found(jurisdiction: str) -> str:
    return (
        f"I couldn't find any rules related to your question in {jurisdiction}. "
        "Could you rephrase or ask about a different topic?"
    )


def format_result_message(outcome: RuleOutcome, rationale: str) -> str:
    return f"{OUTCOME_ICONS.get(outcome, 'ℹ️')} **{outcome.value}**\n\n{rationale}"


def merge_inputs(
    collected: Mapping[str, Any], extracted: Mapping[str, Any], targets: list[str]
) -> dict[str, Any]:
    """Merge extracted values, accepting only fields the extraction targeted."""
    merged = dict(collected)
    for name, value in extracted.items():
        if name in targets:
            merged[name] = value
    return merged


# =============================================================================
# Orchestrator
# =============================================================================


@dataclass
class _Turn:
    """Scratch space for one turn: the working state and what it produced."""

    state: ConversationState
    messages: list[Message] = field(default_factory=list)
    provider: str | None = None
    tokens_used: int | None = None
    decision: Decision | None = None

    def record(self, result: MatcherResult) -> None:
        if result.provider is None:
            return
        self.provider = result.provider.value
        self.state.primary_provider = self.provider
        if result.fallback_used:
            self.state.fallback_used = True
        if result.tokens_used is not None:
            self.tokens_used = (self.tokens_used or 0) + result.tokens_used

    def add_message(self, message: Message) -> None:
        self.messages.append(message)
        self.state.messages.append(message)


class ConversationOrchestrator:
    """Drives one conversation turn at a time.

    Turns for the same conversation must be serialized by the caller; the
    orchestrator holds no per-conversation locks.
    """

    def __init__(
        self,
        matcher: IntentMatcher,
        bridge: EvaluationBridge,
        store: ConversationStore,
        auto_accept_threshold: float = 0.85,
        max_options: int = 3,
    ):
        self.matcher = matcher
        self.bridge = bridge
        self.store = store
        self.auto_accept_threshold = auto_accept_threshold
        self.max_options = max_options

    async def process_turn(
        self,
        message: str,
        conversation_id: str | None = None,
        user_id: str | None = None,
        fingerprint: str | None = None,
        timeout: float | None = None,
    ) -> TurnResponse:
        """Advance a conversation by one user message.

        Args:
            message: The user's text.
            conversation_id: Existing conversation; omitted on the first turn.
            user_id: Owning user, if authenticated.
            fingerprint: Anonymous caller identifier.
            timeout: Deadline in seconds for the whole turn.

        Raises:
            InputValidationError: Blank message; nothing is loaded or stored.
            ConversationNotFoundError: Unknown conversation id.
            TurnCancelledError: The deadline elapsed; nothing is persisted.
            PersistenceError: The turn could not be stored.
        """
        if not message or not message.strip():
            raise InputValidationError("message must not be blank")
        message = message.strip()

        if conversation_id:
            state = self.store.load_conversation(conversation_id)
            if state is None:
                raise ConversationNotFoundError(conversation_id)
        else:
            state = self.store.create_conversation(user_id=user_id, fingerprint=fingerprint)

        if state.is_closed:
            return TurnResponse(
                type=ResponseType.ERROR,
                text=CONVERSATION_CLOSED,
                conversation_id=state.id,
                stage=state.stage,
            )

        turn = _Turn(state=state.model_copy(deep=True))
        turn.add_message(Message(role="user", content=message))

        try:
            response = await asyncio.wait_for(self._advance(turn, message), timeout)
        except asyncio.TimeoutError:
            logger.warning("Turn on conversation %s exceeded %ss", state.id, timeout)
            raise TurnCancelledError(f"request cancelled after {timeout}s") from None
        except ProviderError as e:
            logger.warning("Turn on conversation %s failed: %s", state.id, e)
            return TurnResponse(
                type=ResponseType.ERROR,
                text=PROVIDER_FAILURE,
                conversation_id=state.id,
                stage=state.stage,
            )

        turn.add_message(Message(
            role="assistant",
            content=response.text,
            provider=turn.provider,
            tokens_used=turn.tokens_used,
        ))
        self.store.persist_turn(turn.state, turn.messages, turn.decision)

        response.conversation_id = state.id
        if response.stage is None:
            response.stage = turn.state.stage
        return response

    # =========================================================================
    # State Machine
    # =========================================================================

    async def _advance(self, turn: _Turn, message: str) -> TurnResponse:
        state = turn.state
        resolved_now = False

        if not state.jurisdiction:
            detection = await self.matcher.detect_jurisdiction(message)
            turn.record(detection)
            if detection.jurisdiction is None:
                return TurnResponse(type=ResponseType.QUESTION, text=ASK_JURISDICTION)
            state.jurisdiction = detection.jurisdiction
            resolved_now = True

        if not state.category:
            # A reply that only named the city is matched with the question before it
            question = "\n".join(state.user_messages()) if resolved_now else message
            return await self._resolve_category(turn, message, question)

        return await self._collect_inputs(turn, [message])

    async def _resolve_category(self, turn: _Turn, message: str, question: str) -> TurnResponse:
        state = turn.state

        if state.pending_matches:
            chosen, declined = self._resolve_pending(state.pending_matches, message)
            state.pending_matches = []
            if chosen is not None:
                return await self._accept(turn, chosen)
            if declined:
                return TurnResponse(type=ResponseType.QUESTION, text=ASK_REPHRASE)
            # Anything else is a new question

        try:
            result = await self.matcher.match_category(question, state.jurisdiction)
        except (RulesNotConfiguredError, RuleConfigurationError) as e:
            logger.error("Category matching failed for conversation %s: %s", state.id, e)
            return TurnResponse(
                type=ResponseType.ERROR, text=EVALUATION_FAILURE, stage=DialogueStage.ERROR
            )
        turn.record(result)
        matches = result.matches

        if not matches:
            return TurnResponse(type=ResponseType.ERROR, text=no_rules_found(state.jurisdiction))

        if len(matches) == 1 and matches[0].confidence > self.auto_accept_threshold:
            return await self._accept(turn, matches[0])

        if len(matches) > 1:
            state.pending_matches = matches[: self.max_options]
            return TurnResponse(
                type=ResponseType.CLARIFICATION,
                text=ASK_WHICH_MATCH,
                options=[m.canonical_question for m in state.pending_matches],
            )

        state.pending_matches = [matches[0]]
        topic = humanize(matches[0].subcategory or matches[0].category)
        return TurnResponse(
            type=ResponseType.CLARIFICATION,
            text=f"Are you asking about {topic}?",
            options=list(CONFIRM_OPTIONS),
        )

    @staticmethod
    def _resolve_pending(
        pending: list[CategoryMatch], message: str
    ) -> tuple[CategoryMatch | None, bool]:
        """Interpret a reply to offered candidates as (chosen, declined)."""
        reply = message.strip().lower().rstrip(".!?")

        if len(pending) == 1:
            if reply in AFFIRMATIVE:
                return pending[0], False
            if reply in NEGATIVE:
                return None, True

        if reply.isdigit():
            index = int(reply)
            if 1 <= index <= len(pending):
                return pending[index - 1], False

        for match in pending:
            names = {n.lower().rstrip(".!?") for n in match.names()}
            names.update(humanize(n) for n in (match.subcategory, match.category) if n)
            if reply in names:
                return match, False
        return None, False

    async def _accept(self, turn: _Turn, match: CategoryMatch) -> TurnResponse:
        state = turn.state
        state.category = match.category
        state.subcategory = match.subcategory
        state.required_inputs = list(match.required_inputs)
        state.pending_matches = []
        # Earlier messages may already answer some of the slots
        return await self._collect_inputs(turn, state.user_messages())

    async def _collect_inputs(self, turn: _Turn, messages: list[str]) -> TurnResponse:
        state = turn.state
        missing = state.missing_inputs()

        if missing:
            extraction = await self.matcher.extract_inputs(
                messages, missing, category=state.category, subcategory=state.subcategory
            )
            turn.record(extraction)
            state.inputs = merge_inputs(state.inputs, extraction.values, missing)
            missing = state.missing_inputs()

        if missing:
            clarifying = await self.matcher.generate_clarifying_question(
                missing[0],
                jurisdiction=state.jurisdiction,
                category=state.category,
                subcategory=state.subcategory,
                collected=state.inputs,
            )
            turn.record(clarifying)
            return TurnResponse(type=ResponseType.QUESTION, text=clarifying.question)

        return self._evaluate(turn)

    def _evaluate(self, turn: _Turn) -> TurnResponse:
        state = turn.state
        try:
            summary = self.bridge.evaluate(
                state.jurisdiction, state.category, state.subcategory, state.inputs
            )
        except (RulesNotConfiguredError, RuleConfigurationError) as e:
            logger.error("Evaluation failed for conversation %s: %s", state.id, e)
            return TurnResponse(
                type=ResponseType.ERROR, text=EVALUATION_FAILURE, stage=DialogueStage.ERROR
            )

        state.status = ConversationStatus.COMPLETED
        turn.decision = Decision(
            conversation_id=state.id,
            jurisdiction=summary.jurisdiction,
            category=summary.category,
            question_key=summary.question_key,
            inputs=dict(state.inputs),
            outcome=summary.outcome,
            rationale=summary.rationale,
            matched_rules=[r.key for r in summary.matched_rules],
            user_id=state.user_id,
            fingerprint=state.fingerprint,
        )
        return TurnResponse(
            type=ResponseType.RESULT,
            text=format_result_message(summary.outcome, summary.rationale),
            outcome=summary.outcome,
            rationale=summary.rationale,
            citations=summary.citations,
        )
