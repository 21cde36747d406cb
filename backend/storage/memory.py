"""In-memory store implementations for tests and local experiments."""

from __future__ import annotations

import uuid

from backend.conversation.schemas import ConversationState, Decision, utcnow
from backend.core.errors import ConversationNotFoundError
from backend.rules.loader import RuleSetDocument
from backend.rules.schema import Jurisdiction, RuleSet
from .base import ConversationStore, RuleSetStore


class InMemoryRuleSetStore(RuleSetStore):
    """Holds jurisdictions and rule sets in dictionaries."""

    def __init__(self):
        self._jurisdictions: dict[str, Jurisdiction] = {}
        self._rulesets: dict[tuple[str, str], RuleSet] = {}

    def add_jurisdiction(self, jurisdiction: Jurisdiction) -> None:
        self._jurisdictions[jurisdiction.display_name] = jurisdiction

    def add_ruleset(self, ruleset: RuleSet) -> None:
        """Store an active rule set, replacing the previous one for its pair."""
        if ruleset.is_active:
            self._rulesets[(ruleset.jurisdiction, ruleset.category)] = ruleset

    def add_document(self, document: RuleSetDocument) -> None:
        self.add_jurisdiction(document.jurisdiction)
        self.add_ruleset(document.to_ruleset())

    def find_jurisdiction(self, name: str) -> Jurisdiction | None:
        candidates = [j for j in self._jurisdictions.values() if j.matches(name)]
        return candidates[0] if len(candidates) == 1 else None

    def list_jurisdictions(self) -> list[Jurisdiction]:
        return sorted(self._jurisdictions.values(), key=lambda j: (j.state, j.name))

    def find_active_ruleset(self, jurisdiction: str, category: str) -> RuleSet | None:
        ruleset = self._rulesets.get((jurisdiction, category))
        return ruleset.model_copy(deep=True) if ruleset else None

    def list_active_rulesets(self, jurisdiction: str) -> list[RuleSet]:
        return [
            rs.model_copy(deep=True)
            for (name, _), rs in self._rulesets.items()
            if name == jurisdiction
        ]


class InMemoryConversationStore(ConversationStore):
    """Keeps conversations and decisions in process memory."""

    def __init__(self):
        self.conversations: dict[str, ConversationState] = {}
        self.decisions: list[Decision] = []

    def create_conversation(self, user_id=None, fingerprint=None) -> ConversationState:
        state = ConversationState(id=str(uuid.uuid4()), user_id=user_id, fingerprint=fingerprint)
        self.conversations[state.id] = state.model_copy(deep=True)
        return state

    def load_conversation(self, conversation_id: str) -> ConversationState | None:
        state = self.conversations.get(conversation_id)
        return state.model_copy(deep=True) if state else None

    def persist_turn(self, state, new_messages, decision=None) -> None:
        if state.id not in self.conversations:
            raise ConversationNotFoundError(state.id)
        # state.messages already ends with new_messages
        stored = state.model_copy(deep=True)
        stored.updated_at = utcnow()
        self.conversations[state.id] = stored
        if decision is not None:
            self.decisions.append(decision.model_copy(deep=True))
