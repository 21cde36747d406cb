"""Store interfaces the decision pipeline reads from and writes to.

Any storage engine can back the pipeline by implementing these two
interfaces; `backend.storage.sql` and `backend.storage.memory` are the
bundled implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from backend.conversation.schemas import ConversationState, Decision, Message
from backend.rules.schema import Jurisdiction, RuleSet


class RuleSetStore(ABC):
    """Read-only access to jurisdictions and their active rule sets."""

    @abstractmethod
    def find_jurisdiction(self, name: str) -> Jurisdiction | None:
        """Resolve 'City, ST' (or an unambiguous bare city name), case-insensitively."""

    @abstractmethod
    def list_jurisdictions(self) -> list[Jurisdiction]:
        ...

    @abstractmethod
    def find_active_ruleset(self, jurisdiction: str, category: str) -> RuleSet | None:
        """The single active rule set for a resolved jurisdiction and category."""

    @abstractmethod
    def list_active_rulesets(self, jurisdiction: str) -> list[RuleSet]:
        ...


class ConversationStore(ABC):
    """Conversation state and transcript persistence."""

    @abstractmethod
    def create_conversation(
        self, user_id: str | None = None, fingerprint: str | None = None
    ) -> ConversationState:
        """Create an empty active conversation and return it with its new id."""

    @abstractmethod
    def load_conversation(self, conversation_id: str) -> ConversationState | None:
        ...

    @abstractmethod
    def persist_turn(
        self,
        state: ConversationState,
        new_messages: list[Message],
        decision: Decision | None = None,
    ) -> None:
        """Write the new state, the turn's messages and an optional decision atomically.

        `state.messages` already ends with `new_messages`; stores that keep
        the transcript separately only append the new entries.

        Raises:
            ConversationNotFoundError: The conversation was never created.
            PersistenceError: Nothing was written.
        """
