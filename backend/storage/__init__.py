"""Storage domain - store interfaces, SQL and in-memory implementations."""

from .base import ConversationStore, RuleSetStore
from .memory import InMemoryConversationStore, InMemoryRuleSetStore
from .migration import DEFAULT_RULES_DIR, import_rulesets, seed_from_directory
from .sql import (
    SqlConversationStore,
    SqlRuleSetStore,
    get_conversation_store,
    get_rule_store,
)

__all__ = [
    # Interfaces
    "RuleSetStore",
    "ConversationStore",
    # SQL
    "SqlRuleSetStore",
    "SqlConversationStore",
    "get_rule_store",
    "get_conversation_store",
    # In-memory
    "InMemoryRuleSetStore",
    "InMemoryConversationStore",
    # Migration
    "DEFAULT_RULES_DIR",
    "import_rulesets",
    "seed_from_directory",
]
