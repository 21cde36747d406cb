"""Exception hierarchy shared by every domain package.

Resolution misses (no jurisdiction, no category match) are not exceptions;
they are conversational outcomes. Everything here represents a genuine
inability to make progress on a turn or an evaluation.
"""

from __future__ import annotations


class ComplianceError(Exception):
    """Base class for all service errors."""


class InputValidationError(ComplianceError):
    """The request shape is invalid; raised before any state is touched."""


class ConversationNotFoundError(ComplianceError):
    """No conversation exists for the given identifier."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


class RuleConfigurationError(ComplianceError):
    """A rule's condition tree cannot be evaluated as authored."""

    def __init__(self, rule_key: str | None, detail: str):
        self.rule_key = rule_key
        self.detail = detail
        super().__init__(f"Rule '{rule_key or '?'}' is misconfigured: {detail}")


class RulesNotConfiguredError(ComplianceError):
    """No usable active rule set exists for a jurisdiction/category pair."""

    def __init__(self, jurisdiction: str, category: str, detail: str | None = None):
        self.jurisdiction = jurisdiction
        self.category = category
        message = f"No rules configured for {category} in {jurisdiction}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ProviderError(ComplianceError):
    """A single completion backend failed."""

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider} failed: {detail}")


class ProviderNotConfiguredError(ProviderError):
    """The requested provider has no credentials (or none is configured)."""


class ProviderUnavailableError(ProviderError):
    """Every provider attempted for a call failed."""

    def __init__(self, errors: list[ProviderError]):
        self.errors = errors
        tried = ", ".join(e.provider for e in errors) or "none"
        super().__init__("all", f"no provider succeeded (tried: {tried})")


class PersistenceError(ComplianceError):
    """A store read or write failed."""


class TurnCancelledError(ComplianceError):
    """The turn was aborted before completion; no state was persisted."""
