"""Core package - Shared configuration, database, logging, and errors."""

from .config import Settings, get_settings
from .database import (
    get_db_path,
    set_db_path,
    get_engine,
    reset_engine,
    get_session,
    init_db,
    reset_db,
)
from .errors import (
    ComplianceError,
    InputValidationError,
    ConversationNotFoundError,
    RuleConfigurationError,
    RulesNotConfiguredError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderUnavailableError,
    PersistenceError,
    TurnCancelledError,
)
from .logging_config import configure_logging

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "configure_logging",
    # Database
    "get_db_path",
    "set_db_path",
    "get_engine",
    "reset_engine",
    "get_session",
    "init_db",
    "reset_db",
    # Errors
    "ComplianceError",
    "InputValidationError",
    "ConversationNotFoundError",
    "RuleConfigurationError",
    "RulesNotConfiguredError",
    "ProviderError",
    "ProviderNotConfiguredError",
    "ProviderUnavailableError",
    "PersistenceError",
    "TurnCancelledError",
]
