"""Provider gateway domain - uniform text completion with fallback."""

from .backends import (
    AnthropicBackend,
    CompletionBackend,
    GeminiBackend,
    OpenAIBackend,
    build_backends,
)
from .config import DEFAULT_FALLBACK_ORDER, ModelPair, ProviderConfig
from .gateway import ProviderGateway
from .schemas import Completion, ProviderName, ProviderStatus, ProviderTestResult, Turn

__all__ = [
    # Gateway
    "ProviderGateway",
    "ProviderConfig",
    "ModelPair",
    "DEFAULT_FALLBACK_ORDER",
    # Backends
    "CompletionBackend",
    "GeminiBackend",
    "AnthropicBackend",
    "OpenAIBackend",
    "build_backends",
    # Schemas
    "ProviderName",
    "Turn",
    "Completion",
    "ProviderStatus",
    "ProviderTestResult",
]
