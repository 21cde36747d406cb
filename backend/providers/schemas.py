"""Provider gateway models."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class ProviderName(str, Enum):
    """Supported text-completion backends."""

    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


class Turn(BaseModel):
    """One conversational turn sent to a provider."""

    role: Literal["user", "assistant"]
    content: str


class Completion(BaseModel):
    """A provider response normalized to plain text plus usage."""

    text: str
    provider: ProviderName
    tokens_used: int | None = None
    fallback_used: bool = Field(
        default=False, description="True when a fallback provider produced the text"
    )


class ProviderStatus(BaseModel):
    """Configured providers and fallback order."""

    primary: ProviderName
    fallback_enabled: bool
    fallback_chain: list[ProviderName]
    available: list[ProviderName]


class ProviderTestResult(BaseModel):
    provider: ProviderName
    ok: bool
    tokens_used: int | None = None
