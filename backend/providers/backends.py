"""Text-completion backends.

Each backend hides its SDK's request and response shapes behind the same
`complete()` contract and reports every failure (SDK exception, empty or
blocked response) as a `ProviderError`.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import requests

from backend.core.errors import ProviderError
from .config import ProviderConfig
from .schemas import Completion, ProviderName, Turn

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class CompletionBackend(ABC):
    """Abstract base class for completion backends."""

    name: ProviderName

    @abstractmethod
    async def complete(
        self,
        turns: list[Turn],
        system_prompt: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
        use_pro_model: bool = False,
    ) -> Completion:
        """Return the completion text and token usage."""

    def _fail(self, detail: str) -> ProviderError:
        return ProviderError(self.name.value, detail)


# =============================================================================
# Gemini (REST)
# =============================================================================


class GeminiBackend(CompletionBackend):
    """Google Gemini via the generateContent REST endpoint."""

    name = ProviderName.GEMINI

    def __init__(self, config: ProviderConfig, session: requests.Session | None = None):
        self.api_key = config.api_keys[self.name]
        self.config = config
        self._session = session or requests.Session()

    async def complete(self, turns, system_prompt=None, temperature=0.0, max_tokens=1024,
                       use_pro_model=False) -> Completion:
        model = self.config.model_for(self.name, use_pro_model)
        payload: dict[str, Any] = {
            "contents": [
                {
                    "role": "model" if turn.role == "assistant" else "user",
                    "parts": [{"text": turn.content}],
                }
                for turn in turns
            ],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        try:
            response = await asyncio.to_thread(
                self._session.post,
                f"{GEMINI_API_BASE}/models/{model}:generateContent",
                json=payload,
                headers={"x-goog-api-key": self.api_key},
                timeout=self.config.request_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise self._fail(str(e)) from e

        try:
            return self._parse(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise self._fail(f"malformed response: {e}") from e

    def _parse(self, data: dict[str, Any]) -> Completion:
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise self._fail(f"prompt blocked ({block_reason})")

        candidates = data.get("candidates") or []
        if not candidates:
            raise self._fail("response contained no candidates")
        candidate = candidates[0]
        if candidate.get("finishReason") in ("SAFETY", "RECITATION", "BLOCKLIST"):
            raise self._fail(f"response blocked ({candidate['finishReason']})")

        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text") or "" for part in parts)
        if not text.strip():
            raise self._fail("empty response")

        usage = data.get("usageMetadata") or {}
        return Completion(text=text, provider=self.name, tokens_used=usage.get("totalTokenCount"))


# =============================================================================
# Anthropic
# =============================================================================


class AnthropicBackend(CompletionBackend):
    """Anthropic Messages API (Claude models)."""

    name = ProviderName.ANTHROPIC

    def __init__(self, config: ProviderConfig):
        from anthropic import AsyncAnthropic

        self.config = config
        # Retries are the gateway's job
        self._client = AsyncAnthropic(
            api_key=config.api_keys[self.name],
            timeout=config.request_timeout,
            max_retries=0,
        )

    async def complete(self, turns, system_prompt=None, temperature=0.0, max_tokens=1024,
                       use_pro_model=False) -> Completion:
        kwargs: dict[str, Any] = {
            "model": self.config.model_for(self.name, use_pro_model),
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": turn.role, "content": turn.content} for turn in turns],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as e:
            raise self._fail(str(e)) from e

        try:
            return self._parse(response)
        except (AttributeError, TypeError, ValueError) as e:
            raise self._fail(f"malformed response: {e}") from e

    def _parse(self, response: Any) -> Completion:
        # Extract text from content blocks
        text = "".join(
            block.text or "" for block in response.content
            if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            raise self._fail(f"no text content (stop_reason={response.stop_reason})")

        usage = response.usage
        return Completion(
            text=text,
            provider=self.name,
            tokens_used=usage.input_tokens + usage.output_tokens if usage else None,
        )


# =============================================================================
# OpenAI
# =============================================================================


class OpenAIBackend(CompletionBackend):
    """OpenAI Chat Completions API."""

    name = ProviderName.OPENAI

    def __init__(self, config: ProviderConfig):
        from openai import AsyncOpenAI

        self.config = config
        self._client = AsyncOpenAI(
            api_key=config.api_keys[self.name],
            timeout=config.request_timeout,
            max_retries=0,
        )

    async def complete(self, turns, system_prompt=None, temperature=0.0, max_tokens=1024,
                       use_pro_model=False) -> Completion:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.extend({"role": turn.role, "content": turn.content} for turn in turns)

        try:
            response = await self._client.chat.completions.create(
                model=self.config.model_for(self.name, use_pro_model),
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            raise self._fail(str(e)) from e

        try:
            return self._parse(response)
        except (AttributeError, IndexError, TypeError, ValueError) as e:
            raise self._fail(f"malformed response: {e}") from e

    def _parse(self, response: Any) -> Completion:
        if not response.choices:
            raise self._fail("response contained no choices")
        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise self._fail("response blocked (content_filter)")
        text = choice.message.content or ""
        if not text.strip():
            raise self._fail("empty response")

        return Completion(
            text=text,
            provider=self.name,
            tokens_used=response.usage.total_tokens if response.usage else None,
        )


_BACKEND_TYPES: dict[ProviderName, type[CompletionBackend]] = {
    ProviderName.GEMINI: GeminiBackend,
    ProviderName.ANTHROPIC: AnthropicBackend,
    ProviderName.OPENAI: OpenAIBackend,
}


def build_backends(config: ProviderConfig) -> dict[ProviderName, CompletionBackend]:
    """Instantiate a backend for every provider that has credentials."""
    backends: dict[ProviderName, CompletionBackend] = {}
    for name in config.configured_providers():
        backends[name] = _BACKEND_TYPES[name](config)
        logger.info("Provider %s configured (model %s)", name.value, config.model_for(name))
    return backends
