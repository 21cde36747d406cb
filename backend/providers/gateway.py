"""Provider gateway - one completion call, bounded fallback across backends."""

from __future__ import annotations

import logging

from backend.core.errors import (
    ProviderError,
    ProviderNotConfiguredError,
    ProviderUnavailableError,
)
from .backends import CompletionBackend, build_backends
from .config import ProviderConfig
from .schemas import Completion, ProviderName, ProviderStatus, ProviderTestResult, Turn

logger = logging.getLogger(__name__)


class ProviderGateway:
    """Uniform entry point to the configured completion backends.

    Without a provider hint the default provider is tried first, then the
    next configured members of the fallback chain, at most `max_fallbacks`
    of them and each at most once. With a hint only that provider is tried.
    """

    def __init__(
        self,
        config: ProviderConfig,
        backends: dict[ProviderName, CompletionBackend] | None = None,
    ):
        self.config = config
        self.backends = backends if backends is not None else build_backends(config)

    def available(self) -> list[ProviderName]:
        """Providers with a backend, in fallback order."""
        return [p for p in self.config.chain_for() if p in self.backends]

    def plan(self, provider: ProviderName | None = None) -> list[ProviderName]:
        """The providers a call would try, in order."""
        if provider is not None:
            return [provider]
        chain = [p for p in self.config.chain_for() if p in self.backends]
        limit = 1 + self.config.max_fallbacks if self.config.fallback_enabled else 1
        return chain[:limit]

    async def complete(
        self,
        turns: list[Turn],
        system_prompt: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
        provider: ProviderName | str | None = None,
        use_pro_model: bool = False,
    ) -> Completion:
        """Run one logical completion call.

        Raises:
            ProviderNotConfiguredError: The hinted provider has no backend, or
                no provider is configured at all.
            ProviderError: The only attempted provider failed (its own error).
            ProviderUnavailableError: Every attempted provider failed.
        """
        if provider is not None:
            provider = ProviderName(provider)
            if provider not in self.backends:
                raise ProviderNotConfiguredError(provider.value, "no credentials configured")

        attempts = self.plan(provider)
        if not attempts:
            raise ProviderNotConfiguredError("none", "no AI provider is configured")

        errors: list[ProviderError] = []
        for index, name in enumerate(attempts):
            try:
                completion = await self.backends[name].complete(
                    turns,
                    system_prompt=system_prompt,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    use_pro_model=use_pro_model,
                )
            except ProviderError as e:
                errors.append(e)
                if index + 1 < len(attempts):
                    logger.warning(
                        "Provider %s failed (%s), falling back to %s",
                        name.value, e.detail, attempts[index + 1].value,
                    )
                else:
                    logger.warning("Provider %s failed: %s", name.value, e.detail)
                continue

            if index > 0:
                completion = completion.model_copy(update={"fallback_used": True})
                logger.info("Fallback provider %s succeeded", name.value)
            return completion

        if len(errors) == 1:
            raise errors[0]
        raise ProviderUnavailableError(errors)

    def status(self) -> ProviderStatus:
        return ProviderStatus(
            primary=self.config.primary,
            fallback_enabled=self.config.fallback_enabled,
            fallback_chain=self.config.chain_for(),
            available=self.available(),
        )

    async def test_provider(self, provider: ProviderName | str) -> ProviderTestResult:
        """Send a minimal prompt to exactly one provider."""
        completion = await self.complete(
            [Turn(role="user", content="Reply with the single word OK.")],
            max_tokens=10,
            provider=provider,
        )
        return ProviderTestResult(
            provider=completion.provider, ok=True, tokens_used=completion.tokens_used
        )
