"""Immutable provider configuration resolved once at startup."""

from __future__ import annotations

from dataclasses import dataclass, field

from backend.core.config import Settings
from .schemas import ProviderName

# Fallback priority: gemini -> anthropic -> openai
DEFAULT_FALLBACK_ORDER: tuple[ProviderName, ...] = (
    ProviderName.GEMINI,
    ProviderName.ANTHROPIC,
    ProviderName.OPENAI,
)


@dataclass(frozen=True)
class ModelPair:
    """Fast and pro model names for one provider."""

    fast: str
    pro: str


DEFAULT_MODELS: dict[ProviderName, ModelPair] = {
    ProviderName.GEMINI: ModelPair("gemini-2.0-flash", "gemini-1.5-pro"),
    ProviderName.ANTHROPIC: ModelPair("claude-3-5-haiku-latest", "claude-sonnet-4-20250514"),
    ProviderName.OPENAI: ModelPair("gpt-4o-mini", "gpt-4o"),
}


@dataclass(frozen=True)
class ProviderConfig:
    """Available backends, credentials and fallback order.

    The fallback chain is independent of which providers have credentials;
    members without a key are skipped when a call is made.
    """

    primary: ProviderName = ProviderName.GEMINI
    fallback_enabled: bool = True
    max_fallbacks: int = 1
    fallback_order: tuple[ProviderName, ...] = DEFAULT_FALLBACK_ORDER
    api_keys: dict[ProviderName, str] = field(default_factory=dict)
    models: dict[ProviderName, ModelPair] = field(default_factory=lambda: dict(DEFAULT_MODELS))
    request_timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> ProviderConfig:
        keys = {
            ProviderName.GEMINI: settings.gemini_api_key,
            ProviderName.ANTHROPIC: settings.anthropic_api_key,
            ProviderName.OPENAI: settings.openai_api_key,
        }
        return cls(
            primary=ProviderName(settings.ai_primary_provider.lower()),
            fallback_enabled=settings.ai_fallback_enabled,
            max_fallbacks=max(0, settings.ai_max_fallbacks),
            api_keys={name: key for name, key in keys.items() if key},
            models={
                ProviderName.GEMINI: ModelPair(settings.gemini_model_fast, settings.gemini_model_pro),
                ProviderName.ANTHROPIC: ModelPair(
                    settings.anthropic_model_fast, settings.anthropic_model_pro
                ),
                ProviderName.OPENAI: ModelPair(settings.openai_model_fast, settings.openai_model_pro),
            },
            request_timeout=settings.ai_request_timeout,
        )

    def is_configured(self, provider: ProviderName) -> bool:
        return bool(self.api_keys.get(provider))

    def configured_providers(self) -> list[ProviderName]:
        return [p for p in self.fallback_order if self.is_configured(p)]

    def chain_for(self, primary: ProviderName | None = None) -> list[ProviderName]:
        """The full fallback chain starting at `primary`, each provider once."""
        primary = primary or self.primary
        return [primary] + [p for p in self.fallback_order if p != primary]

    def model_for(self, provider: ProviderName, use_pro_model: bool = False) -> str:
        pair = self.models.get(provider, DEFAULT_MODELS[provider])
        return pair.pro if use_pro_model else pair.fast
