"""Core types for the provider gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ProviderName(str, Enum):
    """Canonical provider display names used as storage and aggregation keys."""

    OPENAI = "OpenAI"
    ANTHROPIC = "Anthropic"
    GOOGLE = "Google"
    PERPLEXITY = "Perplexity"
    MOCK = "Mock"


# Lowercased aliases → canonical name
_PROVIDER_ALIASES: dict[str, ProviderName] = {
    "openai": ProviderName.OPENAI,
    "chatgpt": ProviderName.OPENAI,
    "gpt": ProviderName.OPENAI,
    "anthropic": ProviderName.ANTHROPIC,
    "claude": ProviderName.ANTHROPIC,
    "google": ProviderName.GOOGLE,
    "gemini": ProviderName.GOOGLE,
    "perplexity": ProviderName.PERPLEXITY,
    "sonar": ProviderName.PERPLEXITY,
    "mock": ProviderName.MOCK,
}


def normalize_provider_name(name: str) -> str:
    """Map case/alias variants ("openai", "ChatGPT", "claude") to one canonical name.

    Unknown providers are returned stripped but otherwise untouched.
    """
    if not name:
        return ""
    cleaned = name.strip()
    canonical = _PROVIDER_ALIASES.get(cleaned.lower())
    return canonical.value if canonical else cleaned


def provider_key(name: str) -> str:
    """Lowercase key used to pick a legacy raw-response format ("openai", "google", ...)."""
    return normalize_provider_name(name).lower()


@dataclass
class ProviderCompletion:
    """What a provider integration hands back for one prompt.

    `raw` is the provider's JSON payload as received; its shape varies by
    provider and SDK version and is only interpreted by the citation extractor.
    """

    text: str = ""
    raw: dict[str, Any] = field(default_factory=dict)
    model: str = ""
