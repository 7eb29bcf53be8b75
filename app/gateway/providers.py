"""Provider integrations consumed by the analysis orchestrator.

Each integration wraps one vendor SDK and returns a ProviderCompletion. The
vendor call mechanics live outside this service; only the contract and a
deterministic MockProvider are defined here.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod

from app.core.config import Settings
from app.gateway.types import ProviderCompletion, ProviderName, normalize_provider_name

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """Base class for all provider integrations."""

    name: str = ""
    model: str = ""

    @abstractmethod
    async def complete(self, prompt: str, use_web_search: bool = True) -> ProviderCompletion | None:
        """Answer a prompt. Returns None when the provider is not usable (e.g. not configured)."""
        ...


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------

_MOCK_PUBLISHERS = [
    ("g2.com", "Best Software Platforms Compared"),
    ("capterra.com", "Top Rated Tools by Verified Users"),
    ("techcrunch.com", "The Tools Teams Are Switching To"),
    ("forbes.com", "Enterprise Buyers Guide"),
    ("reddit.com", "What do you use and why?"),
]


class MockProvider(BaseProvider):
    """Deterministic stand-in used in demos, tests and mock mode.

    Produces a ranked list naming the given companies and an SDK-style
    `sources` payload so the citation pipeline has something to parse.
    """

    model = "mock-1"

    def __init__(
        self,
        companies: list[str],
        name: str = ProviderName.MOCK.value,
        seed: int | None = None,
    ):
        self.name = name
        self.companies = [c for c in companies if c]
        self._rng = random.Random(seed)

    async def complete(self, prompt: str, use_web_search: bool = True) -> ProviderCompletion:
        ranked = list(self.companies)
        self._rng.shuffle(ranked)
        lines = [f"{idx}. {company} is a solid option." for idx, company in enumerate(ranked, start=1)]
        text = "Here is how the main options compare:\n\n" + "\n".join(lines)

        raw: dict = {"choices": [{"message": {"content": text}}]}
        if use_web_search:
            picked = self._rng.sample(_MOCK_PUBLISHERS, k=min(3, len(_MOCK_PUBLISHERS)))
            raw["sources"] = [
                {
                    "sourceType": "url",
                    "url": f"https://{domain}/review-{idx + 1}",
                    "title": f"{title}: {ranked[idx % len(ranked)]}" if ranked else title,
                }
                for idx, (domain, title) in enumerate(picked)
            ]

        return ProviderCompletion(text=text, raw=raw, model=self.model)


def get_configured_providers(settings: Settings) -> list[str]:
    """Names of providers whose API keys are present in settings."""
    keys = {
        ProviderName.OPENAI: settings.openai_api_key,
        ProviderName.ANTHROPIC: settings.anthropic_api_key,
        ProviderName.GOOGLE: settings.google_ai_api_key,
        ProviderName.PERPLEXITY: settings.perplexity_api_key,
    }
    return [provider.value for provider, key in keys.items() if key]


# Provider integrations register here under their canonical name
PROVIDER_REGISTRY: dict[str, type[BaseProvider]] = {}


def build_providers(
    settings: Settings,
    companies: list[str],
    requested: list[str] | None = None,
) -> list[BaseProvider]:
    """Instantiate the providers for one run, falling back to a MockProvider.

    Mock mode, no configured keys, or no registered integration for any
    configured name all yield a single MockProvider.
    """
    if settings.use_mock_mode:
        return [MockProvider(companies, seed=settings.sample_citation_seed)]

    names = get_configured_providers(settings)
    if requested:
        wanted = {normalize_provider_name(n) for n in requested}
        names = [n for n in names if n in wanted]

    providers: list[BaseProvider] = []
    for name in names:
        provider_cls = PROVIDER_REGISTRY.get(name)
        if provider_cls is None:
            logger.warning("Provider %s is configured but has no registered integration", name)
            continue
        providers.append(provider_cls())

    if not providers:
        logger.warning("No usable providers, running in mock mode")
        return [MockProvider(companies, seed=settings.sample_citation_seed)]
    return providers
