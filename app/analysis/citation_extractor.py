"""Citation Extractor: normalizes provider citation metadata into Citation objects.

Provider responses carry citations in several unrelated shapes. Each shape is
modeled as one ResponseFormat variant; the variants present in a payload are
tried in priority order and extraction stops at the first variant that yields
at least one citation:

  1. SourcesFormat           : SDK `sources` list (sourceType == "url")
  2. ToolResultsFormat       : `toolResults` of a web-search tool
  3. StepsFormat             : `steps[].toolResults` (multi-step tool use)
  4. ProviderMetadataFormat  : `providerMetadata` (Google grounding, Anthropic citations)
  5. Legacy provider formats : raw vendor payloads, chosen by provider name
  6. UnrecognizedFormat      : nothing usable

When nothing is found, callers fall back to labeled synthetic citations
(see generate_sample_citations).
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from app.analysis.mention_detector import detect_mentions, enhance_citations_with_mentions
from app.analysis.types import Citation, CitationConfidence
from app.gateway.types import provider_key

logger = logging.getLogger(__name__)

# Redirect hosts used internally by search grounding; never real sources
_PROXY_HOSTS = ("vertexaisearch.cloud.google.com",)


def extract_domain(url: str) -> str:
    """Hostname without a leading www.; the input itself when it is not a URL."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return url
    if not hostname:
        return url
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def _is_citable_url(url: str) -> bool:
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    return not any(parsed.hostname.endswith(host) for host in _PROXY_HOSTS)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _dicts(value: Any) -> list[dict]:
    """Only the dict items of a list; anything else is treated as empty."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


@dataclass
class _Context:
    brand_name: str
    competitors: list[str]


def _build_citation(
    ctx: _Context,
    url: Any,
    title: Any = None,
    snippet: Any = None,
    source: Any = None,
    date: Any = None,
    position: int | None = None,
) -> Citation | None:
    """Create a Citation from loosely-typed fields, or None if the URL is unusable."""
    url = _text(url).strip()
    if not _is_citable_url(url):
        return None

    title = _text(title)
    snippet = _text(snippet)
    content = " ".join(part for part in (title, snippet) if part)

    return Citation(
        url=url,
        title=title,
        snippet=snippet,
        source=_text(source) or extract_domain(url),
        date=_text(date) or None,
        position=position,
        mentioned_companies=detect_mentions(content, ctx.brand_name, ctx.competitors),
    )


def _collect(items: list[Citation | None]) -> list[Citation]:
    return [c for c in items if c is not None]


# ---------------------------------------------------------------------------
# Response formats
# ---------------------------------------------------------------------------


class ResponseFormat(ABC):
    """One recognized citation-bearing shape of a raw provider response."""

    name: str = ""

    @abstractmethod
    def extract(self, ctx: _Context) -> list[Citation]: ...


@dataclass
class SourcesFormat(ResponseFormat):
    sources: list[dict] = field(default_factory=list)
    name: str = "sources"

    def extract(self, ctx: _Context) -> list[Citation]:
        return _collect(
            [
                _build_citation(
                    ctx,
                    url=src.get("url"),
                    title=src.get("title"),
                    snippet=src.get("snippet") or src.get("text"),
                    position=idx,
                )
                for idx, src in enumerate(self.sources)
                if src.get("sourceType", "url") == "url"
            ]
        )


def _is_search_tool(tool_result: dict) -> bool:
    tool_name = _text(tool_result.get("toolName"))
    return tool_name == "web_search" or "search" in tool_name


def _citations_from_tool_result(ctx: _Context, tool_result: dict) -> list[Citation]:
    result = tool_result.get("result", tool_result.get("output"))
    items: list[Citation | None] = []

    if isinstance(result, list):
        # Web search tools that return bare result lists
        for idx, item in enumerate(_dicts(result)):
            items.append(
                _build_citation(
                    ctx,
                    url=item.get("url"),
                    title=item.get("title"),
                    snippet=item.get("snippet") or item.get("content"),
                    date=item.get("page_age") or item.get("date"),
                    position=idx,
                )
            )
        return _collect(items)

    if not isinstance(result, dict):
        return []

    for citation in _dicts(result.get("citations")):
        items.append(
            _build_citation(
                ctx,
                url=citation.get("url"),
                title=citation.get("title") or citation.get("document_title"),
                snippet=citation.get("cited_text") or citation.get("snippet"),
                source=citation.get("source"),
            )
        )

    for idx, search_result in enumerate(_dicts(result.get("search_results"))):
        items.append(
            _build_citation(
                ctx,
                url=search_result.get("url"),
                title=search_result.get("title"),
                snippet=search_result.get("snippet") or search_result.get("content"),
                source=search_result.get("source"),
                position=idx,
            )
        )

    return _collect(items)


@dataclass
class ToolResultsFormat(ResponseFormat):
    tool_results: list[dict] = field(default_factory=list)
    name: str = "tool_results"

    def extract(self, ctx: _Context) -> list[Citation]:
        citations: list[Citation] = []
        for tool_result in self.tool_results:
            if _is_search_tool(tool_result):
                citations.extend(_citations_from_tool_result(ctx, tool_result))
        return citations


@dataclass
class StepsFormat(ResponseFormat):
    steps: list[dict] = field(default_factory=list)
    name: str = "steps"

    def extract(self, ctx: _Context) -> list[Citation]:
        citations: list[Citation] = []
        for step in self.steps:
            citations.extend(ToolResultsFormat(_dicts(step.get("toolResults"))).extract(ctx))
        return citations


def _grounding_citations(ctx: _Context, grounding_metadata: Any) -> list[Citation]:
    if not isinstance(grounding_metadata, dict):
        return []
    items: list[Citation | None] = []
    for idx, chunk in enumerate(_dicts(grounding_metadata.get("groundingChunks"))):
        web = chunk.get("web")
        if isinstance(web, dict):
            items.append(_build_citation(ctx, url=web.get("uri"), title=web.get("title"), position=idx))
    return _collect(items)


def _anthropic_citations(ctx: _Context, citations: Any) -> list[Citation]:
    return _collect(
        [
            _build_citation(
                ctx,
                url=citation.get("url"),
                title=citation.get("title") or citation.get("document_title"),
                snippet=citation.get("cited_text"),
            )
            for citation in _dicts(citations)
        ]
    )


@dataclass
class ProviderMetadataFormat(ResponseFormat):
    metadata: dict = field(default_factory=dict)
    name: str = "provider_metadata"

    def extract(self, ctx: _Context) -> list[Citation]:
        citations: list[Citation] = []
        google = self.metadata.get("google")
        if isinstance(google, dict):
            citations.extend(_grounding_citations(ctx, google.get("groundingMetadata")))
        anthropic = self.metadata.get("anthropic")
        if isinstance(anthropic, dict):
            citations.extend(_anthropic_citations(ctx, anthropic.get("citations")))
        return citations


@dataclass
class AnthropicContentFormat(ResponseFormat):
    """Messages API: text content blocks with `citations`."""

    content: list[dict] = field(default_factory=list)
    name: str = "anthropic_content"

    def extract(self, ctx: _Context) -> list[Citation]:
        citations: list[Citation] = []
        for block in self.content:
            if block.get("type") == "text":
                citations.extend(_anthropic_citations(ctx, block.get("citations")))
        return citations


@dataclass
class GoogleGroundingFormat(ResponseFormat):
    """generateContent: groundingMetadata at the top level or on the first candidate."""

    grounding_metadata: dict = field(default_factory=dict)
    name: str = "google_grounding"

    def extract(self, ctx: _Context) -> list[Citation]:
        return _grounding_citations(ctx, self.grounding_metadata)


@dataclass
class OpenAIAnnotationsFormat(ResponseFormat):
    """Chat completions message with url_citation annotations."""

    message: dict = field(default_factory=dict)
    name: str = "openai_annotations"

    def extract(self, ctx: _Context) -> list[Citation]:
        items: list[Citation | None] = []
        content = self.message.get("content")

        # Structured content: [{"type": "output_text", "text": ..., "annotations": [...]}]
        for part in _dicts(content):
            if part.get("type") != "output_text":
                continue
            text = _text(part.get("text"))
            for annotation in _dicts(part.get("annotations")):
                if annotation.get("type") == "url_citation":
                    items.append(self._from_annotation(ctx, annotation, text))

        # Flat content string with message-level annotations
        text = _text(content)
        for annotation in _dicts(self.message.get("annotations")):
            if annotation.get("type") != "url_citation":
                continue
            nested = annotation.get("url_citation")
            items.append(self._from_annotation(ctx, nested if isinstance(nested, dict) else annotation, text))

        return _collect(items)

    @staticmethod
    def _from_annotation(ctx: _Context, annotation: dict, text: str) -> Citation | None:
        start = annotation.get("start_index")
        end = annotation.get("end_index")
        snippet = text[start:end] if isinstance(start, int) and isinstance(end, int) else ""
        return _build_citation(ctx, url=annotation.get("url"), title=annotation.get("title"), snippet=snippet)


@dataclass
class PerplexitySearchResultsFormat(ResponseFormat):
    """Chat completions with `search_results` (or the older bare `citations` URL list)."""

    search_results: list[dict] = field(default_factory=list)
    citation_urls: list[str] = field(default_factory=list)
    name: str = "perplexity_search_results"

    def extract(self, ctx: _Context) -> list[Citation]:
        items: list[Citation | None] = [
            _build_citation(
                ctx,
                url=result.get("url"),
                title=result.get("title"),
                source=result.get("title"),
                date=result.get("date"),
                position=idx,
            )
            for idx, result in enumerate(self.search_results)
        ]
        if not self.search_results:
            items = [_build_citation(ctx, url=url, position=idx) for idx, url in enumerate(self.citation_urls)]
        return _collect(items)


@dataclass
class UnrecognizedFormat(ResponseFormat):
    name: str = "unrecognized"

    def extract(self, ctx: _Context) -> list[Citation]:
        return []


# ---------------------------------------------------------------------------
# Format detection
# ---------------------------------------------------------------------------


def _legacy_format(provider: str, raw: dict) -> ResponseFormat | None:
    key = provider_key(provider)

    if key == "anthropic":
        content = _dicts(raw.get("content"))
        if content:
            return AnthropicContentFormat(content)

    elif key == "google":
        grounding = raw.get("groundingMetadata")
        if not isinstance(grounding, dict):
            candidates = _dicts(raw.get("candidates"))
            grounding = candidates[0].get("groundingMetadata") if candidates else None
        if isinstance(grounding, dict):
            return GoogleGroundingFormat(grounding)

    elif key == "openai":
        choices = _dicts(raw.get("choices"))
        message = choices[0].get("message") if choices else None
        if isinstance(message, dict):
            return OpenAIAnnotationsFormat(message)

    elif key == "perplexity":
        search_results = _dicts(raw.get("search_results"))
        citations = raw.get("citations")
        urls = [u for u in citations if isinstance(u, str)] if isinstance(citations, list) else []
        if search_results or urls:
            return PerplexitySearchResultsFormat(search_results, urls)

    return None


def detect_response_formats(provider: str, raw: Any) -> list[ResponseFormat]:
    """All citation-bearing formats present in a raw response, in priority order."""
    if not isinstance(raw, dict):
        return [UnrecognizedFormat()]

    formats: list[ResponseFormat] = []

    sources = _dicts(raw.get("sources"))
    if sources:
        formats.append(SourcesFormat(sources))

    tool_results = _dicts(raw.get("toolResults"))
    if tool_results:
        formats.append(ToolResultsFormat(tool_results))

    steps = _dicts(raw.get("steps"))
    if steps:
        formats.append(StepsFormat(steps))

    metadata = raw.get("providerMetadata") or raw.get("experimental_providerMetadata")
    if isinstance(metadata, dict) and metadata:
        formats.append(ProviderMetadataFormat(metadata))

    legacy = _legacy_format(provider, raw)
    if legacy is not None:
        formats.append(legacy)

    return formats or [UnrecognizedFormat()]


def extract_citations_from_response(
    provider: str,
    raw: Any,
    brand_name: str,
    competitors: list[str],
) -> list[Citation]:
    """Extract normalized citations from one provider response.

    Never raises: any failure is logged and reported as "no citations".
    """
    ctx = _Context(brand_name=brand_name, competitors=list(competitors or []))
    try:
        for fmt in detect_response_formats(provider, raw):
            citations = fmt.extract(ctx)
            if citations:
                logger.debug("Extracted %d citations from %s via %s", len(citations), provider, fmt.name)
                return citations
    except Exception:
        logger.exception("Citation extraction failed for provider %s", provider)
    return []


# ---------------------------------------------------------------------------
# Synthetic fallback
# ---------------------------------------------------------------------------

SAMPLE_SOURCES: list[tuple[str, str]] = [
    ("techcrunch.com", "Best SaaS Tools for 2024"),
    ("g2.com", "Top Software Platforms Comparison"),
    ("capterra.com", "User Reviews and Ratings"),
    ("producthunt.com", "Featured Products This Month"),
    ("forbes.com", "Enterprise Software Guide"),
    ("venturebeat.com", "Startup Tools Overview"),
    ("medium.com", "Developer Tools Review"),
    ("reddit.com", "r/SaaS Discussion Thread"),
    ("stackoverflow.com", "Community Recommendations"),
    ("hackernews.com", "Tech News Discussion"),
]

SAMPLE_DOMAINS = frozenset(domain for domain, _ in SAMPLE_SOURCES)


def generate_sample_citations(
    brand_name: str,
    competitors: list[str],
    provider: str,
    seed: int | None = None,
) -> list[Citation]:
    """Generate 2–4 placeholder citations from a fixed publisher pool.

    Every citation is labeled CitationConfidence.SYNTHETIC so aggregates and
    the UI can tell placeholders from extracted sources.
    """
    rng = random.Random(seed)
    count = rng.randint(2, 4)
    competitors = [c for c in competitors or [] if isinstance(c, str) and c]

    citations: list[Citation] = []
    for idx, (domain, title) in enumerate(rng.sample(SAMPLE_SOURCES, count)):
        mentioned: list[str] = []
        if brand_name and rng.random() > 0.3:
            mentioned.append(brand_name)
        if competitors and rng.random() > 0.5:
            competitor = rng.choice(competitors)
            if competitor not in mentioned:
                mentioned.append(competitor)

        citations.append(
            Citation(
                url=f"https://{domain}/article-{idx + 1}",
                title=title,
                snippet=f"This article discusses various software solutions including {', '.join(mentioned)}...",
                source=domain,
                date="2024-01-15",
                position=idx,
                mentioned_companies=mentioned,
                confidence=CitationConfidence.SYNTHETIC,
            )
        )

    logger.debug("Generated %d sample citations for %s", len(citations), provider)
    return citations


def extract_citations_with_fallback(
    provider: str,
    raw: Any,
    response_text: str,
    brand_name: str,
    competitors: list[str],
    seed: int | None = None,
) -> list[Citation]:
    """Extract citations, enrich mentions, and fall back to labeled samples when empty."""
    citations = extract_citations_from_response(provider, raw, brand_name, competitors)
    if citations:
        return enhance_citations_with_mentions(citations, response_text, brand_name, competitors)

    logger.warning("No citations found for %s, using synthetic sample citations", provider)
    return generate_sample_citations(brand_name, competitors, provider, seed=seed)
