"""Core types and DTOs for the citation analytics engine."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CitationConfidence(str, Enum):
    """Where a citation came from."""

    REAL = "real"  # Extracted from a provider response
    SYNTHETIC = "synthetic"  # Placeholder from the sample generator


class EventType(str, Enum):
    """Progress event types emitted by the analysis orchestrator."""

    START = "start"
    STAGE = "stage"
    PROGRESS = "progress"
    COMPETITOR_FOUND = "competitor-found"
    PROMPT_GENERATED = "prompt-generated"
    ANALYSIS_START = "analysis-start"
    ANALYSIS_COMPLETE = "analysis-complete"
    PARTIAL_RESULT = "partial-result"
    SCORING_START = "scoring-start"
    COMPLETE = "complete"
    ERROR = "error"


class AnalysisStage(str, Enum):
    INITIALIZING = "initializing"
    IDENTIFYING_COMPETITORS = "identifying-competitors"
    GENERATING_PROMPTS = "generating-prompts"
    ANALYZING_PROMPTS = "analyzing-prompts"
    CALCULATING_SCORES = "calculating-scores"
    FINALIZING = "finalizing"


# ---------------------------------------------------------------------------
# Lenient parsing of stored / client-supplied JSON
# ---------------------------------------------------------------------------


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return None
    return None


def _as_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return default
    return default


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _str_list(value: Any) -> list[str]:
    """Strings of a JSON list; anything that is not a list yields []."""
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def _dict_items(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def _confidence(value: Any) -> CitationConfidence:
    try:
        return CitationConfidence(value)
    except (TypeError, ValueError):
        return CitationConfidence.REAL


# ---------------------------------------------------------------------------
# Citations
# ---------------------------------------------------------------------------


@dataclass
class Citation:
    """A single source cited by one model response."""

    url: str = ""
    title: str | None = None
    snippet: str | None = None
    source: str | None = None  # Domain or publisher label
    date: str | None = None
    position: int | None = None  # Rank within the response's citation list
    mentioned_companies: list[str] = field(default_factory=list)
    confidence: CitationConfidence = CitationConfidence.REAL

    @property
    def is_synthetic(self) -> bool:
        return self.confidence == CitationConfidence.SYNTHETIC

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "snippet": self.snippet,
            "source": self.source,
            "date": self.date,
            "position": self.position,
            "mentioned_companies": list(self.mentioned_companies),
            "confidence": self.confidence.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Citation:
        mentioned = data.get("mentioned_companies")
        if mentioned is None:
            mentioned = data.get("mentionedCompanies")
        return cls(
            url=_as_str(data.get("url")) or "",
            title=_as_str(data.get("title")),
            snippet=_as_str(data.get("snippet")),
            source=_as_str(data.get("source")),
            date=_as_str(data.get("date")),
            position=_as_int(data.get("position")),
            mentioned_companies=_str_list(mentioned),
            confidence=_confidence(data.get("confidence")),
        )


@dataclass
class AIResponse:
    """One provider's answer to one prompt."""

    provider: str = ""
    prompt: str = ""
    response: str = ""
    brand_mentioned: bool = False
    brand_position: int | None = None
    competitors: list[str] = field(default_factory=list)
    sentiment: str = "neutral"
    confidence: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    citations: list[Citation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "prompt": self.prompt,
            "response": self.response,
            "brand_mentioned": self.brand_mentioned,
            "brand_position": self.brand_position,
            "competitors": list(self.competitors),
            "sentiment": self.sentiment,
            "confidence": self.confidence,
            "timestamp": self.timestamp.isoformat(),
            "citations": [c.to_dict() for c in self.citations],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AIResponse:
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            try:
                timestamp = datetime.fromisoformat(timestamp)
            except ValueError:
                timestamp = None
        return cls(
            provider=_as_str(data.get("provider")) or "",
            prompt=_as_str(data.get("prompt")) or "",
            response=_as_str(data.get("response")) or "",
            brand_mentioned=data.get("brand_mentioned", data.get("brandMentioned")) is True,
            brand_position=_as_int(data.get("brand_position", data.get("brandPosition"))),
            competitors=_str_list(data.get("competitors")),
            sentiment=_as_str(data.get("sentiment")) or "neutral",
            confidence=_as_float(data.get("confidence")),
            timestamp=timestamp if isinstance(timestamp, datetime) else datetime.now(timezone.utc),
            citations=[Citation.from_dict(c) for c in _dict_items(data.get("citations"))],
        )


@dataclass
class SourceFrequency:
    """Aggregate of every citation sharing one URL."""

    url: str = ""
    domain: str = ""
    title: str | None = None
    frequency: int = 0
    providers: list[str] = field(default_factory=list)
    mentioned_companies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "domain": self.domain,
            "title": self.title,
            "frequency": self.frequency,
            "providers": list(self.providers),
            "mentioned_companies": list(self.mentioned_companies),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SourceFrequency:
        return cls(
            url=_as_str(data.get("url")) or "",
            domain=_as_str(data.get("domain")) or "",
            title=_as_str(data.get("title")),
            frequency=_as_int(data.get("frequency")) or 0,
            providers=_str_list(data.get("providers")),
            mentioned_companies=_str_list(data.get("mentioned_companies") or data.get("mentionedCompanies")),
        )


@dataclass
class CitationsByCompany:
    """Citations attributed to one tracked company (brand or competitor)."""

    total_citations: int = 0
    sources: list[Citation] = field(default_factory=list)
    top_domains: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_citations": self.total_citations,
            "sources": [c.to_dict() for c in self.sources],
            "top_domains": list(self.top_domains),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CitationsByCompany:
        return cls(
            total_citations=_as_int(data.get("total_citations")) or 0,
            sources=[Citation.from_dict(c) for c in _dict_items(data.get("sources"))],
            top_domains=_str_list(data.get("top_domains")),
        )


@dataclass
class CitationAnalysis:
    """Full citation aggregate for one analysis run."""

    total_sources: int = 0
    top_sources: list[SourceFrequency] = field(default_factory=list)
    brand_citations: CitationsByCompany = field(default_factory=CitationsByCompany)
    competitor_citations: dict[str, CitationsByCompany] = field(default_factory=dict)
    provider_breakdown: dict[str, list[SourceFrequency]] = field(default_factory=dict)
    synthetic_citations: int = 0  # how many folded citations were placeholders

    def to_dict(self) -> dict:
        return {
            "total_sources": self.total_sources,
            "top_sources": [s.to_dict() for s in self.top_sources],
            "brand_citations": self.brand_citations.to_dict(),
            "competitor_citations": {name: c.to_dict() for name, c in self.competitor_citations.items()},
            "provider_breakdown": {
                provider: [s.to_dict() for s in sources] for provider, sources in self.provider_breakdown.items()
            },
            "synthetic_citations": self.synthetic_citations,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CitationAnalysis:
        brand = data.get("brand_citations")
        competitors = data.get("competitor_citations")
        breakdown = data.get("provider_breakdown")
        return cls(
            total_sources=_as_int(data.get("total_sources")) or 0,
            top_sources=[SourceFrequency.from_dict(s) for s in _dict_items(data.get("top_sources"))],
            brand_citations=CitationsByCompany.from_dict(brand if isinstance(brand, dict) else {}),
            competitor_citations={
                name: CitationsByCompany.from_dict(c)
                for name, c in (competitors if isinstance(competitors, dict) else {}).items()
                if isinstance(c, dict)
            },
            provider_breakdown={
                provider: [SourceFrequency.from_dict(s) for s in _dict_items(sources)]
                for provider, sources in (breakdown if isinstance(breakdown, dict) else {}).items()
            },
            synthetic_citations=_as_int(data.get("synthetic_citations")) or 0,
        )


# ---------------------------------------------------------------------------
# Brand vs competitor metrics
# ---------------------------------------------------------------------------


@dataclass
class EntityCitationMetrics:
    """Citation metrics for the brand or one competitor."""

    name: str = ""
    citation_count: int = 0
    percentage: float = 0.0  # of ALL citations, tracked or not
    unique_domains: int = 0
    avg_position: float = 0.0
    top_domains: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "citation_count": self.citation_count,
            "percentage": self.percentage,
            "unique_domains": self.unique_domains,
            "avg_position": self.avg_position,
            "top_domains": list(self.top_domains),
        }


@dataclass
class ShareOfVoice:
    """Percentages over tracked-entity citations only."""

    brand: float = 0.0
    competitors: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"brand": self.brand, "competitors": dict(self.competitors)}


@dataclass
class CitationGap:
    """Brand's deficit (positive) or surplus (negative) against the leading competitor."""

    leading_competitor: str | None = None
    gap: int = 0
    gap_percentage: float = 0.0

    def to_dict(self) -> dict:
        return {
            "leading_competitor": self.leading_competitor,
            "gap": self.gap,
            "gap_percentage": self.gap_percentage,
        }


@dataclass
class BrandVsCompetitorCitationMetrics:
    total_citations: int = 0
    total_mentions: int = 0  # brand + sum(competitors): the share-of-voice denominator
    brand: EntityCitationMetrics = field(default_factory=EntityCitationMetrics)
    competitors: dict[str, EntityCitationMetrics] = field(default_factory=dict)
    share_of_voice: ShareOfVoice = field(default_factory=ShareOfVoice)
    citation_gap: CitationGap = field(default_factory=CitationGap)

    def to_dict(self) -> dict:
        return {
            "total_citations": self.total_citations,
            "total_mentions": self.total_mentions,
            "brand": self.brand.to_dict(),
            "competitors": {name: m.to_dict() for name, m in self.competitors.items()},
            "share_of_voice": self.share_of_voice.to_dict(),
            "citation_gap": self.citation_gap.to_dict(),
        }


# ---------------------------------------------------------------------------
# Orchestrator containers
# ---------------------------------------------------------------------------


@dataclass
class Company:
    name: str = ""
    url: str = ""
    industry: str = ""
    description: str = ""
    competitors: list[str] = field(default_factory=list)  # known competitors, used as last resort


@dataclass
class BrandPrompt:
    id: str = ""
    prompt: str = ""
    category: str = "custom"

    def to_dict(self) -> dict:
        return {"id": self.id, "prompt": self.prompt, "category": self.category}


@dataclass
class CompetitorRanking:
    """Visibility of one tracked entity across a set of responses."""

    name: str = ""
    is_own: bool = False
    mentions: int = 0
    visibility_score: float = 0.0  # % of responses mentioning the entity
    share_of_voice: float = 0.0  # % of all tracked-entity mentions
    average_position: float | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "is_own": self.is_own,
            "mentions": self.mentions,
            "visibility_score": self.visibility_score,
            "share_of_voice": self.share_of_voice,
            "average_position": self.average_position,
        }


@dataclass
class AnalysisEvent:
    """A single progress event emitted by the orchestrator."""

    type: EventType
    stage: AnalysisStage
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "stage": self.stage.value,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_sse(self) -> str:
        """Server-sent-events frame for this event."""
        return f"event: {self.type.value}\ndata: {json.dumps(self.to_dict(), default=str)}\n\n"


@dataclass
class AnalysisResult:
    company: Company
    known_competitors: list[str] = field(default_factory=list)
    prompts: list[BrandPrompt] = field(default_factory=list)
    responses: list[AIResponse] = field(default_factory=list)
    scores: dict[str, Any] = field(default_factory=dict)
    competitors: list[CompetitorRanking] = field(default_factory=list)
    provider_rankings: dict[str, list[CompetitorRanking]] = field(default_factory=dict)
    provider_comparison: dict[str, dict[str, float]] = field(default_factory=dict)
    citation_analysis: CitationAnalysis = field(default_factory=CitationAnalysis)
    citation_metrics: BrandVsCompetitorCitationMetrics | None = None
    errors: list[str] = field(default_factory=list)
    web_search_used: bool = True

    def to_dict(self) -> dict:
        return {
            "company": {
                "name": self.company.name,
                "url": self.company.url,
                "industry": self.company.industry,
            },
            "known_competitors": list(self.known_competitors),
            "prompts": [p.to_dict() for p in self.prompts],
            "responses": [r.to_dict() for r in self.responses],
            "scores": self.scores,
            "competitors": [c.to_dict() for c in self.competitors],
            "provider_rankings": {
                provider: [c.to_dict() for c in rankings] for provider, rankings in self.provider_rankings.items()
            },
            "provider_comparison": self.provider_comparison,
            "citation_analysis": self.citation_analysis.to_dict(),
            "citation_metrics": self.citation_metrics.to_dict() if self.citation_metrics else None,
            "errors": list(self.errors),
            "web_search_used": self.web_search_used,
        }
