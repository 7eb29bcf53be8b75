"""Brand vs competitor citation metrics.

Two denominators are in play:
  - percentage:      entity citations / ALL citations (tracked or not)
  - share of voice:  entity citations / (brand + sum of competitor citations)

so share-of-voice figures sum to 100 among tracked entities only.
"""

from __future__ import annotations

import logging

from app.analysis.citation_analyzer import top_domains
from app.analysis.citation_extractor import extract_domain
from app.analysis.types import (
    AIResponse,
    BrandVsCompetitorCitationMetrics,
    Citation,
    CitationGap,
    EntityCitationMetrics,
    ShareOfVoice,
)

logger = logging.getLogger(__name__)


def _pct(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole > 0 else 0.0


def _entity_metrics(name: str, citations: list[Citation], total_citations: int) -> EntityCitationMetrics:
    count = len(citations)
    # Missing positions count as 0, matching previously reported averages
    avg_position = sum(c.position or 0 for c in citations) / count if count else 0.0
    return EntityCitationMetrics(
        name=name,
        citation_count=count,
        percentage=_pct(count, total_citations),
        unique_domains=len({extract_domain(c.url) for c in citations}),
        avg_position=round(avg_position, 2),
        top_domains=top_domains(citations),
    )


def _citation_gap(brand_count: int, competitor_counts: dict[str, int]) -> CitationGap:
    leader: str | None = None
    leader_count = 0
    for name, count in competitor_counts.items():
        if leader is None or count > leader_count:
            leader, leader_count = name, count

    if leader is None:
        return CitationGap()

    gap = leader_count - brand_count
    if brand_count > 0:
        gap_percentage = round(gap / brand_count * 100, 2)
    else:
        gap_percentage = 100.0 if leader_count > 0 else 0.0

    return CitationGap(leading_competitor=leader, gap=gap, gap_percentage=gap_percentage)


def calculate_brand_vs_competitor_metrics(
    responses: list[AIResponse],
    brand_name: str,
    competitors: list[str],
) -> BrandVsCompetitorCitationMetrics:
    all_citations = [c for r in responses for c in r.citations or []]
    total_citations = len(all_citations)

    brand_subset = [c for c in all_citations if brand_name in c.mentioned_companies]
    competitor_subsets: dict[str, list[Citation]] = {}
    for name in competitors:
        if name in competitor_subsets:
            continue
        competitor_subsets[name] = [c for c in all_citations if name in c.mentioned_companies]

    brand = _entity_metrics(brand_name, brand_subset, total_citations)
    competitor_metrics = {
        name: _entity_metrics(name, subset, total_citations) for name, subset in competitor_subsets.items()
    }

    competitor_counts = {name: m.citation_count for name, m in competitor_metrics.items()}
    total_mentions = brand.citation_count + sum(competitor_counts.values())

    share_of_voice = ShareOfVoice(
        brand=_pct(brand.citation_count, total_mentions),
        competitors={name: _pct(count, total_mentions) for name, count in competitor_counts.items()},
    )

    logger.debug(
        "Citation metrics for %s: %d citations, %d tracked mentions",
        brand_name,
        total_citations,
        total_mentions,
    )

    return BrandVsCompetitorCitationMetrics(
        total_citations=total_citations,
        total_mentions=total_mentions,
        brand=brand,
        competitors=competitor_metrics,
        share_of_voice=share_of_voice,
        citation_gap=_citation_gap(brand.citation_count, competitor_counts),
    )
