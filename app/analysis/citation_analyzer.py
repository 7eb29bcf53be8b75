"""Citation Aggregator: folds per-response citations into one CitationAnalysis.

Pure and synchronous. Call it only once every response of a run has been
collected: totals and unions are run-wide.

Ordering is reproducible: sources keep first-seen order (response order,
then citation order) and sorting by frequency is stable, so ties stay in
first-seen order.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable

from app.analysis.citation_extractor import extract_domain
from app.analysis.types import AIResponse, Citation, CitationAnalysis, CitationsByCompany, SourceFrequency

logger = logging.getLogger(__name__)

TOP_DOMAINS_LIMIT = 5


def top_domains(citations: Iterable[Citation], limit: int = TOP_DOMAINS_LIMIT) -> list[str]:
    """Most cited domains, descending; ties keep encounter order."""
    counts = Counter(extract_domain(c.url) for c in citations)
    return [domain for domain, _ in counts.most_common(limit)]


def _union(target: list[str], values: Iterable[str]) -> None:
    for value in values:
        if value not in target:
            target.append(value)


def fold_source(table: dict[str, SourceFrequency], citation: Citation, provider: str) -> None:
    """Count one citation occurrence into a url-keyed frequency table."""
    entry = table.get(citation.url)
    if entry is None:
        entry = SourceFrequency(
            url=citation.url,
            domain=extract_domain(citation.url),
            title=citation.title,
        )
        table[citation.url] = entry
    elif not entry.title and citation.title:
        entry.title = citation.title

    entry.frequency += 1
    _union(entry.providers, [provider])
    _union(entry.mentioned_companies, citation.mentioned_companies)


def rank_sources(table: dict[str, SourceFrequency]) -> list[SourceFrequency]:
    return sorted(table.values(), key=lambda s: s.frequency, reverse=True)


def build_company_buckets(
    cited: Iterable[Citation],
    brand_name: str,
    competitors: list[str],
) -> tuple[CitationsByCompany, dict[str, CitationsByCompany]]:
    """Brand bucket and one bucket per competitor; a co-mention lands in every matching bucket."""
    brand_sources: list[Citation] = []
    competitor_sources: dict[str, list[Citation]] = {name: [] for name in competitors}

    for citation in cited:
        if brand_name in citation.mentioned_companies:
            brand_sources.append(citation)
        for name in competitor_sources:
            if name in citation.mentioned_companies:
                competitor_sources[name].append(citation)

    def bucket(sources: list[Citation]) -> CitationsByCompany:
        return CitationsByCompany(
            total_citations=len(sources),
            sources=sources,
            top_domains=top_domains(sources),
        )

    return bucket(brand_sources), {name: bucket(sources) for name, sources in competitor_sources.items()}


def analyze_citations(
    responses: list[AIResponse],
    brand_name: str,
    competitors: list[str],
) -> CitationAnalysis:
    """Aggregate the citations of every response in one analysis run."""
    sources: dict[str, SourceFrequency] = {}
    by_provider: dict[str, dict[str, SourceFrequency]] = {}
    all_citations: list[Citation] = []

    for response in responses:
        for citation in response.citations or []:
            all_citations.append(citation)
            fold_source(sources, citation, response.provider)
            fold_source(by_provider.setdefault(response.provider, {}), citation, response.provider)

    brand_citations, competitor_citations = build_company_buckets(all_citations, brand_name, competitors)
    synthetic = sum(1 for c in all_citations if c.is_synthetic)

    logger.debug(
        "Aggregated %d citations into %d sources (%d synthetic)",
        len(all_citations),
        len(sources),
        synthetic,
    )

    return CitationAnalysis(
        total_sources=len(sources),
        top_sources=rank_sources(sources),
        brand_citations=brand_citations,
        competitor_citations=competitor_citations,
        provider_breakdown={provider: rank_sources(table) for provider, table in by_provider.items()},
        synthetic_citations=synthetic,
    )
