"""Citation persistence: maps Citation / CitationAnalysis to flat rows and back.

Two tables per analysis:
  - citations:         raw evidence, one row per citation, never deduplicated
  - citation_sources:  the url-level aggregate (one row per top source)

Reconstruction trusts citation_sources for top sources and rescans citations
for company buckets and the provider breakdown; the two row sets are written
independently, so a reconstructed analysis is best-effort.

Writers for one analysis_id are serialized in-process; concurrent re-analysis
of the same analysis from several processes is not supported.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.analysis.citation_analyzer import build_company_buckets, fold_source, rank_sources
from app.analysis.citation_extractor import extract_domain
from app.analysis.types import Citation, CitationAnalysis, CitationConfidence, SourceFrequency
from app.gateway.types import normalize_provider_name
from app.models.citation import CitationRecord, CitationSourceRecord

logger = logging.getLogger(__name__)

_write_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()


@asynccontextmanager
async def _analysis_write_lock(analysis_id: uuid.UUID) -> AsyncIterator[None]:
    lock = _write_locks.setdefault(str(analysis_id), asyncio.Lock())
    async with lock:
        yield


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------


def citation_to_record(
    analysis_id: uuid.UUID,
    provider: str,
    prompt_id: str | None,
    citation: Citation,
) -> CitationRecord:
    return CitationRecord(
        analysis_id=analysis_id,
        provider=provider,
        prompt_id=prompt_id,
        url=citation.url,
        title=citation.title,
        snippet=citation.snippet,
        source=citation.source,
        date=citation.date,
        position=citation.position,
        mentioned_companies=list(citation.mentioned_companies),
        confidence=citation.confidence.value,
    )


def record_to_citation(record: CitationRecord) -> Citation:
    return Citation(
        url=record.url,
        title=record.title,
        snippet=record.snippet,
        source=record.source,
        date=record.date,
        position=record.position,
        mentioned_companies=list(record.mentioned_companies or []),
        confidence=CitationConfidence(record.confidence or CitationConfidence.REAL.value),
    )


def record_to_source(record: CitationSourceRecord) -> SourceFrequency:
    return SourceFrequency(
        url=record.url,
        domain=record.domain,
        title=record.title,
        frequency=record.frequency,
        providers=list(record.providers or []),
        mentioned_companies=list(record.mentioned_companies or []),
    )


# ---------------------------------------------------------------------------
# Write
# ---------------------------------------------------------------------------


async def save_citations(
    db: AsyncSession,
    analysis_id: uuid.UUID,
    provider: str,
    prompt_id: str | None,
    citations: list[Citation],
) -> int:
    """Insert one row per citation. Duplicate urls produce duplicate rows."""
    if not citations:
        return 0

    provider = normalize_provider_name(provider)
    async with _analysis_write_lock(analysis_id):
        db.add_all([citation_to_record(analysis_id, provider, prompt_id, c) for c in citations])
        await db.flush()

    logger.debug("Saved %d citations for analysis %s (%s)", len(citations), analysis_id, provider)
    return len(citations)


async def save_aggregated_sources(
    db: AsyncSession,
    analysis_id: uuid.UUID,
    citation_analysis: CitationAnalysis,
) -> int:
    """Insert one row per top source of an already-aggregated analysis."""
    sources = citation_analysis.top_sources
    if not sources:
        return 0

    async with _analysis_write_lock(analysis_id):
        db.add_all(
            [
                CitationSourceRecord(
                    analysis_id=analysis_id,
                    url=source.url,
                    domain=source.domain or extract_domain(source.url),
                    title=source.title,
                    frequency=source.frequency,
                    providers=[normalize_provider_name(p) for p in source.providers],
                    mentioned_companies=list(source.mentioned_companies),
                )
                for source in sources
            ]
        )
        await db.flush()

    logger.debug("Saved %d aggregated sources for analysis %s", len(sources), analysis_id)
    return len(sources)


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


async def get_citations_by_analysis_id(db: AsyncSession, analysis_id: uuid.UUID) -> list[CitationRecord]:
    result = await db.execute(
        select(CitationRecord).where(CitationRecord.analysis_id == analysis_id).order_by(CitationRecord.id)
    )
    return list(result.scalars().all())


async def get_citation_sources_by_analysis_id(
    db: AsyncSession, analysis_id: uuid.UUID
) -> list[CitationSourceRecord]:
    """Aggregated sources, most cited first; ties in insertion order."""
    result = await db.execute(
        select(CitationSourceRecord)
        .where(CitationSourceRecord.analysis_id == analysis_id)
        .order_by(CitationSourceRecord.frequency.desc(), CitationSourceRecord.id)
    )
    return list(result.scalars().all())


async def delete_citations_by_analysis_id(db: AsyncSession, analysis_id: uuid.UUID) -> int:
    """Remove both citation tables' rows for an analysis. Returns deleted citation rows."""
    async with _analysis_write_lock(analysis_id):
        result = await db.execute(delete(CitationRecord).where(CitationRecord.analysis_id == analysis_id))
        await db.execute(delete(CitationSourceRecord).where(CitationSourceRecord.analysis_id == analysis_id))
        await db.flush()

    deleted = result.rowcount or 0
    logger.info("Deleted %d citations for analysis %s", deleted, analysis_id, extra={"analysis_id": analysis_id})
    return deleted


async def reconstruct_citation_analysis(
    db: AsyncSession,
    analysis_id: uuid.UUID,
    brand_name: str,
    competitors: list[str],
) -> CitationAnalysis | None:
    """Rebuild a CitationAnalysis from stored rows; None when nothing was aggregated."""
    source_rows = await get_citation_sources_by_analysis_id(db, analysis_id)
    if not source_rows:
        return None

    citation_rows = await get_citations_by_analysis_id(db, analysis_id)
    citations = [record_to_citation(row) for row in citation_rows]

    by_provider: dict[str, dict[str, SourceFrequency]] = {}
    for row, citation in zip(citation_rows, citations):
        fold_source(by_provider.setdefault(row.provider, {}), citation, row.provider)

    brand_citations, competitor_citations = build_company_buckets(citations, brand_name, competitors)

    return CitationAnalysis(
        total_sources=len(source_rows),
        top_sources=[record_to_source(row) for row in source_rows],
        brand_citations=brand_citations,
        competitor_citations=competitor_citations,
        provider_breakdown={provider: rank_sources(table) for provider, table in by_provider.items()},
        synthetic_citations=sum(1 for c in citations if c.is_synthetic),
    )
