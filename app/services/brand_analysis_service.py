"""Brand analysis records: save and read analyses with their citation data.

Citation persistence is supplementary: a failure while saving or rebuilding
citation data is logged and never fails the analysis record itself.
"""

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.analysis.citation_analyzer import analyze_citations
from app.analysis.competitive_metrics import calculate_brand_vs_competitor_metrics
from app.analysis.types import AIResponse, BrandVsCompetitorCitationMetrics, CitationAnalysis
from app.models.brand_analysis import BrandAnalysis
from app.schemas.brand_analysis import AnalysisCreate
from app.services import citation_store

logger = logging.getLogger(__name__)


def _brand_name(analysis: BrandAnalysis) -> str:
    if analysis.company_name:
        return analysis.company_name
    company = (analysis.analysis_data or {}).get("company") or {}
    return company.get("name") or ""


def _competitor_names(analysis: BrandAnalysis) -> list[str]:
    names = analysis.competitors
    if not names:
        names = (analysis.analysis_data or {}).get("known_competitors") or []
    return [n for n in names if isinstance(n, str) and n]


def _responses(data: Any) -> list[AIResponse]:
    if not isinstance(data, list):
        return []
    return [AIResponse.from_dict(r) for r in data if isinstance(r, dict)]


def _prompt_ids(prompts: list[Any]) -> dict[str, str]:
    """Prompt text → prompt id, for prompts saved as BrandPrompt dicts."""
    ids: dict[str, str] = {}
    for prompt in prompts or []:
        if isinstance(prompt, dict) and prompt.get("prompt") and prompt.get("id"):
            ids[prompt["prompt"]] = str(prompt["id"])
    return ids


async def get_analysis(db: AsyncSession, analysis_id: uuid.UUID) -> BrandAnalysis | None:
    result = await db.execute(select(BrandAnalysis).where(BrandAnalysis.id == analysis_id))
    return result.scalar_one_or_none()


async def save_analysis(db: AsyncSession, payload: AnalysisCreate) -> BrandAnalysis:
    """Insert the analysis row, then persist its citations on a best-effort basis."""
    analysis = BrandAnalysis(
        url=payload.url,
        company_name=payload.company_name,
        industry=payload.industry,
        description=payload.description,
        analysis_data=payload.analysis_data,
        competitors=payload.competitors,
        prompts=payload.prompts,
    )
    db.add(analysis)
    await db.flush()

    try:
        responses = _responses(
            payload.responses if payload.responses is not None else payload.analysis_data.get("responses")
        )
    except Exception:
        logger.exception("Failed to read responses for analysis %s", analysis.id, extra={"analysis_id": analysis.id})
        responses = []
    prompt_ids = _prompt_ids(payload.prompts)

    for response in responses:
        if not response.citations:
            continue
        prompt_id = prompt_ids.get(response.prompt) or response.prompt[:255] or None
        try:
            async with db.begin_nested():
                await citation_store.save_citations(db, analysis.id, response.provider, prompt_id, response.citations)
        except Exception:
            logger.exception(
                "Failed to save citations for analysis %s (%s)",
                analysis.id,
                response.provider,
                extra={"analysis_id": analysis.id, "provider": response.provider},
            )

    total_sources = 0
    try:
        if payload.citation_analysis:
            citation_analysis = CitationAnalysis.from_dict(payload.citation_analysis)
        else:
            citation_analysis = analyze_citations(responses, _brand_name(analysis), _competitor_names(analysis))
        async with db.begin_nested():
            await citation_store.save_aggregated_sources(db, analysis.id, citation_analysis)
        total_sources = citation_analysis.total_sources
    except Exception:
        logger.exception(
            "Failed to save aggregated citation sources for analysis %s", analysis.id, extra={"analysis_id": analysis.id}
        )

    logger.info(
        "Saved analysis %s for %s: %d responses, %d sources",
        analysis.id,
        analysis.company_name,
        len(responses),
        total_sources,
    )
    return analysis


async def get_analysis_with_citations(
    db: AsyncSession, analysis_id: uuid.UUID
) -> tuple[BrandAnalysis, CitationAnalysis | None] | None:
    """The analysis and its citation analysis: stored form first, else rebuilt from rows."""
    analysis = await get_analysis(db, analysis_id)
    if analysis is None:
        return None

    stored = (analysis.analysis_data or {}).get("citation_analysis")
    if isinstance(stored, dict) and stored:
        return analysis, CitationAnalysis.from_dict(stored)

    try:
        citation_analysis = await citation_store.reconstruct_citation_analysis(
            db, analysis.id, _brand_name(analysis), _competitor_names(analysis)
        )
    except Exception:
        logger.exception(
            "Failed to reconstruct citation analysis for %s", analysis_id, extra={"analysis_id": analysis_id}
        )
        citation_analysis = None

    if citation_analysis is not None:
        logger.info("Reconstructed citation analysis for %s: %d sources", analysis_id, citation_analysis.total_sources)
    return analysis, citation_analysis


async def get_citation_metrics(
    db: AsyncSession, analysis_id: uuid.UUID
) -> BrandVsCompetitorCitationMetrics | None:
    """Brand vs competitor metrics over the responses stored with the analysis."""
    analysis = await get_analysis(db, analysis_id)
    if analysis is None:
        return None

    responses = _responses((analysis.analysis_data or {}).get("responses"))
    return calculate_brand_vs_competitor_metrics(responses, _brand_name(analysis), _competitor_names(analysis))
