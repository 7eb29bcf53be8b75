"""Brand monitor API: analysis records, citation data and the streaming analysis run."""

import asyncio
import logging
import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.analysis.types import AnalysisEvent, AnalysisStage, Company, EventType
from app.core.config import settings
from app.core.exceptions import BadRequestError, NotFoundError
from app.db.postgres import get_db
from app.gateway.providers import build_providers
from app.schemas.brand_analysis import (
    AnalysisCreate,
    AnalysisResponse,
    AnalysisWithCitationsResponse,
    AnalyzeRequest,
    CitationDeleteResponse,
)
from app.services import brand_analysis_service, citation_store
from app.services.analysis_service import perform_analysis

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/brand-monitor", tags=["brand-monitor"])


@router.post("/analyses", response_model=AnalysisResponse, status_code=201)
async def create_analysis(body: AnalysisCreate, db: AsyncSession = Depends(get_db)):
    if not body.analysis_data:
        raise BadRequestError("analysis_data is required")
    analysis = await brand_analysis_service.save_analysis(db, body)
    return AnalysisResponse.model_validate(analysis)


@router.get("/analyses/{analysis_id}", response_model=AnalysisWithCitationsResponse)
async def get_analysis(analysis_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    found = await brand_analysis_service.get_analysis_with_citations(db, analysis_id)
    if found is None:
        raise NotFoundError("Analysis not found")

    analysis, citation_analysis = found
    response = AnalysisWithCitationsResponse.model_validate(analysis)
    response.citation_analysis = citation_analysis.to_dict() if citation_analysis else None
    return response


@router.delete("/analyses/{analysis_id}/citations", response_model=CitationDeleteResponse)
async def delete_analysis_citations(analysis_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    if await brand_analysis_service.get_analysis(db, analysis_id) is None:
        raise NotFoundError("Analysis not found")
    deleted = await citation_store.delete_citations_by_analysis_id(db, analysis_id)
    return CitationDeleteResponse(analysis_id=analysis_id, deleted=deleted)


@router.get("/analyses/{analysis_id}/citation-metrics")
async def get_citation_metrics(analysis_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    metrics = await brand_analysis_service.get_citation_metrics(db, analysis_id)
    if metrics is None:
        raise NotFoundError("Analysis not found")
    return metrics.to_dict()


@router.post("/analyze")
async def analyze(body: AnalyzeRequest):
    """Run an analysis and stream progress as Server-Sent Events.

    The last frame is a `complete` event carrying the full result, or an
    `error` event when the run itself fails.
    """
    company = Company(
        name=body.company_name,
        url=body.url,
        industry=body.industry,
        description=body.description,
        competitors=body.known_competitors,
    )
    user_selected = [c.name for c in body.competitors]
    companies = [company.name, *(user_selected or company.competitors)]
    providers = build_providers(settings, companies, requested=body.providers)
    use_web_search = settings.use_web_search if body.use_web_search is None else body.use_web_search

    queue: asyncio.Queue[AnalysisEvent | None] = asyncio.Queue()

    async def run() -> None:
        try:
            result = await perform_analysis(
                company,
                providers,
                queue.put,
                custom_prompts=body.prompts or None,
                user_selected_competitors=user_selected or None,
                use_web_search=use_web_search,
            )
            await queue.put(AnalysisEvent(EventType.COMPLETE, AnalysisStage.FINALIZING, {"analysis": result.to_dict()}))
        except Exception as e:
            logger.exception("Analysis failed for %s", company.name)
            await queue.put(AnalysisEvent(EventType.ERROR, AnalysisStage.FINALIZING, {"message": str(e)}))
        finally:
            await queue.put(None)

    async def stream():
        task = asyncio.create_task(run())
        try:
            while (event := await queue.get()) is not None:
                yield event.to_sse()
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
