"""Analysis orchestrator: runs prompts × providers and aggregates the results.

Stages (each announced with a `stage` event):
  1. identifying-competitors  : user-selected, identifier callback, or known competitors
  2. generating-prompts       : custom prompts or templates, capped by settings
  3. analyzing-prompts        : batched fan-out: a batch of prompts × every provider
                                runs concurrently; the next batch starts only after
                                the previous one fully drains
  4. calculating-scores       : visibility rankings and brand scores
  5. finalizing               : citation aggregate + brand vs competitor metrics

A failing provider call is recorded in `errors` and never aborts the run.
Responses are kept in prompt × provider order regardless of completion order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from app.analysis.citation_analyzer import analyze_citations
from app.analysis.citation_extractor import extract_citations_with_fallback
from app.analysis.competitive_metrics import calculate_brand_vs_competitor_metrics
from app.analysis.mention_detector import detect_mentions
from app.analysis.scoring import (
    analyze_competitors,
    analyze_competitors_by_provider,
    calculate_brand_scores,
    find_list_position,
)
from app.analysis.types import (
    AIResponse,
    AnalysisEvent,
    AnalysisResult,
    AnalysisStage,
    BrandPrompt,
    Company,
    EventType,
)
from app.core.config import settings
from app.core.logging import AnalysisLogAdapter
from app.gateway.providers import BaseProvider
from app.gateway.types import ProviderCompletion, normalize_provider_name

logger = logging.getLogger(__name__)

SendEvent = Callable[[AnalysisEvent], Awaitable[None]]
CompetitorIdentifier = Callable[[Company], Awaitable[list[str]]]

# (category, template)
_PROMPT_TEMPLATES: list[tuple[str, str]] = [
    ("ranking", "What are the best {industry} tools in 2024?"),
    ("comparison", "How does {company} compare to {competitor}?"),
    ("alternatives", "What are the top alternatives to {company}?"),
    ("recommendations", "Which {industry} platform would you recommend for a growing team?"),
    ("ranking", "Rank the leading {industry} companies by overall quality."),
    ("comparison", "{company} vs {competitor}: which one should I choose?"),
]


def generate_prompts(company: Company, competitors: list[str]) -> list[BrandPrompt]:
    """Template prompts for a company; comparison prompts need a competitor."""
    industry = company.industry or "software"
    prompts: list[BrandPrompt] = []
    for category, template in _PROMPT_TEMPLATES:
        if "{competitor}" in template and not competitors:
            continue
        text = template.format(
            industry=industry,
            company=company.name,
            competitor=competitors[0] if competitors else "",
        )
        prompts.append(BrandPrompt(id=f"{category}-{len(prompts)}", prompt=text, category=category))
    return prompts


def build_ai_response(
    provider: str,
    prompt: str,
    completion: ProviderCompletion,
    brand_name: str,
    competitors: list[str],
    use_web_search: bool = True,
    seed: int | None = None,
) -> AIResponse:
    """Turn one provider completion into an AIResponse with mentions and citations."""
    provider = normalize_provider_name(provider)
    text = completion.text or ""
    mentioned = detect_mentions(text, brand_name, competitors)
    brand_mentioned = brand_name in mentioned

    citations = []
    if use_web_search:
        citations = extract_citations_with_fallback(
            provider, completion.raw, text, brand_name, competitors, seed=seed
        )

    return AIResponse(
        provider=provider,
        prompt=prompt,
        response=text,
        brand_mentioned=brand_mentioned,
        brand_position=find_list_position(text, brand_name) if brand_mentioned else None,
        competitors=[name for name in mentioned if name != brand_name],
        citations=citations,
    )


def _competitor_names(selected: list[Any] | None) -> list[str]:
    names: list[str] = []
    for item in selected or []:
        name = item.get("name") if isinstance(item, dict) else getattr(item, "name", item)
        if isinstance(name, str) and name and name not in names:
            names.append(name)
    return names


async def perform_analysis(
    company: Company,
    providers: list[BaseProvider],
    send_event: SendEvent,
    custom_prompts: list[str] | None = None,
    user_selected_competitors: list[Any] | None = None,
    use_web_search: bool = True,
    competitor_identifier: CompetitorIdentifier | None = None,
    batch_size: int | None = None,
    sample_seed: int | None = None,
) -> AnalysisResult:
    batch_size = max(1, batch_size or settings.analysis_batch_size)
    if sample_seed is None:
        sample_seed = settings.sample_citation_seed

    log = AnalysisLogAdapter(logger, {"company": company.name})

    async def emit(event_type: EventType, event_stage: AnalysisStage, **data: Any) -> None:
        await send_event(AnalysisEvent(type=event_type, stage=event_stage, data=data))

    await emit(
        EventType.START,
        AnalysisStage.INITIALIZING,
        message=f"Starting analysis for {company.name}{' with web search' if use_web_search else ''}",
    )

    # -- Stage 1: competitors -------------------------------------------------
    await emit(
        EventType.STAGE,
        AnalysisStage.IDENTIFYING_COMPETITORS,
        stage=AnalysisStage.IDENTIFYING_COMPETITORS.value,
        progress=0,
        message="Identifying competitors...",
    )

    competitors = _competitor_names(user_selected_competitors)
    if not competitors and competitor_identifier is not None:
        try:
            competitors = _competitor_names(await competitor_identifier(company))
        except Exception as e:
            log.warning(
                "Competitor identification failed for %s: %s",
                company.name,
                e,
                extra={"stage": AnalysisStage.IDENTIFYING_COMPETITORS.value},
            )
    if not competitors:
        competitors = _competitor_names(company.competitors)
    competitors = [c for c in competitors if c != company.name]

    for idx, competitor in enumerate(competitors, start=1):
        await emit(
            EventType.COMPETITOR_FOUND,
            AnalysisStage.IDENTIFYING_COMPETITORS,
            competitor=competitor,
            index=idx,
            total=len(competitors),
        )

    # -- Stage 2: prompts -----------------------------------------------------
    await emit(
        EventType.STAGE,
        AnalysisStage.GENERATING_PROMPTS,
        stage=AnalysisStage.GENERATING_PROMPTS.value,
        progress=0,
        message="Generating analysis prompts...",
    )

    if custom_prompts:
        prompts = [
            BrandPrompt(id=f"custom-{idx}", prompt=text, category="custom")
            for idx, text in enumerate(custom_prompts)
            if text
        ]
    else:
        prompts = generate_prompts(company, competitors)[: settings.analysis_max_prompts]

    for idx, prompt in enumerate(prompts, start=1):
        await emit(
            EventType.PROMPT_GENERATED,
            AnalysisStage.GENERATING_PROMPTS,
            prompt=prompt.prompt,
            category=prompt.category,
            index=idx,
            total=len(prompts),
        )

    # -- Stage 3: provider fan-out -------------------------------------------
    await emit(
        EventType.STAGE,
        AnalysisStage.ANALYZING_PROMPTS,
        stage=AnalysisStage.ANALYZING_PROMPTS.value,
        progress=0,
        message=f"Starting AI analysis{' with web search' if use_web_search else ''}...",
    )

    total_analyses = len(prompts) * len(providers)
    errors: list[str] = []
    completed = 0

    log.info(
        "Analyzing %s: %d prompts × %d providers, batch size %d, web search %s",
        company.name,
        len(prompts),
        len(providers),
        batch_size,
        use_web_search,
        extra={"stage": AnalysisStage.ANALYZING_PROMPTS.value},
    )

    async def run_one(
        prompt_index: int, provider_index: int, prompt: BrandPrompt, provider: BaseProvider
    ) -> AIResponse | None:
        nonlocal completed
        provider_name = normalize_provider_name(provider.name)
        progress_data = {
            "provider": provider_name,
            "prompt": prompt.prompt,
            "prompt_index": prompt_index + 1,
            "total_prompts": len(prompts),
            "total_providers": len(providers),
        }
        await emit(EventType.ANALYSIS_START, AnalysisStage.ANALYZING_PROMPTS, status="started", **progress_data)

        response: AIResponse | None = None
        try:
            completion = await provider.complete(prompt.prompt, use_web_search=use_web_search)
            if completion is None:
                log.info("Provider %s skipped (not configured)", provider_name, extra={"provider": provider_name})
                await emit(EventType.ANALYSIS_COMPLETE, AnalysisStage.ANALYZING_PROMPTS, status="failed", **progress_data)
            else:
                seed = None
                if sample_seed is not None:
                    seed = sample_seed + prompt_index * len(providers) + provider_index
                response = build_ai_response(
                    provider_name,
                    prompt.prompt,
                    completion,
                    company.name,
                    competitors,
                    use_web_search=use_web_search,
                    seed=seed,
                )
                await emit(
                    EventType.PARTIAL_RESULT,
                    AnalysisStage.ANALYZING_PROMPTS,
                    provider=provider_name,
                    prompt=prompt.prompt,
                    response={
                        "provider": response.provider,
                        "brand_mentioned": response.brand_mentioned,
                        "brand_position": response.brand_position,
                        "sentiment": response.sentiment,
                    },
                )
                await emit(
                    EventType.ANALYSIS_COMPLETE, AnalysisStage.ANALYZING_PROMPTS, status="completed", **progress_data
                )
        except Exception as e:
            log.error(
                "Provider %s failed for prompt %d: %s",
                provider_name,
                prompt_index + 1,
                e,
                extra={
                    "stage": AnalysisStage.ANALYZING_PROMPTS.value,
                    "provider": provider_name,
                    "prompt_index": prompt_index + 1,
                },
            )
            errors.append(f"{provider_name}: {e}")
            await emit(EventType.ANALYSIS_COMPLETE, AnalysisStage.ANALYZING_PROMPTS, status="failed", **progress_data)

        completed += 1
        await emit(
            EventType.PROGRESS,
            AnalysisStage.ANALYZING_PROMPTS,
            stage=AnalysisStage.ANALYZING_PROMPTS.value,
            progress=round(completed / total_analyses * 100),
            message=f"Completed {completed} of {total_analyses} analyses",
        )
        return response

    responses: list[AIResponse] = []
    for batch_start in range(0, len(prompts), batch_size):
        batch = prompts[batch_start : batch_start + batch_size]
        results = await asyncio.gather(
            *(
                run_one(batch_start + offset, provider_index, prompt, provider)
                for offset, prompt in enumerate(batch)
                for provider_index, provider in enumerate(providers)
            )
        )
        responses.extend(r for r in results if r is not None)
        log.debug("Batch %d complete (%d/%d analyses)", batch_start // batch_size + 1, completed, total_analyses)

    # -- Stage 4: scoring -----------------------------------------------------
    await emit(
        EventType.STAGE,
        AnalysisStage.CALCULATING_SCORES,
        stage=AnalysisStage.CALCULATING_SCORES.value,
        progress=0,
        message="Calculating brand visibility scores...",
    )

    rankings = analyze_competitors(company.name, responses, competitors)
    for idx, ranking in enumerate(rankings, start=1):
        await emit(
            EventType.SCORING_START,
            AnalysisStage.CALCULATING_SCORES,
            competitor=ranking.name,
            score=ranking.visibility_score,
            index=idx,
            total=len(rankings),
        )

    provider_rankings, provider_comparison = analyze_competitors_by_provider(company.name, responses, competitors)
    scores = calculate_brand_scores(responses, company.name, rankings)

    await emit(
        EventType.PROGRESS,
        AnalysisStage.CALCULATING_SCORES,
        stage=AnalysisStage.CALCULATING_SCORES.value,
        progress=100,
        message="Scoring complete",
    )

    # -- Stage 5: citations + finalize ---------------------------------------
    citation_analysis = analyze_citations(responses, company.name, competitors)
    citation_metrics = calculate_brand_vs_competitor_metrics(responses, company.name, competitors)

    await emit(
        EventType.STAGE,
        AnalysisStage.FINALIZING,
        stage=AnalysisStage.FINALIZING.value,
        progress=100,
        message="Analysis complete!",
    )

    log.info(
        "Analysis for %s complete: %d responses, %d errors, %d sources",
        company.name,
        len(responses),
        len(errors),
        citation_analysis.total_sources,
        extra={"stage": AnalysisStage.FINALIZING.value},
    )

    return AnalysisResult(
        company=company,
        known_competitors=competitors,
        prompts=prompts,
        responses=responses,
        scores=scores,
        competitors=rankings,
        provider_rankings=provider_rankings,
        provider_comparison=provider_comparison,
        citation_analysis=citation_analysis,
        citation_metrics=citation_metrics,
        errors=errors,
        web_search_used=use_web_search,
    )
