"""Visibility scoring over a run's responses.

Computes, per tracked entity (brand + competitors):
  - visibility_score:  % of responses that mention the entity
  - share_of_voice:    entity mentions / all tracked-entity mentions
  - average_position:  mean rank in numbered lists, when the entity is ranked

Brand scores combine these into one overall score:
  overall = 0.5 × visibility + 0.3 × share_of_voice + 0.2 × position_score
where position_score = 100 × position weight (rank 1 → 1.0 ... rank 10+ → 0.1).
"""

from __future__ import annotations

import logging
import re

from app.analysis.mention_detector import is_company_mentioned
from app.analysis.types import AIResponse, CompetitorRanking

logger = logging.getLogger(__name__)

# "1. Acme", "2) Zenith", "3: Foo"
_NUMBERED_PATTERN = re.compile(r"^\s*(\d+)\s*[.):\-]\s+(.+)$", re.MULTILINE)


def position_weight(rank: int) -> float:
    """Rank 1 → 1.0, Rank 2 → 0.9, ..., Rank 10+ → 0.1"""
    if rank <= 0:
        return 0.0
    if rank >= 10:
        return 0.1
    return round(1.0 - (rank - 1) * 0.1, 1)


def find_list_position(text: str, company_name: str) -> int | None:
    """Rank of the first numbered-list item naming the company, if any."""
    if not text or not company_name:
        return None
    for match in _NUMBERED_PATTERN.finditer(text):
        if is_company_mentioned(match.group(2), company_name):
            return int(match.group(1))
    return None


def _pct(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole > 0 else 0.0


def _is_mentioned(response: AIResponse, name: str, is_own: bool) -> bool:
    if is_own:
        return response.brand_mentioned
    return name in response.competitors


def _position(response: AIResponse, name: str, is_own: bool) -> int | None:
    if is_own and response.brand_position is not None:
        return response.brand_position
    return find_list_position(response.response, name)


def analyze_competitors(
    company_name: str,
    responses: list[AIResponse],
    competitors: list[str],
) -> list[CompetitorRanking]:
    """Rank the brand and its competitors by visibility across responses."""
    entities: list[str] = []
    for name in [company_name, *competitors]:
        if name and name not in entities:
            entities.append(name)

    rankings: list[CompetitorRanking] = []
    for name in entities:
        is_own = name == company_name
        mentions = 0
        positions: list[int] = []
        for response in responses:
            if not _is_mentioned(response, name, is_own):
                continue
            mentions += 1
            position = _position(response, name, is_own)
            if position is not None:
                positions.append(position)

        rankings.append(
            CompetitorRanking(
                name=name,
                is_own=is_own,
                mentions=mentions,
                visibility_score=_pct(mentions, len(responses)),
                average_position=round(sum(positions) / len(positions), 2) if positions else None,
            )
        )

    total_mentions = sum(r.mentions for r in rankings)
    for ranking in rankings:
        ranking.share_of_voice = _pct(ranking.mentions, total_mentions)

    rankings.sort(key=lambda r: r.visibility_score, reverse=True)
    return rankings


def analyze_competitors_by_provider(
    company_name: str,
    responses: list[AIResponse],
    competitors: list[str],
) -> tuple[dict[str, list[CompetitorRanking]], dict[str, dict[str, float]]]:
    """Per-provider rankings plus an entity → provider → visibility table."""
    by_provider: dict[str, list[AIResponse]] = {}
    for response in responses:
        by_provider.setdefault(response.provider, []).append(response)

    provider_rankings: dict[str, list[CompetitorRanking]] = {}
    provider_comparison: dict[str, dict[str, float]] = {}
    for provider, provider_responses in by_provider.items():
        rankings = analyze_competitors(company_name, provider_responses, competitors)
        provider_rankings[provider] = rankings
        for ranking in rankings:
            provider_comparison.setdefault(ranking.name, {})[provider] = ranking.visibility_score

    return provider_rankings, provider_comparison


def calculate_brand_scores(
    responses: list[AIResponse],
    brand_name: str,
    rankings: list[CompetitorRanking],
) -> dict[str, float | None]:
    own = next((r for r in rankings if r.is_own), None)
    if own is None:
        own = next((r for r in rankings if r.name == brand_name), CompetitorRanking(name=brand_name, is_own=True))

    position_score = position_weight(round(own.average_position)) * 100 if own.average_position else 0.0
    overall = 0.5 * own.visibility_score + 0.3 * own.share_of_voice + 0.2 * position_score

    scores = {
        "visibility_score": own.visibility_score,
        "share_of_voice": own.share_of_voice,
        "average_position": own.average_position,
        "position_score": round(position_score, 2),
        "overall_score": round(overall, 2),
    }

    logger.debug(
        "Scoring: brand=%s, responses=%d, visibility=%.2f, sov=%.2f, position=%s → overall=%.2f",
        brand_name,
        len(responses),
        own.visibility_score,
        own.share_of_voice,
        own.average_position,
        scores["overall_score"],
    )
    return scores
