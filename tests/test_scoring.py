"""Tests for visibility scoring."""

import pytest

from app.analysis.scoring import (
    analyze_competitors,
    analyze_competitors_by_provider,
    calculate_brand_scores,
    find_list_position,
    position_weight,
)
from app.analysis.types import AIResponse


def _resp(provider: str, brand: bool, competitors: list[str], text: str = "", position: int | None = None):
    return AIResponse(
        provider=provider,
        prompt="p",
        response=text,
        brand_mentioned=brand,
        brand_position=position,
        competitors=competitors,
    )


class TestPositionWeight:
    @pytest.mark.parametrize("rank,weight", [(1, 1.0), (2, 0.9), (5, 0.6), (10, 0.1), (25, 0.1), (0, 0.0)])
    def test_weights(self, rank, weight):
        assert position_weight(rank) == weight


class TestFindListPosition:
    def test_numbered_list(self):
        text = "Options:\n1. Zenith\n2) Acme Cloud\n3. Orbit"
        assert find_list_position(text, "Acme") == 2
        assert find_list_position(text, "Orbit") == 3

    def test_not_in_list(self):
        assert find_list_position("Acme is great.", "Acme") is None
        assert find_list_position("", "Acme") is None


class TestAnalyzeCompetitors:
    def test_visibility_and_share(self):
        responses = [
            _resp("OpenAI", True, ["Zenith"], position=1),
            _resp("OpenAI", True, [], position=3),
            _resp("Google", False, ["Zenith", "Orbit"]),
            _resp("Google", False, []),
        ]
        rankings = {r.name: r for r in analyze_competitors("Acme", responses, ["Zenith", "Orbit"])}

        assert rankings["Acme"].is_own
        assert rankings["Acme"].visibility_score == 50.0
        assert rankings["Acme"].average_position == 2.0
        assert rankings["Zenith"].mentions == 2
        assert rankings["Orbit"].visibility_score == 25.0
        assert rankings["Acme"].share_of_voice == 40.0
        assert rankings["Orbit"].share_of_voice == 20.0

    def test_sorted_by_visibility(self):
        responses = [_resp("OpenAI", False, ["Orbit"]), _resp("OpenAI", True, ["Orbit"])]
        rankings = analyze_competitors("Acme", responses, ["Zenith", "Orbit"])
        assert [r.name for r in rankings] == ["Orbit", "Acme", "Zenith"]

    def test_competitor_position_from_text(self):
        responses = [_resp("OpenAI", True, ["Zenith"], text="1. Zenith\n2. Acme", position=2)]
        rankings = {r.name: r for r in analyze_competitors("Acme", responses, ["Zenith"])}
        assert rankings["Zenith"].average_position == 1.0

    def test_no_responses(self):
        rankings = analyze_competitors("Acme", [], ["Zenith"])
        assert all(r.visibility_score == 0.0 and r.share_of_voice == 0.0 for r in rankings)


class TestByProvider:
    def test_comparison_table(self):
        responses = [_resp("OpenAI", True, []), _resp("Google", False, ["Zenith"])]
        provider_rankings, comparison = analyze_competitors_by_provider("Acme", responses, ["Zenith"])
        assert set(provider_rankings) == {"OpenAI", "Google"}
        assert comparison["Acme"] == {"OpenAI": 100.0, "Google": 0.0}
        assert comparison["Zenith"] == {"OpenAI": 0.0, "Google": 100.0}


class TestBrandScores:
    def test_overall_formula(self):
        responses = [_resp("OpenAI", True, ["Zenith"], position=1), _resp("OpenAI", False, ["Zenith"])]
        rankings = analyze_competitors("Acme", responses, ["Zenith"])
        scores = calculate_brand_scores(responses, "Acme", rankings)

        # visibility 50, share of voice 33.33, position 1 → 100
        assert scores["visibility_score"] == 50.0
        assert scores["share_of_voice"] == 33.33
        assert scores["position_score"] == 100.0
        assert scores["overall_score"] == pytest.approx(0.5 * 50 + 0.3 * 33.33 + 0.2 * 100, abs=0.01)

    def test_unranked_brand_has_zero_position_score(self):
        responses = [_resp("OpenAI", True, [])]
        scores = calculate_brand_scores(responses, "Acme", analyze_competitors("Acme", responses, []))
        assert scores["average_position"] is None
        assert scores["position_score"] == 0.0
        assert scores["overall_score"] == 80.0
