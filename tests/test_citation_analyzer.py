"""Tests for the Citation Aggregator."""

from app.analysis.citation_analyzer import analyze_citations, top_domains
from app.analysis.competitive_metrics import calculate_brand_vs_competitor_metrics
from app.analysis.types import AIResponse, Citation, CitationConfidence


def _cit(url: str, mentioned: list[str] | None = None, **kwargs) -> Citation:
    return Citation(url=url, mentioned_companies=mentioned or [], **kwargs)


def _resp(provider: str, *citations: Citation) -> AIResponse:
    return AIResponse(provider=provider, prompt="p", response="r", citations=list(citations))


class TestScenarios:
    def test_same_url_across_providers(self):
        responses = [
            _resp("OpenAI", _cit("https://g2.com/a", ["Acme"])),
            _resp("Claude", _cit("https://g2.com/a", ["Acme"])),
        ]
        analysis = analyze_citations(responses, "Acme", [])

        assert analysis.total_sources == 1
        source = analysis.top_sources[0]
        assert source.frequency == 2
        assert source.providers == ["OpenAI", "Claude"]
        assert source.domain == "g2.com"
        assert analysis.brand_citations.total_citations == 2


class TestFrequencyInvariant:
    def test_sum_of_frequencies_equals_citation_count(self):
        responses = [
            _resp("OpenAI", _cit("https://a.com/1"), _cit("https://b.com/1"), _cit("https://a.com/1")),
            _resp("Google", _cit("https://b.com/1"), _cit("https://c.com/1")),
            _resp("Perplexity"),
        ]
        analysis = analyze_citations(responses, "Acme", ["Zenith"])
        assert sum(s.frequency for s in analysis.top_sources) == 5
        assert analysis.total_sources == 3

    def test_empty_url_citation_still_counted(self):
        responses = [_resp("OpenAI", _cit("https://g2.com/a", ["Acme"]), _cit("", ["Acme"]))]
        analysis = analyze_citations(responses, "Acme", [])
        metrics = calculate_brand_vs_competitor_metrics(responses, "Acme", [])

        assert sum(s.frequency for s in analysis.top_sources) == 2
        assert metrics.total_citations == 2
        assert analysis.brand_citations.total_citations == metrics.brand.citation_count

    def test_empty(self):
        analysis = analyze_citations([], "Acme", ["Zenith"])
        assert analysis.total_sources == 0
        assert analysis.top_sources == []
        assert analysis.brand_citations.total_citations == 0
        assert analysis.competitor_citations["Zenith"].total_citations == 0


class TestUnionMonotonicity:
    def test_providers_and_mentions_only_grow(self):
        responses = [
            _resp("OpenAI", _cit("https://g2.com/a", ["Acme"])),
            _resp("Google", _cit("https://g2.com/a", [])),
            _resp("OpenAI", _cit("https://g2.com/a", ["Zenith"])),
        ]
        source = analyze_citations(responses, "Acme", ["Zenith"]).top_sources[0]
        assert source.providers == ["OpenAI", "Google"]
        assert source.mentioned_companies == ["Acme", "Zenith"]


class TestBuckets:
    def test_co_mention_lands_in_every_bucket(self):
        shared = _cit("https://forbes.com/x", ["Acme", "Zenith", "Orbit"])
        analysis = analyze_citations([_resp("OpenAI", shared)], "Acme", ["Zenith", "Orbit"])
        assert analysis.brand_citations.total_citations == 1
        assert analysis.competitor_citations["Zenith"].total_citations == 1
        assert analysis.competitor_citations["Orbit"].total_citations == 1

    def test_untracked_citation_in_no_bucket(self):
        analysis = analyze_citations([_resp("OpenAI", _cit("https://x.com", ["Other"]))], "Acme", ["Zenith"])
        assert analysis.brand_citations.total_citations == 0
        assert analysis.competitor_citations["Zenith"].sources == []
        assert analysis.total_sources == 1

    def test_brand_top_domains_limited_to_five(self):
        citations = [_cit(f"https://site{i}.com/a", ["Acme"]) for i in range(7)]
        analysis = analyze_citations([_resp("OpenAI", *citations)], "Acme", [])
        assert analysis.brand_citations.top_domains == [f"site{i}.com" for i in range(5)]


class TestOrdering:
    def test_ties_keep_first_seen_order(self):
        responses = [
            _resp("OpenAI", _cit("https://c.com"), _cit("https://a.com")),
            _resp("Google", _cit("https://b.com"), _cit("https://b.com")),
        ]
        analysis = analyze_citations(responses, "Acme", [])
        assert [s.url for s in analysis.top_sources] == ["https://b.com", "https://c.com", "https://a.com"]

    def test_top_domains_ties_by_encounter(self):
        citations = [_cit("https://z.com/1"), _cit("https://y.com/1"), _cit("https://y.com/2"), _cit("https://z.com/2")]
        assert top_domains(citations) == ["z.com", "y.com"]


class TestProviderBreakdown:
    def test_per_provider_fold(self):
        responses = [
            _resp("OpenAI", _cit("https://a.com"), _cit("https://b.com"), _cit("https://b.com")),
            _resp("Google", _cit("https://a.com")),
        ]
        breakdown = analyze_citations(responses, "Acme", []).provider_breakdown
        assert [(s.url, s.frequency) for s in breakdown["OpenAI"]] == [("https://b.com", 2), ("https://a.com", 1)]
        assert [(s.url, s.frequency) for s in breakdown["Google"]] == [("https://a.com", 1)]
        assert breakdown["Google"][0].providers == ["Google"]


class TestSyntheticCount:
    def test_counts_synthetic(self):
        responses = [
            _resp(
                "OpenAI",
                _cit("https://g2.com/article-1", confidence=CitationConfidence.SYNTHETIC),
                _cit("https://a.com"),
            )
        ]
        assert analyze_citations(responses, "Acme", []).synthetic_citations == 1
