"""Tests for parsing stored and client-supplied analysis JSON."""

from app.analysis.types import AIResponse, Citation, CitationAnalysis, CitationConfidence


class TestCitationFromDict:
    def test_unknown_confidence_is_real(self):
        assert Citation.from_dict({"url": "https://a.com", "confidence": "high"}).confidence == CitationConfidence.REAL
        assert Citation.from_dict({"url": "https://a.com", "confidence": None}).confidence == CitationConfidence.REAL

    def test_synthetic_kept(self):
        citation = Citation.from_dict({"url": "https://a.com", "confidence": "synthetic"})
        assert citation.is_synthetic

    def test_mentions_must_be_a_list(self):
        assert Citation.from_dict({"url": "https://a.com", "mentionedCompanies": "Acme"}).mentioned_companies == []
        assert Citation.from_dict({"url": "https://a.com", "mentionedCompanies": ["Acme", 3]}).mentioned_companies == [
            "Acme"
        ]

    def test_position(self):
        assert Citation.from_dict({"position": 0}).position == 0
        assert Citation.from_dict({"position": "2"}).position == 2
        assert Citation.from_dict({"position": "first"}).position is None


class TestAIResponseFromDict:
    def test_bad_numbers_ignored(self):
        response = AIResponse.from_dict({"provider": "OpenAI", "confidence": "n/a", "brandPosition": "x"})
        assert response.confidence == 0.0
        assert response.brand_position is None

    def test_non_list_fields(self):
        response = AIResponse.from_dict({"competitors": "Zenith", "citations": {"url": "https://a.com"}})
        assert response.competitors == []
        assert response.citations == []


class TestCitationAnalysisFromDict:
    def test_malformed_aggregate(self):
        analysis = CitationAnalysis.from_dict(
            {"total_sources": "many", "top_sources": "g2.com", "competitor_citations": ["Zenith"]}
        )
        assert analysis.total_sources == 0
        assert analysis.top_sources == []
        assert analysis.competitor_citations == {}

    def test_round_trip(self):
        analysis = CitationAnalysis(total_sources=3, synthetic_citations=1)
        assert CitationAnalysis.from_dict(analysis.to_dict()).to_dict() == analysis.to_dict()
