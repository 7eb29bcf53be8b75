"""Tests for the brand monitor API."""

import json
import uuid
from unittest.mock import patch

import pytest
from httpx import AsyncClient

from app.analysis.types import CitationAnalysis

RESPONSES = [
    {
        "provider": "openai",
        "prompt": "best crm",
        "response": "1. Acme\n2. Zenith",
        "citations": [
            {"url": "https://g2.com/a", "title": "Acme review", "mentioned_companies": ["Acme"], "position": 0},
            {"url": "https://forbes.com/b", "mentioned_companies": ["Zenith"], "position": 1},
        ],
    },
    {
        "provider": "Anthropic",
        "prompt": "best crm",
        "response": "Zenith leads.",
        "citations": [{"url": "https://g2.com/a", "mentioned_companies": ["Acme", "Zenith"], "position": 0}],
    },
]


def _payload(**overrides) -> dict:
    payload = {
        "url": "https://acme.com",
        "company_name": "Acme",
        "industry": "CRM",
        "analysis_data": {"responses": RESPONSES},
        "competitors": ["Zenith"],
        "prompts": [{"id": "ranking-0", "prompt": "best crm", "category": "ranking"}],
    }
    payload.update(overrides)
    return payload


class TestSaveAndGet:
    @pytest.mark.asyncio
    async def test_save_then_reconstruct(self, client: AsyncClient):
        resp = await client.post("/api/v1/brand-monitor/analyses", json=_payload())
        assert resp.status_code == 201
        analysis_id = resp.json()["id"]

        resp = await client.get(f"/api/v1/brand-monitor/analyses/{analysis_id}")
        assert resp.status_code == 200
        citation_analysis = resp.json()["citation_analysis"]
        assert citation_analysis["total_sources"] == 2
        assert citation_analysis["top_sources"][0]["url"] == "https://g2.com/a"
        assert citation_analysis["top_sources"][0]["providers"] == ["OpenAI", "Anthropic"]
        assert citation_analysis["brand_citations"]["total_citations"] == 2
        assert set(citation_analysis["provider_breakdown"]) == {"OpenAI", "Anthropic"}

    @pytest.mark.asyncio
    async def test_stored_citation_analysis_preferred(self, client: AsyncClient):
        stored = CitationAnalysis(total_sources=42).to_dict()
        resp = await client.post(
            "/api/v1/brand-monitor/analyses",
            json=_payload(analysis_data={"responses": RESPONSES, "citation_analysis": stored}),
        )
        analysis_id = resp.json()["id"]

        resp = await client.get(f"/api/v1/brand-monitor/analyses/{analysis_id}")
        assert resp.json()["citation_analysis"]["total_sources"] == 42

    @pytest.mark.asyncio
    async def test_no_citations_gives_null(self, client: AsyncClient):
        resp = await client.post("/api/v1/brand-monitor/analyses", json=_payload(analysis_data={"responses": []}))
        analysis_id = resp.json()["id"]

        resp = await client.get(f"/api/v1/brand-monitor/analyses/{analysis_id}")
        assert resp.status_code == 200
        assert resp.json()["citation_analysis"] is None

    @pytest.mark.asyncio
    async def test_citation_failure_does_not_fail_save(self, client: AsyncClient):
        with patch(
            "app.services.brand_analysis_service.citation_store.save_citations", side_effect=RuntimeError("db down")
        ):
            resp = await client.post("/api/v1/brand-monitor/analyses", json=_payload())
        assert resp.status_code == 201

        resp = await client.get(f"/api/v1/brand-monitor/analyses/{resp.json()['id']}")
        # Sources were saved, raw citations were not
        citation_analysis = resp.json()["citation_analysis"]
        assert citation_analysis["total_sources"] == 2
        assert citation_analysis["brand_citations"]["total_citations"] == 0

    @pytest.mark.asyncio
    async def test_reconstruction_failure_returns_analysis(self, client: AsyncClient):
        resp = await client.post("/api/v1/brand-monitor/analyses", json=_payload())
        analysis_id = resp.json()["id"]
        with patch(
            "app.services.brand_analysis_service.citation_store.reconstruct_citation_analysis",
            side_effect=RuntimeError("boom"),
        ):
            resp = await client.get(f"/api/v1/brand-monitor/analyses/{analysis_id}")
        assert resp.status_code == 200
        assert resp.json()["citation_analysis"] is None

    @pytest.mark.asyncio
    async def test_malformed_citation_fields_still_saved(self, client: AsyncClient):
        responses = [
            {
                "provider": "openai",
                "prompt": "best crm",
                "response": "Acme leads.",
                "confidence": "n/a",
                "citations": [
                    {"url": "https://g2.com/a", "confidence": "high", "mentionedCompanies": "Acme", "position": "first"}
                ],
            }
        ]
        resp = await client.post("/api/v1/brand-monitor/analyses", json=_payload(analysis_data={"responses": responses}))
        assert resp.status_code == 201
        analysis_id = resp.json()["id"]

        resp = await client.get(f"/api/v1/brand-monitor/analyses/{analysis_id}")
        assert resp.status_code == 200
        top = resp.json()["citation_analysis"]["top_sources"][0]
        assert top["url"] == "https://g2.com/a"
        assert top["mentioned_companies"] == []

        resp = await client.get(f"/api/v1/brand-monitor/analyses/{analysis_id}/citation-metrics")
        assert resp.json()["total_citations"] == 1

    @pytest.mark.asyncio
    async def test_malformed_citation_analysis_still_saved(self, client: AsyncClient):
        resp = await client.post(
            "/api/v1/brand-monitor/analyses",
            json=_payload(citation_analysis={"total_sources": "many", "top_sources": "g2.com"}),
        )
        assert resp.status_code == 201

        resp = await client.get(f"/api/v1/brand-monitor/analyses/{resp.json()['id']}")
        assert resp.status_code == 200
        assert resp.json()["company_name"] == "Acme"

    @pytest.mark.asyncio
    async def test_missing_analysis(self, client: AsyncClient):
        resp = await client.get(f"/api/v1/brand-monitor/analyses/{uuid.uuid4()}")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_validation(self, client: AsyncClient):
        resp = await client.post("/api/v1/brand-monitor/analyses", json={"url": "https://acme.com"})
        assert resp.status_code == 422


class TestDeleteCitations:
    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient):
        resp = await client.post("/api/v1/brand-monitor/analyses", json=_payload())
        analysis_id = resp.json()["id"]

        resp = await client.delete(f"/api/v1/brand-monitor/analyses/{analysis_id}/citations")
        assert resp.status_code == 200
        assert resp.json()["deleted"] == 3

        resp = await client.get(f"/api/v1/brand-monitor/analyses/{analysis_id}")
        assert resp.json()["citation_analysis"] is None

    @pytest.mark.asyncio
    async def test_delete_missing(self, client: AsyncClient):
        resp = await client.delete(f"/api/v1/brand-monitor/analyses/{uuid.uuid4()}/citations")
        assert resp.status_code == 404


class TestCitationMetrics:
    @pytest.mark.asyncio
    async def test_metrics(self, client: AsyncClient):
        resp = await client.post("/api/v1/brand-monitor/analyses", json=_payload())
        analysis_id = resp.json()["id"]

        resp = await client.get(f"/api/v1/brand-monitor/analyses/{analysis_id}/citation-metrics")
        assert resp.status_code == 200
        metrics = resp.json()
        assert metrics["total_citations"] == 3
        assert metrics["brand"]["citation_count"] == 2
        assert metrics["competitors"]["Zenith"]["citation_count"] == 2
        assert metrics["share_of_voice"] == {"brand": 50.0, "competitors": {"Zenith": 50.0}}
        assert metrics["citation_gap"]["gap"] == 0


class TestAnalyzeStream:
    @pytest.mark.asyncio
    async def test_streams_events_until_complete(self, client: AsyncClient):
        resp = await client.post(
            "/api/v1/brand-monitor/analyze",
            json={"company_name": "Acme", "industry": "CRM", "known_competitors": ["Zenith"], "prompts": ["best crm"]},
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")

        frames = [f for f in resp.text.split("\n\n") if f.strip()]
        event_names = [f.split("\n")[0].removeprefix("event: ") for f in frames]
        assert event_names[0] == "start"
        assert event_names[-1] == "complete"

        result = json.loads(frames[-1].split("\n", 1)[1].removeprefix("data: "))["data"]["analysis"]
        assert result["company"]["name"] == "Acme"
        assert len(result["responses"]) == 1
        assert result["responses"][0]["provider"] == "Mock"


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
