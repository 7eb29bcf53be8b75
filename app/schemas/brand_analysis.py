import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AnalysisCreate(BaseModel):
    url: str = Field(min_length=1, max_length=2000)
    company_name: str | None = Field(None, max_length=255)
    industry: str | None = Field(None, max_length=255)
    description: str | None = None
    analysis_data: dict[str, Any]
    competitors: list[str] = []
    prompts: list[Any] = []
    # Per-response citations to persist; defaults to analysis_data["responses"]
    responses: list[dict[str, Any]] | None = None
    citation_analysis: dict[str, Any] | None = None


class AnalysisResponse(BaseModel):
    id: uuid.UUID
    url: str
    company_name: str | None
    industry: str | None
    description: str | None
    analysis_data: dict[str, Any] | None
    competitors: list[str] | None
    prompts: list[Any] | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AnalysisWithCitationsResponse(AnalysisResponse):
    citation_analysis: dict[str, Any] | None = None


class CitationDeleteResponse(BaseModel):
    analysis_id: uuid.UUID
    deleted: int


class CompetitorIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class AnalyzeRequest(BaseModel):
    company_name: str = Field(min_length=1, max_length=255)
    url: str = Field("", max_length=2000)
    industry: str = Field("", max_length=255)
    description: str = ""
    known_competitors: list[str] = []
    competitors: list[CompetitorIn] = []  # user-selected, override identification
    prompts: list[str] = Field([], max_length=50)
    providers: list[str] | None = None
    use_web_search: bool | None = None
