import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, JsonType


class BrandAnalysis(Base):
    """One saved brand-visibility analysis run."""

    __tablename__ = "brand_analyses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    url: Mapped[str] = mapped_column(String(2000), nullable=False)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Full AnalysisResult payload; may carry a precomputed "citation_analysis"
    analysis_data: Mapped[dict | None] = mapped_column(JsonType, nullable=True)
    competitors: Mapped[list | None] = mapped_column(JsonType, nullable=True)  # ["Zenith", ...]
    prompts: Mapped[list | None] = mapped_column(JsonType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    citations: Mapped[list["CitationRecord"]] = relationship(  # noqa: F821
        "CitationRecord", back_populates="analysis", cascade="all, delete-orphan", passive_deletes=True
    )
    citation_sources: Mapped[list["CitationSourceRecord"]] = relationship(  # noqa: F821
        "CitationSourceRecord", back_populates="analysis", cascade="all, delete-orphan", passive_deletes=True
    )
