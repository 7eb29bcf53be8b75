import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, JsonType

# BIGSERIAL on PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY
_PkType = BigInteger().with_variant(Integer, "sqlite")


class CitationRecord(Base):
    """One citation attached to one provider response. Raw evidence: never deduplicated."""

    __tablename__ = "citations"

    id: Mapped[int] = mapped_column(_PkType, primary_key=True, autoincrement=True)
    analysis_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("brand_analyses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider: Mapped[str] = mapped_column(String(100), nullable=False, index=True)  # canonical provider name
    prompt_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    url: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    snippet: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str | None] = mapped_column(String(255), nullable=True)
    date: Mapped[str | None] = mapped_column(String(100), nullable=True)
    position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mentioned_companies: Mapped[list | None] = mapped_column(JsonType, nullable=True)
    confidence: Mapped[str] = mapped_column(String(20), nullable=False, default="real")  # real | synthetic

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    analysis: Mapped["BrandAnalysis"] = relationship("BrandAnalysis", back_populates="citations")  # noqa: F821


class CitationSourceRecord(Base):
    """One aggregated source (url) of an analysis run."""

    __tablename__ = "citation_sources"

    id: Mapped[int] = mapped_column(_PkType, primary_key=True, autoincrement=True)
    analysis_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("brand_analyses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    frequency: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    providers: Mapped[list | None] = mapped_column(JsonType, nullable=True)  # ["OpenAI", "Anthropic"]
    mentioned_companies: Mapped[list | None] = mapped_column(JsonType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    analysis: Mapped["BrandAnalysis"] = relationship("BrandAnalysis", back_populates="citation_sources")  # noqa: F821
