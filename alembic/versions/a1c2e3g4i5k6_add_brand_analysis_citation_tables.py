"""add brand analysis and citation tables

Revision ID: a1c2e3g4i5k6
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "a1c2e3g4i5k6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # =========================================================
    # 1. brand_analyses
    # =========================================================
    op.create_table(
        "brand_analyses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("url", sa.String(2000), nullable=False),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("industry", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("analysis_data", JSONB(), nullable=True),
        sa.Column("competitors", JSONB(), nullable=True),
        sa.Column("prompts", JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # =========================================================
    # 2. citations (raw, one row per citation)
    # =========================================================
    op.create_table(
        "citations",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "analysis_id",
            UUID(as_uuid=True),
            sa.ForeignKey("brand_analyses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider", sa.String(100), nullable=False),
        sa.Column("prompt_id", sa.String(255), nullable=True),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("snippet", sa.Text(), nullable=True),
        sa.Column("source", sa.String(255), nullable=True),
        sa.Column("date", sa.String(100), nullable=True),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("mentioned_companies", JSONB(), nullable=True),
        sa.Column("confidence", sa.String(20), nullable=False, server_default="real"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_citations_analysis_id", "citations", ["analysis_id"])
    op.create_index("ix_citations_provider", "citations", ["provider"])
    op.create_index("ix_citations_url", "citations", ["url"])

    # =========================================================
    # 3. citation_sources (url-level aggregate)
    # =========================================================
    op.create_table(
        "citation_sources",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "analysis_id",
            UUID(as_uuid=True),
            sa.ForeignKey("brand_analyses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("frequency", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("providers", JSONB(), nullable=True),
        sa.Column("mentioned_companies", JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_citation_sources_analysis_id", "citation_sources", ["analysis_id"])
    op.create_index("ix_citation_sources_domain", "citation_sources", ["domain"])


def downgrade() -> None:
    op.drop_index("ix_citation_sources_domain", table_name="citation_sources")
    op.drop_index("ix_citation_sources_analysis_id", table_name="citation_sources")
    op.drop_table("citation_sources")
    op.drop_index("ix_citations_url", table_name="citations")
    op.drop_index("ix_citations_provider", table_name="citations")
    op.drop_index("ix_citations_analysis_id", table_name="citations")
    op.drop_table("citations")
    op.drop_table("brand_analyses")
