"""knowledge base documents and chunks

Revision ID: 0001_knowledge_base
Revises:
Create Date: 2026-10-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from pgvector.sqlalchemy import Vector

from storekb.core.config import EMBED_DIM


revision = "0001_knowledge_base"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Ensure pgvector is enabled for every environment, not just manual setup.
    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "knowledge_base_docs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("doc_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("source_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("tenant_id", "doc_type", "source", "source_id", name="uq_kb_docs_source_key"),
    )
    op.create_index("ix_knowledge_base_docs_tenant_id", "knowledge_base_docs", ["tenant_id"])
    op.create_index("ix_kb_docs_tenant_doc_type", "knowledge_base_docs", ["tenant_id", "doc_type"])

    op.create_table(
        "knowledge_base_chunks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "doc_id",
            sa.String(),
            sa.ForeignKey("knowledge_base_docs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("chunk_index", sa.Integer(), nullable=False),
        sa.Column("chunk_text", sa.Text(), nullable=False),
        sa.Column("chunk_tokens", sa.Integer(), nullable=False),
        sa.Column("embedding", Vector(EMBED_DIM), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("doc_id", "chunk_index", name="uq_kb_chunks_doc_index"),
    )
    op.create_index("ix_knowledge_base_chunks_doc_id", "knowledge_base_chunks", ["doc_id"])
    op.create_index("ix_knowledge_base_chunks_tenant_id", "knowledge_base_chunks", ["tenant_id"])
    op.create_index("ix_kb_chunks_tenant_active", "knowledge_base_chunks", ["tenant_id", "is_active"])


def downgrade() -> None:
    op.drop_index("ix_kb_chunks_tenant_active", table_name="knowledge_base_chunks")
    op.drop_index("ix_knowledge_base_chunks_tenant_id", table_name="knowledge_base_chunks")
    op.drop_index("ix_knowledge_base_chunks_doc_id", table_name="knowledge_base_chunks")
    op.drop_table("knowledge_base_chunks")

    op.drop_index("ix_kb_docs_tenant_doc_type", table_name="knowledge_base_docs")
    op.drop_index("ix_knowledge_base_docs_tenant_id", table_name="knowledge_base_docs")
    op.drop_table("knowledge_base_docs")
