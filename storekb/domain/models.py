from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from pgvector.sqlalchemy import Vector

from storekb.core.config import EMBED_DIM


class Base(DeclarativeBase):
    pass


class KnowledgeDocument(Base):
    __tablename__ = "knowledge_base_docs"
    __table_args__ = (
        # Idempotency key for synced documents; manual docs use a generated source_id.
        UniqueConstraint("tenant_id", "doc_type", "source", "source_id", name="uq_kb_docs_source_key"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    title: Mapped[str] = mapped_column(String)
    doc_type: Mapped[str] = mapped_column(String)
    status: Mapped[str] = mapped_column(String, default="active")
    # Lower values rank first at retrieval time.
    priority: Mapped[int] = mapped_column(Integer, default=50)
    content: Mapped[str] = mapped_column(Text, default="")
    source: Mapped[str] = mapped_column(String)
    source_id: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class KnowledgeChunk(Base):
    __tablename__ = "knowledge_base_chunks"
    __table_args__ = (
        UniqueConstraint("doc_id", "chunk_index", name="uq_kb_chunks_doc_index"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    doc_id: Mapped[str] = mapped_column(
        String, ForeignKey("knowledge_base_docs.id", ondelete="CASCADE"), index=True
    )
    # Denormalized so retrieval can scope by tenant without joining documents.
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    chunk_index: Mapped[int] = mapped_column(Integer)
    chunk_text: Mapped[str] = mapped_column(Text)
    chunk_tokens: Mapped[int] = mapped_column(Integer)
    # Keep vector dimension aligned with embedding generation.
    embedding: Mapped[list[float]] = mapped_column(Vector(EMBED_DIM))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# Collaborator tables owned by the storefront; mapped here for read-only sync queries.


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    sku: Mapped[str | None] = mapped_column(String, nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    slug: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    slug: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class StoreSettings(Base):
    __tablename__ = "store_settings"

    tenant_id: Mapped[str] = mapped_column(String, primary_key=True)
    return_policy: Mapped[str | None] = mapped_column(Text, nullable=True)
    shipping_policy: Mapped[str | None] = mapped_column(Text, nullable=True)
    privacy_policy: Mapped[str | None] = mapped_column(Text, nullable=True)
    terms_of_service: Mapped[str | None] = mapped_column(Text, nullable=True)


Index("ix_kb_docs_tenant_doc_type", KnowledgeDocument.tenant_id, KnowledgeDocument.doc_type)
Index("ix_kb_chunks_tenant_active", KnowledgeChunk.tenant_id, KnowledgeChunk.is_active)
Index("ix_products_tenant_updated_at", Product.tenant_id, Product.updated_at.desc())
Index("ix_categories_tenant_updated_at", Category.tenant_id, Category.updated_at.desc())
