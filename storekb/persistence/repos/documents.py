from __future__ import annotations

from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from storekb.domain.documents import (
    DOC_TYPE_MANUAL,
    PRIORITY_MANUAL,
    SOURCE_MANUAL,
    STATUS_ACTIVE,
    DocumentKey,
)
from storekb.domain.models import KnowledgeChunk, KnowledgeDocument


def new_document_id() -> str:
    return str(uuid4())


async def get_document(session: AsyncSession, tenant_id: str, doc_id: str) -> KnowledgeDocument | None:
    # Return None for tenant mismatch to keep not-found semantics.
    result = await session.execute(
        select(KnowledgeDocument).where(
            KnowledgeDocument.id == doc_id,
            KnowledgeDocument.tenant_id == tenant_id,
        )
    )
    return result.scalar_one_or_none()


async def get_by_key(session: AsyncSession, key: DocumentKey) -> KnowledgeDocument | None:
    result = await session.execute(
        select(KnowledgeDocument).where(
            KnowledgeDocument.tenant_id == key.tenant_id,
            KnowledgeDocument.doc_type == key.doc_type,
            KnowledgeDocument.source == key.source,
            KnowledgeDocument.source_id == key.source_id,
        )
    )
    return result.scalar_one_or_none()


async def find_or_create(
    session: AsyncSession,
    key: DocumentKey,
    *,
    title: str,
    content: str,
    priority: int,
    status: str = STATUS_ACTIVE,
) -> KnowledgeDocument:
    """Upsert a document by its natural key.

    Existing rows are updated in place so the document id (and chunk ownership)
    stays stable across syncs. Callers sync sequentially, so no row lock is taken.
    """
    doc = await get_by_key(session, key)
    if doc is None:
        doc = KnowledgeDocument(
            id=new_document_id(),
            tenant_id=key.tenant_id,
            doc_type=key.doc_type,
            source=key.source,
            source_id=key.source_id,
            title=title,
            content=content,
            priority=priority,
            status=status,
        )
        session.add(doc)
    else:
        doc.title = title
        doc.content = content
        doc.priority = priority
        doc.status = status
    await session.flush()
    return doc


async def create_manual_document(
    session: AsyncSession,
    *,
    tenant_id: str,
    title: str,
    content: str,
    doc_type: str = DOC_TYPE_MANUAL,
    priority: int = PRIORITY_MANUAL,
    status: str = STATUS_ACTIVE,
) -> KnowledgeDocument:
    # Manual docs get a generated source_id so they never collide with synced docs.
    key = DocumentKey(
        tenant_id=tenant_id,
        doc_type=doc_type,
        source=SOURCE_MANUAL,
        source_id=uuid4().hex,
    )
    return await find_or_create(
        session, key, title=title, content=content, priority=priority, status=status
    )


async def list_documents(
    session: AsyncSession, tenant_id: str, doc_type: str | None = None
) -> list[KnowledgeDocument]:
    # Tenant scoping prevents cross-tenant leakage.
    stmt = select(KnowledgeDocument).where(KnowledgeDocument.tenant_id == tenant_id)
    if doc_type:
        stmt = stmt.where(KnowledgeDocument.doc_type == doc_type)
    result = await session.execute(
        stmt.order_by(KnowledgeDocument.priority, KnowledgeDocument.created_at, KnowledgeDocument.id)
    )
    return list(result.scalars().all())

