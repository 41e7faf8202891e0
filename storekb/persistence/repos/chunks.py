from __future__ import annotations

from typing import Sequence
from uuid import uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storekb.domain.documents import ChunkDraft
from storekb.domain.models import KnowledgeChunk


async def delete_chunks(session: AsyncSession, doc_id: str) -> int:
    result = await session.execute(delete(KnowledgeChunk).where(KnowledgeChunk.doc_id == doc_id))
    return int(result.rowcount or 0)


async def replace_chunks(
    session: AsyncSession,
    *,
    doc_id: str,
    tenant_id: str,
    is_active: bool,
    drafts: Sequence[ChunkDraft],
) -> list[KnowledgeChunk]:
    # Full replacement: old rows go before new rows land, never an incremental patch.
    await delete_chunks(session, doc_id)
    rows = [
        KnowledgeChunk(
            id=uuid4(),
            doc_id=doc_id,
            tenant_id=tenant_id,
            chunk_index=draft.chunk_index,
            chunk_text=draft.chunk_text,
            chunk_tokens=draft.chunk_tokens,
            embedding=draft.embedding,
            is_active=is_active,
        )
        for draft in drafts
    ]
    session.add_all(rows)
    await session.flush()
    return rows


async def list_chunks(session: AsyncSession, doc_id: str) -> list[KnowledgeChunk]:
    result = await session.execute(
        select(KnowledgeChunk)
        .where(KnowledgeChunk.doc_id == doc_id)
        .order_by(KnowledgeChunk.chunk_index)
    )
    return list(result.scalars().all())


async def count_chunks(session: AsyncSession, doc_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(KnowledgeChunk).where(KnowledgeChunk.doc_id == doc_id)
    )
    return int(result.scalar() or 0)


async def count_chunks_by_document(session: AsyncSession, tenant_id: str) -> dict[str, int]:
    result = await session.execute(
        select(KnowledgeChunk.doc_id, func.count())
        .where(KnowledgeChunk.tenant_id == tenant_id)
        .group_by(KnowledgeChunk.doc_id)
    )
    return {doc_id: int(count) for doc_id, count in result.all()}
