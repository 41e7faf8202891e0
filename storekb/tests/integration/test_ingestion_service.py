from __future__ import annotations

import pytest
from sqlalchemy.exc import SQLAlchemyError

from storekb.core.config import EMBED_DIM
from storekb.core.errors import (
    ChunkPersistenceError,
    DocumentNotFoundError,
    EmbeddingProviderError,
)
from storekb.domain.documents import STATUS_INACTIVE
from storekb.persistence.db import SessionLocal
from storekb.persistence.repos import chunks as chunks_repo
from storekb.persistence.repos import documents as documents_repo
from storekb.providers.embeddings.hash_embeddings import HashEmbeddingProvider
from storekb.services.ingestion import IngestionService
from storekb.services.telemetry import get_counter


LONG_CONTENT = " ".join(
    f"Frase {i} descreve a política de trocas da loja com detalhes suficientes." for i in range(40)
)


class FailingProvider:
    name = "failing"

    async def embed(self, texts: list[str]) -> list[list[float]]:
        raise EmbeddingProviderError("OpenAI embeddings error: 500")


class ShortProvider:
    name = "short"

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [[0.0] * EMBED_DIM for _ in texts[:-1]]


async def _create_doc(tenant_id: str = "t1", content: str = LONG_CONTENT, status: str = "active") -> str:
    async with SessionLocal() as session:
        doc = await documents_repo.create_manual_document(
            session, tenant_id=tenant_id, title="Trocas", content=content, status=status
        )
        await session.commit()
        return doc.id


@pytest.mark.asyncio
async def test_ingest_writes_contiguous_chunks() -> None:
    doc_id = await _create_doc()

    async with SessionLocal() as session:
        service = IngestionService(session, HashEmbeddingProvider(), max_tokens=100, overlap_tokens=10)
        result = await service.ingest("t1", doc_id)
        rows = await chunks_repo.list_chunks(session, doc_id)

    assert result.chunks_created > 1
    assert len(rows) == result.chunks_created
    assert [row.chunk_index for row in rows] == list(range(result.chunks_created))
    assert sum(row.chunk_tokens for row in rows) == result.total_tokens
    assert all(row.is_active for row in rows)
    assert all(row.tenant_id == "t1" for row in rows)
    assert all(len(row.embedding) == EMBED_DIM for row in rows)


@pytest.mark.asyncio
async def test_reingest_is_idempotent() -> None:
    doc_id = await _create_doc()

    async with SessionLocal() as session:
        service = IngestionService(session, HashEmbeddingProvider(), max_tokens=100, overlap_tokens=10)
        first = await service.ingest("t1", doc_id)
        first_texts = [row.chunk_text for row in await chunks_repo.list_chunks(session, doc_id)]
        second = await service.ingest("t1", doc_id)
        second_rows = await chunks_repo.list_chunks(session, doc_id)

    assert first.chunks_created == second.chunks_created
    assert [row.chunk_index for row in second_rows] == list(range(second.chunks_created))
    assert [row.chunk_text for row in second_rows] == first_texts


@pytest.mark.asyncio
async def test_ingest_unknown_or_foreign_document_is_not_found() -> None:
    doc_id = await _create_doc(tenant_id="t1")

    async with SessionLocal() as session:
        service = IngestionService(session, HashEmbeddingProvider())
        with pytest.raises(DocumentNotFoundError):
            await service.ingest("t1", "missing")
        with pytest.raises(DocumentNotFoundError):
            await service.ingest("t2", doc_id)


@pytest.mark.asyncio
async def test_inactive_document_chunks_are_not_searchable() -> None:
    doc_id = await _create_doc(status=STATUS_INACTIVE)

    async with SessionLocal() as session:
        await IngestionService(session, HashEmbeddingProvider()).ingest("t1", doc_id)
        rows = await chunks_repo.list_chunks(session, doc_id)

    assert rows
    assert not any(row.is_active for row in rows)


@pytest.mark.asyncio
async def test_provider_failure_leaves_zero_chunks() -> None:
    doc_id = await _create_doc()
    async with SessionLocal() as session:
        await IngestionService(session, HashEmbeddingProvider()).ingest("t1", doc_id)
        assert await chunks_repo.count_chunks(session, doc_id) > 0

    async with SessionLocal() as session:
        with pytest.raises(EmbeddingProviderError):
            await IngestionService(session, FailingProvider()).ingest("t1", doc_id)

    async with SessionLocal() as session:
        assert await chunks_repo.count_chunks(session, doc_id) == 0
    assert get_counter("kb.ingest.embedding_failed") == 1


@pytest.mark.asyncio
async def test_provider_count_mismatch_is_rejected() -> None:
    doc_id = await _create_doc()

    async with SessionLocal() as session:
        with pytest.raises(EmbeddingProviderError):
            await IngestionService(session, ShortProvider()).ingest("t1", doc_id)
        assert await chunks_repo.count_chunks(session, doc_id) == 0


@pytest.mark.asyncio
async def test_content_without_chunks_clears_previous_chunks() -> None:
    doc_id = await _create_doc()
    async with SessionLocal() as session:
        await IngestionService(session, HashEmbeddingProvider()).ingest("t1", doc_id)
        doc = await documents_repo.get_document(session, "t1", doc_id)
        doc.content = "Oi."
        await session.commit()

        result = await IngestionService(session, HashEmbeddingProvider()).ingest("t1", doc_id)

        assert result.chunks_created == 0
        assert result.total_tokens == 0
        assert await chunks_repo.count_chunks(session, doc_id) == 0


@pytest.mark.asyncio
async def test_insert_failure_maps_to_persistence_error(monkeypatch) -> None:
    doc_id = await _create_doc()

    async def failing_replace(*_args, **_kwargs):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(chunks_repo, "replace_chunks", failing_replace)

    async with SessionLocal() as session:
        with pytest.raises(ChunkPersistenceError) as excinfo:
            await IngestionService(session, HashEmbeddingProvider()).ingest("t1", doc_id)

    assert excinfo.value.code == "INSERT_ERROR"
    assert get_counter("kb.ingest.insert_failed") == 1
