from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storekb.core.config import EMBED_DIM, get_settings
from storekb.core.errors import (
    ChunkPersistenceError,
    DocumentNotFoundError,
    EmbeddingProviderError,
)
from storekb.domain.documents import ChunkDraft, is_active_status
from storekb.domain.models import KnowledgeDocument
from storekb.ingestion.chunking import chunk_text
from storekb.ingestion.tokens import estimate_tokens
from storekb.persistence.repos import chunks as chunks_repo
from storekb.persistence.repos import documents as documents_repo
from storekb.providers.embeddings.base import EmbeddingProvider
from storekb.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    doc_id: str
    chunks_created: int
    total_tokens: int


class IngestionService:
    """Re-chunk, re-embed and replace the chunks of one document.

    Existing chunks are deleted and committed before the provider is called, so
    an embedding failure leaves the document with zero chunks until the next
    successful ingestion. Callers must not ingest the same document concurrently.
    """

    def __init__(
        self,
        session: AsyncSession,
        embedder: EmbeddingProvider,
        *,
        max_tokens: int | None = None,
        overlap_tokens: int | None = None,
    ) -> None:
        settings = get_settings()
        self._session = session
        self._embedder = embedder
        self._max_tokens = max_tokens or settings.kb_max_chunk_tokens
        self._overlap_tokens = (
            overlap_tokens if overlap_tokens is not None else settings.kb_chunk_overlap_tokens
        )

    async def ingest(self, tenant_id: str, doc_id: str) -> IngestResult:
        doc = await documents_repo.get_document(self._session, tenant_id, doc_id)
        if doc is None:
            raise DocumentNotFoundError("Document not found")
        return await self.ingest_document(doc)

    async def ingest_document(self, doc: KnowledgeDocument) -> IngestResult:
        session = self._session
        doc_id = doc.id

        await chunks_repo.delete_chunks(session, doc_id)
        await session.commit()

        texts = chunk_text(doc.content or "", self._max_tokens, self._overlap_tokens)
        logger.info("kb_ingest_chunked doc_id=%s chunks=%s", doc_id, len(texts))
        if not texts:
            return IngestResult(doc_id=doc_id, chunks_created=0, total_tokens=0)

        embeddings = await self._embed(doc_id, texts)
        drafts = [
            ChunkDraft(
                chunk_index=index,
                chunk_text=text,
                chunk_tokens=estimate_tokens(text),
                embedding=embedding,
            )
            for index, (text, embedding) in enumerate(zip(texts, embeddings))
        ]

        try:
            await chunks_repo.replace_chunks(
                session,
                doc_id=doc_id,
                tenant_id=doc.tenant_id,
                is_active=is_active_status(doc.status),
                drafts=drafts,
            )
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            increment_counter("kb.ingest.insert_failed")
            logger.error("kb_ingest_insert_failed doc_id=%s", doc_id, exc_info=exc)
            raise ChunkPersistenceError("Error saving chunks") from exc

        total_tokens = sum(draft.chunk_tokens for draft in drafts)
        increment_counter("kb.ingest.succeeded")
        logger.info(
            "kb_ingest_completed doc_id=%s chunks=%s total_tokens=%s",
            doc_id,
            len(drafts),
            total_tokens,
        )
        return IngestResult(doc_id=doc_id, chunks_created=len(drafts), total_tokens=total_tokens)

    async def _embed(self, doc_id: str, texts: list[str]) -> list[list[float]]:
        # One provider call per document keeps round trips and cost bounded.
        try:
            embeddings = await self._embedder.embed(texts)
        except EmbeddingProviderError:
            increment_counter("kb.ingest.embedding_failed")
            logger.warning("kb_ingest_embedding_failed doc_id=%s", doc_id)
            raise
        if len(embeddings) != len(texts):
            raise EmbeddingProviderError(
                f"Embedding count mismatch; expected {len(texts)}, got {len(embeddings)}."
            )
        if any(len(vector) != EMBED_DIM for vector in embeddings):
            raise EmbeddingProviderError(f"Embedding dimension mismatch; expected {EMBED_DIM}.")
        return embeddings
