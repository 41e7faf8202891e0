from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from storekb.core.errors import DocumentNotFoundError, EmbeddingConfigError
from storekb.domain.documents import DOC_TYPE_MANUAL, PRIORITY_MANUAL, STATUS_ACTIVE
from storekb.domain.models import KnowledgeDocument
from storekb.persistence.repos import chunks as chunks_repo
from storekb.persistence.repos import documents as documents_repo
from storekb.providers.embeddings.base import EmbeddingProvider
from storekb.services.ingestion import IngestionService, IngestResult


logger = logging.getLogger(__name__)


class DocumentService:
    """Lifecycle of manually authored knowledge base documents.

    Every content or status change re-ingests the document so its chunks never
    describe stale text or a stale searchable flag.
    """

    def __init__(self, session: AsyncSession, embedder: EmbeddingProvider | None = None) -> None:
        self._session = session
        # Listing and deletion never embed, so they run without a provider.
        self._embedder = embedder

    async def create(
        self,
        tenant_id: str,
        *,
        title: str,
        content: str,
        doc_type: str = DOC_TYPE_MANUAL,
        priority: int = PRIORITY_MANUAL,
        status: str = STATUS_ACTIVE,
    ) -> tuple[KnowledgeDocument, IngestResult]:
        doc = await documents_repo.create_manual_document(
            self._session,
            tenant_id=tenant_id,
            title=title,
            content=content,
            doc_type=doc_type,
            priority=priority,
            status=status,
        )
        await self._session.commit()
        logger.info("kb_document_created tenant_id=%s doc_id=%s", tenant_id, doc.id)
        result = await self._ingest(doc)
        return doc, result

    async def update(
        self,
        tenant_id: str,
        doc_id: str,
        *,
        title: str | None = None,
        content: str | None = None,
        priority: int | None = None,
        status: str | None = None,
    ) -> tuple[KnowledgeDocument, IngestResult | None]:
        doc = await self._require(tenant_id, doc_id)
        reingest = False
        if title is not None:
            doc.title = title
        if priority is not None:
            doc.priority = priority
        if content is not None and content != doc.content:
            doc.content = content
            reingest = True
        if status is not None and status != doc.status:
            doc.status = status
            reingest = True
        await self._session.commit()

        if not reingest:
            return doc, None
        result = await self._ingest(doc)
        return doc, result

    async def delete(self, tenant_id: str, doc_id: str) -> None:
        deleted = await documents_repo.delete_document(self._session, tenant_id, doc_id)
        if not deleted:
            raise DocumentNotFoundError("Document not found")
        await self._session.commit()
        logger.info("kb_document_deleted tenant_id=%s doc_id=%s", tenant_id, doc_id)

    async def list_with_chunk_counts(
        self, tenant_id: str, doc_type: str | None = None
    ) -> list[tuple[KnowledgeDocument, int]]:
        docs = await documents_repo.list_documents(self._session, tenant_id, doc_type)
        counts = await chunks_repo.count_chunks_by_document(self._session, tenant_id)
        return [(doc, counts.get(doc.id, 0)) for doc in docs]

    async def _ingest(self, doc: KnowledgeDocument) -> IngestResult:
        if self._embedder is None:
            raise EmbeddingConfigError("AI not configured")
        return await IngestionService(self._session, self._embedder).ingest_document(doc)

    async def _require(self, tenant_id: str, doc_id: str) -> KnowledgeDocument:
        doc = await documents_repo.get_document(self._session, tenant_id, doc_id)
        if doc is None:
            raise DocumentNotFoundError("Document not found")
        return doc
