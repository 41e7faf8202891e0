from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from storekb.apps.api.deps import get_db, get_embedder, get_tenant_id, require_provider
from storekb.domain.documents import DOC_TYPE_MANUAL, PRIORITY_MANUAL, STATUS_ACTIVE
from storekb.domain.models import KnowledgeDocument
from storekb.providers.embeddings.base import EmbeddingProvider, EmbeddingUnavailable
from storekb.services.documents import DocumentService
from storekb.services.ingestion import IngestResult


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/documents", tags=["documents"])


class DocumentResponse(BaseModel):
    id: str
    tenant_id: str
    title: str
    doc_type: str
    status: str
    priority: int
    source: str
    source_id: str
    created_at: str | None
    updated_at: str | None
    chunk_count: int | None = None


class DocumentCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    content: str
    doc_type: str = DOC_TYPE_MANUAL
    priority: int = Field(default=PRIORITY_MANUAL, ge=0)
    status: str = STATUS_ACTIVE

    # Reject unknown fields so tenant_id cannot be supplied in the payload.
    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "examples": [
                {
                    "title": "Horário de atendimento",
                    "content": "Atendemos de segunda a sexta, das 9h às 18h.",
                    "priority": 20,
                }
            ]
        },
    }


class DocumentUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    content: str | None = None
    priority: int | None = Field(default=None, ge=0)
    status: str | None = None

    model_config = {"extra": "forbid"}


def _to_response(doc: KnowledgeDocument, *, chunk_count: int | None = None) -> dict[str, Any]:
    # Serialize datetimes to ISO 8601 for API clients.
    return DocumentResponse(
        id=doc.id,
        tenant_id=doc.tenant_id,
        title=doc.title,
        doc_type=doc.doc_type,
        status=doc.status,
        priority=doc.priority,
        source=doc.source,
        source_id=doc.source_id,
        created_at=doc.created_at.isoformat() if doc.created_at else None,
        updated_at=doc.updated_at.isoformat() if doc.updated_at else None,
        chunk_count=chunk_count,
    ).model_dump()


def _ingest_fields(result: IngestResult | None) -> dict[str, Any]:
    if result is None:
        return {}
    return {"chunks_created": result.chunks_created, "total_tokens": result.total_tokens}


@router.get("")
async def list_documents(
    doc_type: str | None = None,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    # Listing needs no embeddings, so it works even while AI is unconfigured.
    service = DocumentService(db)
    rows = await service.list_with_chunk_counts(tenant_id, doc_type)
    return {
        "success": True,
        "documents": [_to_response(doc, chunk_count=count) for doc, count in rows],
    }


@router.post("")
async def create_document(
    payload: DocumentCreateRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
    provider: EmbeddingProvider | EmbeddingUnavailable = Depends(get_embedder),
) -> dict[str, Any]:
    service = DocumentService(db, require_provider(provider))
    doc, result = await service.create(
        tenant_id,
        title=payload.title,
        content=payload.content,
        doc_type=payload.doc_type,
        priority=payload.priority,
        status=payload.status,
    )
    # Server-side timestamps are loaded explicitly; async sessions cannot lazy-load.
    await db.refresh(doc)
    return {
        "success": True,
        "message": "Document created",
        "document": _to_response(doc, chunk_count=result.chunks_created),
        **_ingest_fields(result),
    }


@router.patch("/{doc_id}")
async def update_document(
    doc_id: str,
    payload: DocumentUpdateRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
    provider: EmbeddingProvider | EmbeddingUnavailable = Depends(get_embedder),
) -> dict[str, Any]:
    service = DocumentService(db, require_provider(provider))
    doc, result = await service.update(
        tenant_id,
        doc_id,
        title=payload.title,
        content=payload.content,
        priority=payload.priority,
        status=payload.status,
    )
    await db.refresh(doc)
    return {
        "success": True,
        "message": "Document updated" if result is None else "Document updated and re-ingested",
        "document": _to_response(doc),
        **_ingest_fields(result),
    }


@router.delete("/{doc_id}")
async def delete_document(
    doc_id: str,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    service = DocumentService(db)
    await service.delete(tenant_id, doc_id)
    return {"success": True, "message": "Document deleted"}
