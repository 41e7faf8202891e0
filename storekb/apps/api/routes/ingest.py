from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from storekb.apps.api.deps import get_db, get_embedder
from storekb.providers.embeddings.base import EmbeddingProvider, EmbeddingUnavailable
from storekb.services.ingest_requests import ACTION_INGEST, handle_ingest_request


router = APIRouter(tags=["ingest"])


class IngestRequest(BaseModel):
    # tenant_id is optional here so a missing value maps to MISSING_TENANT, not a 422.
    tenant_id: str | None = None
    doc_id: str | None = None
    action: str | None = ACTION_INGEST

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "examples": [
                {"tenant_id": "tenant_abc", "doc_id": "doc_123", "action": "ingest"},
                {"tenant_id": "tenant_abc", "action": "sync_products"},
            ]
        },
    }


@router.post("/ai-kb-ingest")
async def ai_kb_ingest(
    payload: IngestRequest,
    db: AsyncSession = Depends(get_db),
    provider: EmbeddingProvider | EmbeddingUnavailable = Depends(get_embedder),
) -> dict[str, Any]:
    return await handle_ingest_request(
        db,
        provider,
        tenant_id=payload.tenant_id,
        action=payload.action,
        doc_id=payload.doc_id,
    )
