from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from storekb.core.errors import (
    EmbeddingConfigError,
    InvalidActionError,
    MissingTenantError,
    StoreKBError,
)
from storekb.providers.embeddings.base import EmbeddingProvider, EmbeddingUnavailable
from storekb.services.ingestion import IngestionService
from storekb.services.sync import SyncService, SyncSummary


logger = logging.getLogger(__name__)

ACTION_INGEST = "ingest"
ACTION_SYNC_PRODUCTS = "sync_products"
ACTION_SYNC_CATEGORIES = "sync_categories"
ACTION_SYNC_POLICIES = "sync_policies"
ACTIONS = (ACTION_INGEST, ACTION_SYNC_PRODUCTS, ACTION_SYNC_CATEGORIES, ACTION_SYNC_POLICIES)


def error_body(exc: StoreKBError) -> dict[str, Any]:
    return {"success": False, "error": str(exc) or exc.code, "code": exc.code}


def _sync_body(summary: SyncSummary) -> dict[str, Any]:
    return {
        "success": True,
        "message": summary.message,
        "synced": summary.synced,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "deactivated": summary.deactivated,
    }


async def handle_ingest_request(
    session: AsyncSession,
    provider: EmbeddingProvider | EmbeddingUnavailable,
    *,
    tenant_id: str | None,
    action: str | None = ACTION_INGEST,
    doc_id: str | None = None,
) -> dict[str, Any]:
    """Run one ingestion action and return the response body.

    Checks run in a fixed order: embedding configuration, tenant, then action.
    Known failures become ``{"success": false, "error", "code"}`` bodies;
    anything else propagates to the caller.
    """
    try:
        return await _dispatch(
            session, provider, tenant_id=tenant_id, action=action or ACTION_INGEST, doc_id=doc_id
        )
    except StoreKBError as exc:
        logger.warning(
            "kb_ingest_request_failed tenant_id=%s action=%s code=%s error=%s",
            tenant_id,
            action,
            exc.code,
            exc,
        )
        return error_body(exc)


async def _dispatch(
    session: AsyncSession,
    provider: EmbeddingProvider | EmbeddingUnavailable,
    *,
    tenant_id: str | None,
    action: str,
    doc_id: str | None,
) -> dict[str, Any]:
    if isinstance(provider, EmbeddingUnavailable):
        logger.warning("kb_embeddings_unavailable reason=%s", provider.reason)
        raise EmbeddingConfigError("AI not configured")
    if not tenant_id:
        raise MissingTenantError("tenant_id is required")

    if action == ACTION_INGEST:
        if not doc_id:
            raise InvalidActionError("doc_id is required for ingest")
        result = await IngestionService(session, provider).ingest(tenant_id, doc_id)
        if result.chunks_created == 0:
            return {"success": True, "message": "No chunks generated", "chunks_created": 0, "total_tokens": 0}
        return {
            "success": True,
            "message": "Document ingested successfully",
            "chunks_created": result.chunks_created,
            "total_tokens": result.total_tokens,
        }

    sync = SyncService(session, provider)
    if action == ACTION_SYNC_PRODUCTS:
        return _sync_body(await sync.sync_products(tenant_id))
    if action == ACTION_SYNC_CATEGORIES:
        return _sync_body(await sync.sync_categories(tenant_id))
    if action == ACTION_SYNC_POLICIES:
        return _sync_body(await sync.sync_policies(tenant_id))
    raise InvalidActionError("Invalid action")
