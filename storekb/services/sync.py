from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storekb.core.config import get_settings
from storekb.core.errors import SourceFetchError, StoreKBError
from storekb.domain.documents import (
    DOC_TYPE_CATEGORY,
    DOC_TYPE_POLICY,
    DOC_TYPE_PRODUCT,
    PRIORITY_CATEGORY,
    PRIORITY_POLICY,
    PRIORITY_PRODUCT,
    SOURCE_CATEGORIES,
    SOURCE_POLICIES,
    SOURCE_PRODUCTS,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    DocumentKey,
)
from storekb.persistence.repos import catalog as catalog_repo
from storekb.persistence.repos import documents as documents_repo
from storekb.providers.embeddings.base import EmbeddingProvider
from storekb.services.ingestion import IngestionService
from storekb.services.renderers import (
    POLICY_FIELDS,
    category_title,
    product_title,
    render_category,
    render_policies,
    render_product,
)
from storekb.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    source: str
    synced: int = 0
    failed: int = 0
    skipped: int = 0
    deactivated: int = 0
    # False when the tenant has no source data at all (e.g. no store settings row).
    source_found: bool = True

    @property
    def message(self) -> str:
        if not self.source_found:
            return f"No {self.source} found"
        return f"Synced {self.synced} {self.source}"


@dataclass(frozen=True)
class SourceRecord:
    key: DocumentKey
    title: str
    content: str | None
    priority: int


class SyncService:
    """Mirror tenant products, categories and policies into knowledge base documents.

    Records are processed strictly in enumeration order. A failing record is
    logged and counted; the rest of the batch still runs. Source rows are
    rendered to plain values before any write, since a per-record rollback
    expires every ORM instance held by the session.
    """

    def __init__(
        self,
        session: AsyncSession,
        embedder: EmbeddingProvider,
        *,
        page_size: int | None = None,
        ingestion: IngestionService | None = None,
    ) -> None:
        self._session = session
        self._page_size = page_size or get_settings().kb_sync_page_size
        self._ingestion = ingestion or IngestionService(session, embedder)

    async def sync_products(self, tenant_id: str) -> SyncSummary:
        active = await self._fetch(
            "products",
            lambda: catalog_repo.list_products(self._session, tenant_id, active=True, limit=self._page_size),
        )
        inactive = await self._fetch(
            "products",
            lambda: catalog_repo.list_products(self._session, tenant_id, active=False, limit=self._page_size),
        )
        records = [
            SourceRecord(
                key=DocumentKey(tenant_id, DOC_TYPE_PRODUCT, SOURCE_PRODUCTS, str(product.id)),
                title=product_title(product),
                content=render_product(product),
                priority=PRIORITY_PRODUCT,
            )
            for product in active
        ]
        retired = [
            DocumentKey(tenant_id, DOC_TYPE_PRODUCT, SOURCE_PRODUCTS, str(product.id))
            for product in inactive
        ]
        return await self._run(tenant_id, SyncSummary(source="products"), records, retired)

    async def sync_categories(self, tenant_id: str) -> SyncSummary:
        active = await self._fetch(
            "categories",
            lambda: catalog_repo.list_categories(self._session, tenant_id, active=True, limit=self._page_size),
        )
        inactive = await self._fetch(
            "categories",
            lambda: catalog_repo.list_categories(self._session, tenant_id, active=False, limit=self._page_size),
        )
        records = [
            SourceRecord(
                key=DocumentKey(tenant_id, DOC_TYPE_CATEGORY, SOURCE_CATEGORIES, str(category.id)),
                title=category_title(category),
                content=render_category(category),
                priority=PRIORITY_CATEGORY,
            )
            for category in active
        ]
        retired = [
            DocumentKey(tenant_id, DOC_TYPE_CATEGORY, SOURCE_CATEGORIES, str(category.id))
            for category in inactive
        ]
        return await self._run(tenant_id, SyncSummary(source="categories"), records, retired)

    async def sync_policies(self, tenant_id: str) -> SyncSummary:
        summary = SyncSummary(source="policies")
        store_settings = await self._fetch(
            "policies", lambda: catalog_repo.get_store_settings(self._session, tenant_id)
        )
        if store_settings is None:
            summary.source_found = False
            return summary

        policies = render_policies(store_settings)
        records = [
            SourceRecord(
                key=DocumentKey(tenant_id, DOC_TYPE_POLICY, SOURCE_POLICIES, policy.key),
                title=policy.title,
                content=policy.content,
                priority=PRIORITY_POLICY,
            )
            for policy in policies
        ]
        # A policy cleared in the store settings stops being answerable.
        rendered = {policy.key for policy in policies}
        retired = [
            DocumentKey(tenant_id, DOC_TYPE_POLICY, SOURCE_POLICIES, key)
            for key, _title in POLICY_FIELDS
            if key not in rendered
        ]
        return await self._run(tenant_id, summary, records, retired)

    async def _run(
        self,
        tenant_id: str,
        summary: SyncSummary,
        records: list[SourceRecord],
        retired: list[DocumentKey],
    ) -> SyncSummary:
        for record in records:
            await self._sync_record(summary, record)
        for key in retired:
            await self._deactivate(summary, key)
        logger.info(
            "kb_sync_completed tenant_id=%s source=%s synced=%s failed=%s skipped=%s deactivated=%s",
            tenant_id,
            summary.source,
            summary.synced,
            summary.failed,
            summary.skipped,
            summary.deactivated,
        )
        return summary

    async def _fetch(self, source: str, reader: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await reader()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.error("kb_sync_fetch_failed source=%s", source, exc_info=exc)
            raise SourceFetchError(f"Error fetching {source}") from exc

    async def _sync_record(self, summary: SyncSummary, record: SourceRecord) -> None:
        if not record.content:
            # A record that stopped rendering must not keep answering from old chunks.
            if not await self._deactivate(summary, record.key):
                summary.skipped += 1
            return
        try:
            doc = await documents_repo.find_or_create(
                self._session,
                record.key,
                title=record.title,
                content=record.content,
                priority=record.priority,
                status=STATUS_ACTIVE,
            )
            result = await self._ingestion.ingest_document(doc)
        except (StoreKBError, SQLAlchemyError) as exc:
            await self._record_failure(summary, record.key, exc)
            return

        if result.chunks_created > 0:
            summary.synced += 1
        else:
            summary.skipped += 1

    async def _deactivate(self, summary: SyncSummary, key: DocumentKey) -> bool:
        """Flip an active document to inactive; return False when there was none."""
        try:
            doc = await documents_repo.get_by_key(self._session, key)
            if doc is None or doc.status != STATUS_ACTIVE:
                return False
            doc.status = STATUS_INACTIVE
            # Re-ingest so the replaced chunks carry is_active=false.
            await self._ingestion.ingest_document(doc)
        except (StoreKBError, SQLAlchemyError) as exc:
            await self._record_failure(summary, key, exc)
            return True
        summary.deactivated += 1
        return True

    async def _record_failure(self, summary: SyncSummary, key: DocumentKey, exc: Exception) -> None:
        await self._session.rollback()
        summary.failed += 1
        increment_counter("kb.sync.failed")
        logger.warning(
            "kb_sync_record_failed tenant_id=%s source=%s source_id=%s error=%s",
            key.tenant_id,
            key.source,
            key.source_id,
            exc,
        )
