from __future__ import annotations

from dataclasses import dataclass


DOC_TYPE_MANUAL = "manual"
DOC_TYPE_PRODUCT = "product"
DOC_TYPE_CATEGORY = "category"
DOC_TYPE_POLICY = "policy"

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"

SOURCE_MANUAL = "manual"
SOURCE_PRODUCTS = "auto_import_products"
SOURCE_CATEGORIES = "auto_import_categories"
SOURCE_POLICIES = "auto_import_policies"

# Lower priority values rank first at retrieval time; policies outrank catalog content.
PRIORITY_POLICY = 10
PRIORITY_MANUAL = 50
PRIORITY_PRODUCT = 60
PRIORITY_CATEGORY = 70


@dataclass(frozen=True)
class DocumentKey:
    # Natural identity of a synced document; unique per tenant in knowledge_base_docs.
    tenant_id: str
    doc_type: str
    source: str
    source_id: str


@dataclass(frozen=True)
class ChunkDraft:
    # A chunk ready for persistence; chunk_index is its position in the chunker output.
    chunk_index: int
    chunk_text: str
    chunk_tokens: int
    embedding: list[float]


def is_active_status(status: str | None) -> bool:
    # Chunks are searchable only while their document is active.
    return status == STATUS_ACTIVE
