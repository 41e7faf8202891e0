from __future__ import annotations


class StoreKBError(Exception):
    """Base error for storekb."""

    code = "INTERNAL_ERROR"


class MissingTenantError(StoreKBError):
    """Request did not carry a tenant id."""

    code = "MISSING_TENANT"


class InvalidActionError(StoreKBError):
    """Unknown ingestion action or missing action arguments."""

    code = "INVALID_ACTION"


class EmbeddingConfigError(StoreKBError):
    """Embedding provider is not configured (missing key or provider disabled)."""

    code = "AI_NOT_CONFIGURED"


class EmbeddingProviderError(StoreKBError):
    """Embedding provider request failure."""

    code = "EMBEDDING_ERROR"


class EmbeddingAuthError(EmbeddingProviderError):
    """Embedding provider authentication/authorization failure."""


class DocumentNotFoundError(StoreKBError):
    """Document does not exist for the tenant."""

    code = "DOC_NOT_FOUND"


class ChunkPersistenceError(StoreKBError):
    """Chunk rows could not be written."""

    code = "INSERT_ERROR"


class SourceFetchError(StoreKBError):
    """Collaborator records (products, categories, policies) could not be read."""

    code = "FETCH_ERROR"
