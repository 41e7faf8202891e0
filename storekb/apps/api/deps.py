from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession

from storekb.core.errors import EmbeddingConfigError, MissingTenantError
from storekb.persistence.db import get_session
from storekb.providers.embeddings.base import EmbeddingProvider, EmbeddingUnavailable
from storekb.providers.embeddings.factory import get_embedding_provider


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


async def get_embedder() -> AsyncGenerator[EmbeddingProvider | EmbeddingUnavailable, None]:
    # Resolve the provider per request so settings changes apply without a restart.
    provider = get_embedding_provider()
    try:
        yield provider
    finally:
        aclose = getattr(provider, "aclose", None)
        if aclose is not None:
            await aclose()


async def get_tenant_id(x_tenant_id: str | None = Header(default=None)) -> str:
    if not x_tenant_id or not x_tenant_id.strip():
        raise MissingTenantError("X-Tenant-Id header is required")
    return x_tenant_id.strip()


def require_provider(provider: EmbeddingProvider | EmbeddingUnavailable) -> EmbeddingProvider:
    # Fail before any write when embeddings cannot be produced.
    if isinstance(provider, EmbeddingUnavailable):
        raise EmbeddingConfigError("AI not configured")
    return provider
