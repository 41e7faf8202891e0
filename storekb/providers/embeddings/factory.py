from __future__ import annotations

from storekb.core.config import get_settings
from storekb.providers.embeddings.base import EmbeddingProvider, EmbeddingUnavailable
from storekb.providers.embeddings.hash_embeddings import HashEmbeddingProvider
from storekb.providers.embeddings.openai_embeddings import OpenAIEmbeddingProvider


def get_embedding_provider() -> EmbeddingProvider | EmbeddingUnavailable:
    settings = get_settings()
    provider = (settings.embedding_provider or "openai").lower()

    if provider == "none":
        return EmbeddingUnavailable("EMBEDDING_PROVIDER is set to none")
    if provider == "hash":
        return HashEmbeddingProvider()
    if provider == "openai":
        # Gate on key presence up front so ingestion never starts half-configured.
        if not settings.openai_api_key:
            return EmbeddingUnavailable("OPENAI_API_KEY is not set")
        return OpenAIEmbeddingProvider(settings.openai_api_key)

    return EmbeddingUnavailable(f"Unsupported embedding provider: {provider}")
