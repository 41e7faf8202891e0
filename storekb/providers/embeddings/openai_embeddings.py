from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from storekb.core.config import EMBED_DIM, get_settings
from storekb.core.errors import EmbeddingAuthError, EmbeddingConfigError, EmbeddingProviderError
from storekb.services.telemetry import record_external_call


logger = logging.getLogger(__name__)

_INTEGRATION = "embeddings.openai"


class OpenAIEmbeddingProvider:
    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        model: str | None = None,
        dimensions: int = EMBED_DIM,
    ) -> None:
        self._settings = get_settings()
        self._api_key = api_key if api_key is not None else self._settings.openai_api_key
        self._client = client
        self._model = model or self._settings.embedding_model
        self._dimensions = dimensions

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        # Reuse a single client per provider for connection pooling.
        timeout_s = self._settings.ext_call_timeout_ms / 1000.0
        self._client = httpx.AsyncClient(timeout=timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not self._api_key:
            raise EmbeddingConfigError("OPENAI_API_KEY is required for OpenAI embeddings")
        if not texts:
            return []

        payload = {
            "model": self._model,
            "input": texts,
            "dimensions": self._dimensions,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        url = f"{self._settings.openai_base_url.rstrip('/')}/embeddings"
        client = self._get_client()

        # One request per batch; retries are the caller's decision.
        start = time.monotonic()
        try:
            response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            self._record(start, success=False)
            raise EmbeddingProviderError("OpenAI embeddings request failed.") from exc

        if response.status_code in {401, 403}:
            self._record(start, success=False)
            raise EmbeddingAuthError("OpenAI embeddings auth error: check OPENAI_API_KEY.")
        if response.status_code >= 400:
            self._record(start, success=False)
            logger.warning(
                "embeddings_request_failed status=%s body=%s",
                response.status_code,
                response.text[:500],
            )
            error = EmbeddingProviderError(f"OpenAI embeddings error: {response.status_code}")
            setattr(error, "status_code", response.status_code)
            raise error

        try:
            vectors = self._parse(response.json(), expected=len(texts))
        except (ValueError, KeyError, TypeError) as exc:
            self._record(start, success=False)
            raise EmbeddingProviderError(f"OpenAI embeddings response invalid: {exc}") from exc

        self._record(start, success=True)
        return vectors

    def _parse(self, body: dict[str, Any], *, expected: int) -> list[list[float]]:
        data = body["data"]
        if len(data) != expected:
            raise ValueError(f"expected {expected} embeddings, got {len(data)}")
        # The API tags each vector with its input index; restore input order explicitly.
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        vectors = [[float(value) for value in item["embedding"]] for item in ordered]
        for vector in vectors:
            if len(vector) != self._dimensions:
                raise ValueError(f"embedding dimension mismatch; expected {self._dimensions}")
        return vectors

    def _record(self, start: float, *, success: bool) -> None:
        record_external_call(
            integration=_INTEGRATION,
            latency_ms=(time.monotonic() - start) * 1000.0,
            success=success,
        )
