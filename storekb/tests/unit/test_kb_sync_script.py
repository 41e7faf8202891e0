from __future__ import annotations

import json
import types

import pytest

from storekb.core.errors import EmbeddingConfigError, SourceFetchError
from storekb.providers.embeddings.hash_embeddings import HashEmbeddingProvider
import scripts.kb_sync as kb_sync


class DummySession:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class DummySessionFactory:
    def __call__(self):
        # Provide an async context manager compatible with SessionLocal().
        return DummySession()


def _args(action: str = "sync_products", doc_id: str | None = None) -> types.SimpleNamespace:
    return types.SimpleNamespace(tenant="t1", action=action, doc_id=doc_id)


def _patch_handler(monkeypatch, body: dict, calls: list | None = None) -> None:
    async def fake_handler(session, provider, **kwargs):
        if calls is not None:
            calls.append(kwargs)
        return body

    monkeypatch.setattr(kb_sync, "SessionLocal", DummySessionFactory())
    monkeypatch.setattr(kb_sync, "get_embedding_provider", lambda: HashEmbeddingProvider())
    monkeypatch.setattr(kb_sync, "handle_ingest_request", fake_handler)


@pytest.mark.asyncio
async def test_kb_sync_prints_body_and_exits_zero(monkeypatch, capsys) -> None:
    calls: list = []
    _patch_handler(monkeypatch, {"success": True, "message": "Synced 2 products", "synced": 2}, calls)

    code = await kb_sync._run(_args())

    assert code == 0
    assert json.loads(capsys.readouterr().out)["synced"] == 2
    assert calls == [{"tenant_id": "t1", "action": "sync_products", "doc_id": None}]


@pytest.mark.asyncio
async def test_kb_sync_config_error_exits_two(monkeypatch) -> None:
    _patch_handler(
        monkeypatch,
        {"success": False, "error": "AI not configured", "code": "AI_NOT_CONFIGURED"},
    )

    assert await kb_sync._run(_args()) == 2


@pytest.mark.asyncio
async def test_kb_sync_other_failure_exits_one(monkeypatch) -> None:
    _patch_handler(
        monkeypatch,
        {"success": False, "error": "Document not found", "code": "DOC_NOT_FOUND"},
    )

    assert await kb_sync._run(_args(action="ingest", doc_id="missing")) == 1


def test_kb_sync_format_error_maps_known_failures() -> None:
    code, message = kb_sync._format_error(EmbeddingConfigError("no key"))
    assert code == 2
    assert message.startswith("AI_NOT_CONFIGURED")

    code, message = kb_sync._format_error(SourceFetchError("db down"))
    assert code == 1
    assert message.startswith("FETCH_ERROR")

    code, message = kb_sync._format_error(RuntimeError("boom"))
    assert code == 1
    assert message.startswith("UNKNOWN_ERROR")


def test_kb_sync_parser_rejects_unknown_action() -> None:
    parser = kb_sync._build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["--tenant", "t1", "--action", "sync_everything"])
