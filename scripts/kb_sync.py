from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from storekb.core.errors import EmbeddingConfigError, StoreKBError
from storekb.core.logging import configure_logging
from storekb.persistence.db import SessionLocal
from storekb.providers.embeddings.factory import get_embedding_provider
from storekb.services.ingest_requests import ACTIONS, handle_ingest_request


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sync tenant catalog content into the knowledge base or re-ingest one document."
    )
    parser.add_argument("--tenant", required=True, help="Tenant id")
    parser.add_argument("--action", required=True, choices=ACTIONS, help="Ingestion action")
    parser.add_argument("--doc-id", default=None, help="Document id (required for ingest)")
    return parser


def _exit_code(body: dict[str, Any]) -> int:
    # Configuration problems need an operator, not a retry.
    if body.get("success"):
        return 0
    if body.get("code") == EmbeddingConfigError.code:
        return 2
    return 1


def _format_error(exc: Exception) -> tuple[int, str]:
    # Map known failures to stable, actionable messages.
    if isinstance(exc, EmbeddingConfigError):
        return 2, f"{exc.code}: {exc}"
    if isinstance(exc, StoreKBError):
        return 1, f"{exc.code}: {exc}"
    return 1, f"UNKNOWN_ERROR: {exc}"


async def _run(args: argparse.Namespace) -> int:
    # Use the shared async session so DB and provider config match the API process.
    provider = get_embedding_provider()
    try:
        async with SessionLocal() as session:
            body = await handle_ingest_request(
                session,
                provider,
                tenant_id=args.tenant,
                action=args.action,
                doc_id=args.doc_id,
            )
    finally:
        aclose = getattr(provider, "aclose", None)
        if aclose is not None:
            await aclose()

    print(json.dumps(body, ensure_ascii=False))
    return _exit_code(body)


def main() -> int:
    configure_logging()
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_run(args))
    except Exception as exc:  # noqa: BLE001 - surface actionable errors
        code, message = _format_error(exc)
        print(message, file=sys.stderr)
        return code


if __name__ == "__main__":
    raise SystemExit(main())
