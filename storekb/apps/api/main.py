from __future__ import annotations

import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from storekb.apps.api.errors import (
    storekb_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from storekb.apps.api.routes.documents import router as documents_router
from storekb.apps.api.routes.health import router as health_router
from storekb.apps.api.routes.ingest import router as ingest_router
from storekb.core.config import get_settings
from storekb.core.errors import StoreKBError
from storekb.core.logging import configure_logging
from storekb.services.telemetry import increment_counter


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=get_settings().app_name)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        response.headers.setdefault("X-Request-Id", request_id)
        response.headers["X-Response-Time-Ms"] = f"{(time.monotonic() - start) * 1000.0:.1f}"
        increment_counter("http.requests")
        return response

    @app.exception_handler(StoreKBError)
    async def _storekb_exception_handler(request: Request, exc: StoreKBError):
        return await storekb_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        return await validation_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return await unhandled_exception_handler(request, exc)

    app.include_router(health_router)
    app.include_router(ingest_router)
    app.include_router(documents_router)
    return app


app = create_app()
