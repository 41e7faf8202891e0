from __future__ import annotations

import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storekb.core.errors import StoreKBError
from storekb.services.ingest_requests import error_body


logger = logging.getLogger(__name__)


async def storekb_exception_handler(request: Request, exc: StoreKBError) -> JSONResponse:
    # Known failures keep HTTP 200; callers branch on success/code.
    return JSONResponse(content=error_body(exc), status_code=200)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Malformed payloads are client errors and keep FastAPI's 422 status.
    payload = {
        "success": False,
        "error": "Validation error",
        "code": "VALIDATION_ERROR",
        "details": jsonable_encoder(exc.errors()),
    }
    return JSONResponse(content=payload, status_code=422)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Avoid leaking stack traces; return a stable internal error body.
    logger.error("unhandled_exception path=%s", request.url.path, exc_info=exc)
    payload = {"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"}
    return JSONResponse(content=payload, status_code=200)
