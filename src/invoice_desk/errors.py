from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from invoice_desk.core.config import settings
from invoice_desk.core.logging import get_logger, log_event, log_exception
from invoice_desk.modules.extraction.validation import field_path

logger = get_logger(__name__)

_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


def _violations(exc: RequestValidationError) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for err in exc.errors():
        loc = tuple(err.get("loc") or ())
        if loc and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        out.append({"field": field_path(loc), "message": err.get("msg", "")})
    return out


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = _violations(exc)
    log_event(logger, "http.request.invalid", path=request.url.path, violations=len(details))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request data", "details": details},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(
        status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None)
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log_exception(logger, "http.request.unhandled", path=request.url.path)
    message = str(exc) if settings.environment == "dev" else "Something went wrong"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "message": message},
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
