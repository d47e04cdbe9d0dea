"""FastAPI middleware: correlation IDs and error handling."""

from __future__ import annotations

import re
import time
import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from vibecheck.errors import (
    USER_FACING_RETRY_MESSAGE,
    ConversationNotFound,
    DocumentNotFound,
    GenerationUnavailable,
    LLMConfigurationError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger()


_CONVERSATION_PATH = re.compile(r"/conversations/(?P<conversation_id>[0-9a-f]{32})(?:/|$)")

# Polled endpoints; completed requests are logged at debug level only.
_QUIET_PATHS = frozenset({"/metrics", "/metrics/", "/api/v1/health"})


def conversation_id_from_path(path: str) -> str | None:
    """The conversation id addressed by a ``/conversations/{id}`` path, if any."""
    match = _CONVERSATION_PATH.search(path)
    return match.group("conversation_id") if match else None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds a correlation id, and the addressed conversation, to structlog context.

    The correlation id is read from ``X-Correlation-ID`` or generated, and
    echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID", uuid.uuid4().hex[:12])
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            path=path,
            method=request.method,
        )
        conversation_id = conversation_id_from_path(path)
        if conversation_id is not None:
            structlog.contextvars.bind_contextvars(conversation_id=conversation_id)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 2)

        log = logger.debug if path in _QUIET_PATHS else logger.info
        log("Request completed", status=response.status_code, duration_ms=duration_ms)

        response.headers["X-Correlation-ID"] = correlation_id
        return response


def generation_error_body(exc: GenerationUnavailable) -> dict[str, object]:
    """Client-facing payload for a failed reply; never includes provider text."""
    return {
        "error": "generation_unavailable",
        "detail": USER_FACING_RETRY_MESSAGE,
        "retryable": exc.retryable,
        "timed_out": exc.timed_out,
    }


def add_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers returning structured JSON errors."""

    @app.exception_handler(ConversationNotFound)
    async def not_found_handler(_request: Request, exc: ConversationNotFound) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"error": "not_found", "detail": str(exc)},
        )

    @app.exception_handler(DocumentNotFound)
    async def document_not_found_handler(
        _request: Request, exc: DocumentNotFound
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"error": "not_found", "detail": str(exc)},
        )

    @app.exception_handler(GenerationUnavailable)
    async def generation_error_handler(
        _request: Request, exc: GenerationUnavailable
    ) -> JSONResponse:
        return JSONResponse(status_code=503, content=generation_error_body(exc))

    @app.exception_handler(LLMConfigurationError)
    async def llm_config_handler(_request: Request, exc: LLMConfigurationError) -> JSONResponse:
        logger.error("LLM not configured", error=str(exc))
        return JSONResponse(
            status_code=503,
            content={
                "error": "llm_not_configured",
                "detail": "The language model service is not configured",
                "retryable": False,
            },
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(_request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "bad_request", "detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", error=str(exc), exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": "internal_server_error", "detail": "An unexpected error occurred"},
        )
