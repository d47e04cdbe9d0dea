"""FastAPI application factory and entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI

from vibecheck import __version__
from vibecheck.api.middleware import CorrelationIdMiddleware, add_exception_handlers
from vibecheck.api.routes import chat, conversations, documents, system
from vibecheck.config import Settings
from vibecheck.db import ConversationStore
from vibecheck.documents import DocumentWriter
from vibecheck.llm import LLMClient
from vibecheck.logging import configure_logging
from vibecheck.orchestrator import build_orchestrator

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize store, LLM client, orchestrator and document writer; cleanup on shutdown."""
    settings = Settings()
    settings.ensure_data_dir()

    configure_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
    )

    store = ConversationStore(settings.db_path)
    store.init_schema()
    llm = LLMClient(settings)

    app.state.store = store
    app.state.settings = settings
    app.state.llm = llm
    app.state.orchestrator = build_orchestrator(settings, llm)
    app.state.documents = DocumentWriter(llm, settings)

    if not llm.is_available:
        logger.warning("ANTHROPIC_API_KEY not set; chat endpoints will fail")
    logger.info("vibecheck API started", host=settings.api_host, port=settings.api_port)
    yield

    store.close()
    logger.info("vibecheck API shut down")


def include_routes(app: FastAPI) -> None:
    """Mount routes under /api/v1."""
    prefix = "/api/v1"
    app.include_router(system.router, prefix=prefix)
    app.include_router(conversations.router, prefix=prefix)
    app.include_router(chat.router, prefix=prefix)
    app.include_router(documents.router, prefix=prefix)


def create_app() -> FastAPI:
    """Application factory."""
    app = FastAPI(
        title="vibecheck",
        description="Conversational feasibility checks for product ideas",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(CorrelationIdMiddleware)
    add_exception_handlers(app)

    # Prometheus metrics endpoint
    from prometheus_client import make_asgi_app

    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

    include_routes(app)
    return app


def main() -> None:
    """Entry point for `vibecheck-api` command."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "vibecheck.api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
    )
