"""Health check and config endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError

from vibecheck import __version__
from vibecheck.api.deps import LLMDep, SettingsDep, StoreDep
from vibecheck.api.schemas import ConfigCheckResponse, HealthResponse

router = APIRouter(tags=["system"])

logger = structlog.get_logger()


@router.get("/health", response_model=HealthResponse)
def health_check(
    store: StoreDep,
    llm: LLMDep,
) -> HealthResponse:
    db_ok = False
    try:
        db_ok = store.check_connection()
    except SQLAlchemyError as exc:
        logger.warning("Database check failed", error=str(exc))

    return HealthResponse(
        status="healthy" if db_ok else "unhealthy",
        version=__version__,
        db_connected=db_ok,
        checks={"llm_configured": llm.is_available},
    )


@router.get("/config/check", response_model=ConfigCheckResponse)
def config_check(
    settings: SettingsDep,
) -> ConfigCheckResponse:
    return ConfigCheckResponse(
        configured={"anthropic": bool(settings.anthropic_api_key)},
        settings={
            "llm_model": settings.llm_model,
            "default_language": settings.default_language,
            "extraction_timeout_s": settings.extraction_timeout_s,
            "generation_timeout_s": settings.generation_timeout_s,
            "max_retries": settings.max_retries,
        },
    )
