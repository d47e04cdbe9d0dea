"""FastAPI dependency injection."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from vibecheck.config import Settings
from vibecheck.db import ConversationStore
from vibecheck.documents import DocumentWriter
from vibecheck.orchestrator import TurnOrchestrator
from vibecheck.protocols import LLMPort


def _get_store(request: Request) -> ConversationStore:
    """Get the conversation store from app state."""
    return request.app.state.store  # type: ignore[no-any-return]


def _get_settings(request: Request) -> Settings:
    """Get the settings instance from app state."""
    return request.app.state.settings  # type: ignore[no-any-return]


def _get_llm(request: Request) -> LLMPort:
    return request.app.state.llm  # type: ignore[no-any-return]


def _get_orchestrator(request: Request) -> TurnOrchestrator:
    return request.app.state.orchestrator  # type: ignore[no-any-return]


def _get_documents(request: Request) -> DocumentWriter:
    return request.app.state.documents  # type: ignore[no-any-return]


StoreDep = Annotated[ConversationStore, Depends(_get_store)]
SettingsDep = Annotated[Settings, Depends(_get_settings)]
LLMDep = Annotated[LLMPort, Depends(_get_llm)]
OrchestratorDep = Annotated[TurnOrchestrator, Depends(_get_orchestrator)]
DocumentsDep = Annotated[DocumentWriter, Depends(_get_documents)]
