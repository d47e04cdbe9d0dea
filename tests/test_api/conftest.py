"""FastAPI test client fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from fakes import FakeExtractor, FakeResponder, ScriptedLLM
from fastapi import FastAPI
from fastapi.testclient import TestClient

from vibecheck.api.app import include_routes
from vibecheck.api.middleware import CorrelationIdMiddleware, add_exception_handlers
from vibecheck.documents import DocumentWriter
from vibecheck.orchestrator import TurnOrchestrator

if TYPE_CHECKING:
    from vibecheck.config import Settings
    from vibecheck.db import ConversationStore


def _create_test_app(store: ConversationStore, settings: Settings) -> FastAPI:
    """Create a FastAPI app with injected test store/settings (no lifespan)."""
    app = FastAPI(title="vibecheck Test")

    app.state.store = store
    app.state.settings = settings
    app.state.llm = ScriptedLLM()
    app.state.orchestrator = TurnOrchestrator(
        FakeExtractor({"idea": {"one_liner": "A budgeting app"}}),
        FakeResponder(reply="Nice idea! Who is it for?"),
    )
    app.state.documents = DocumentWriter(app.state.llm, settings)

    app.add_middleware(CorrelationIdMiddleware)
    add_exception_handlers(app)
    include_routes(app)
    return app


@pytest.fixture()
def app(store: ConversationStore, settings: Settings) -> FastAPI:
    return _create_test_app(store, settings)


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def conversation_id(client: TestClient) -> str:
    resp = client.post("/api/v1/conversations", json={})
    assert resp.status_code == 201
    return resp.json()["id"]
