"""Shared test fixtures."""

from __future__ import annotations

import logging

import pytest
import structlog
from pydantic_ai import models

from vibecheck.config import Settings
from vibecheck.db import ConversationStore

# Safety net: block all real LLM API calls during tests.
# TestModel and FunctionModel are exempt from this check.
# If a test accidentally triggers a real model request, it gets
# a clear error instead of a billable API call.
models.ALLOW_MODEL_REQUESTS = False


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        anthropic_api_key="test-key",
        data_dir=tmp_path,
        log_level="DEBUG",
        log_format="console",
        max_retries=2,
        retry_base_delay=0.001,
        retry_max_delay=0.002,
        _env_file=None,
    )


@pytest.fixture()
def store(tmp_path) -> ConversationStore:
    store = ConversationStore(tmp_path / "test.db")
    store.init_schema()
    yield store
    store.close()


@pytest.fixture(autouse=True)
def _restore_logging():
    """Undo configure_logging() calls made by CLI and logging tests."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)
    root.setLevel(logging.WARNING)
    for name in ("httpx", "httpcore", "anthropic"):
        logging.getLogger(name).setLevel(logging.NOTSET)
