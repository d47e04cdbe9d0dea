"""Tests for Prometheus metric definitions and instrumentation."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from fakes import FakeExtractor, FakeResponder
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

if TYPE_CHECKING:
    from fastapi import FastAPI

from vibecheck.errors import GenerationUnavailable
from vibecheck.metrics import (
    extraction_degraded_total,
    generation_failures_total,
    llm_tokens_total,
    retry_attempts_total,
    retry_exhausted_total,
    turn_duration_seconds,
    turns_total,
)
from vibecheck.orchestrator import TurnOrchestrator
from vibecheck.schema_store import create_empty


class TestMetricDefinitions:
    """Counter._name strips '_total'; it is re-added in exported samples."""

    def test_turn_metrics(self):
        assert turns_total._name == "vibecheck_turns"
        assert "state" in turns_total._labelnames
        assert turn_duration_seconds._name == "vibecheck_turn_duration_seconds"
        assert "mode" in turn_duration_seconds._labelnames

    def test_degradation_counters(self):
        assert extraction_degraded_total._name == "vibecheck_extraction_degraded"
        assert generation_failures_total._name == "vibecheck_generation_failures"

    def test_retry_counters(self):
        assert retry_attempts_total._name == "vibecheck_retry_attempts"
        assert retry_exhausted_total._name == "vibecheck_retry_exhausted"

    def test_llm_tokens_counter(self):
        assert llm_tokens_total._name == "vibecheck_llm_tokens"
        assert "token_type" in llm_tokens_total._labelnames


class TestMetricsEndpoint:
    def test_metrics_endpoint(self):
        from vibecheck.api.app import create_app

        app = create_app()
        # Override lifespan to avoid DB init
        app.router.lifespan_context = _noop_lifespan
        client = TestClient(app, raise_server_exceptions=False)
        response = client.get("/metrics/")
        assert response.status_code == 200
        assert "text/plain" in response.headers.get("content-type", "")
        assert "vibecheck_turn_duration_seconds" in response.text
        assert "vibecheck_retry_attempts_total" in response.text


class TestTurnInstrumentation:
    def test_turn_counted_by_state(self):
        orchestrator = TurnOrchestrator(
            FakeExtractor({"idea": {"one_liner": "A budgeting app"}}), FakeResponder()
        )
        before = _get_counter_value("vibecheck_turns", {"state": "PRELIMINARY_EVAL"})
        asyncio.run(orchestrator.handle_turn("A budgeting app", create_empty()))
        after = _get_counter_value("vibecheck_turns", {"state": "PRELIMINARY_EVAL"})
        assert after - before == 1

    def test_degraded_extraction_counted(self):
        orchestrator = TurnOrchestrator(FakeExtractor(fail=True), FakeResponder())
        before = _get_counter_value("vibecheck_extraction_degraded", {"reason": "timeout"})
        asyncio.run(orchestrator.handle_turn("hello", create_empty()))
        after = _get_counter_value("vibecheck_extraction_degraded", {"reason": "timeout"})
        assert after - before == 1

    def test_generation_failure_counted(self):
        orchestrator = TurnOrchestrator(FakeExtractor(), FakeResponder(fail=True))
        before = _get_counter_value("vibecheck_generation_failures", {"reason": "unavailable"})
        with pytest.raises(GenerationUnavailable):
            asyncio.run(orchestrator.handle_turn("hello", create_empty()))
        after = _get_counter_value("vibecheck_generation_failures", {"reason": "unavailable"})
        assert after - before == 1


# --- Helpers ---


@asynccontextmanager
async def _noop_lifespan(app: FastAPI):
    yield


def _get_counter_value(metric_name: str, labels: dict[str, str]) -> float:
    """Read the current value of a Prometheus counter from the default registry.

    For counters, metric.name == base name (without _total),
    but sample.name == base_name + "_total".
    """
    for metric in REGISTRY.collect():
        if metric.name == metric_name:
            for sample in metric.samples:
                if sample.name == f"{metric_name}_total" and sample.labels == labels:
                    return sample.value
    return 0.0
