"""Prometheus metric definitions for the conversation service."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# --- Turns ---

turns_total = Counter(
    "vibecheck_turns_total",
    "Conversation turns processed, by resulting state",
    labelnames=["state"],
)

turn_duration_seconds = Histogram(
    "vibecheck_turn_duration_seconds",
    "Time spent handling one conversation turn",
    labelnames=["mode"],
    buckets=(0.5, 1, 2, 5, 10, 20, 30, 60, 90),
)

extraction_degraded_total = Counter(
    "vibecheck_extraction_degraded_total",
    "Turns that proceeded without structured extraction",
    labelnames=["reason"],
)

generation_failures_total = Counter(
    "vibecheck_generation_failures_total",
    "Turns whose reply could not be generated",
    labelnames=["reason"],
)

documents_total = Counter(
    "vibecheck_documents_total",
    "Report and brief generations, by kind and outcome",
    labelnames=["kind", "status"],
)

# --- Retry ---

retry_attempts_total = Counter(
    "vibecheck_retry_attempts_total",
    "Total retry attempts for LLM calls",
    labelnames=["fn_name"],
)

retry_exhausted_total = Counter(
    "vibecheck_retry_exhausted_total",
    "Total times retries were exhausted",
    labelnames=["fn_name"],
)

# --- LLM tokens ---

llm_tokens_total = Counter(
    "vibecheck_llm_tokens_total",
    "Total LLM tokens consumed",
    labelnames=["model", "token_type"],
)
