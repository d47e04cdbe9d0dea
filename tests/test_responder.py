"""Tests for reply generation: context window, retries and streaming."""

from __future__ import annotations

import asyncio

import pytest
from fakes import ScriptedLLM

from vibecheck.errors import (
    GenerationTimeout,
    GenerationUnavailable,
    LLMConfigurationError,
    LLMRequestError,
    LLMTimeoutError,
    TransientLLMError,
)
from vibecheck.models.conversation import ChatMessage, Language, MessageRole, TurnDirective
from vibecheck.models.schema import ConversationState
from vibecheck.prompts import FEW_SHOT_EXAMPLES, SYSTEM_PROMPT
from vibecheck.responder import Responder

DIRECTIVE = TurnDirective(
    state=ConversationState.PRELIMINARY_EVAL,
    score=30,
    schema_summary="| Field | Value |\n|------|------|\n| Product | Budget app |",
)


def _history(n: int) -> list[ChatMessage]:
    roles = [MessageRole.USER, MessageRole.ASSISTANT]
    return [ChatMessage(role=roles[i % 2], content=f"m{i}") for i in range(n)]


async def _collect(stream) -> list[str]:
    return [chunk async for chunk in stream]


class TestContext:
    def test_few_shot_for_short_history(self, settings):
        context = Responder(ScriptedLLM(), settings).build_context(_history(2))
        assert context[: len(FEW_SHOT_EXAMPLES)] == list(FEW_SHOT_EXAMPLES)
        assert [m.content for m in context[len(FEW_SHOT_EXAMPLES) :]] == ["m0", "m1"]

    def test_no_few_shot_once_history_is_long(self, settings):
        context = Responder(ScriptedLLM(), settings).build_context(_history(4))
        assert [m.content for m in context] == ["m0", "m1", "m2", "m3"]

    def test_window_limits_history(self, settings):
        context = Responder(ScriptedLLM(), settings).build_context(_history(10))
        assert [m.content for m in context] == ["m4", "m5", "m6", "m7", "m8", "m9"]

    def test_leading_assistant_messages_dropped(self, settings):
        # The six-message window over seven messages starts on an assistant reply.
        context = Responder(ScriptedLLM(), settings).build_context(_history(7))
        assert [m.content for m in context] == ["m2", "m3", "m4", "m5", "m6"]
        assert context[0].role == MessageRole.USER

    def test_system_prompt_combines_state_and_language(self, settings):
        system = Responder(ScriptedLLM(), settings).build_system(DIRECTIVE, Language.ZH)
        assert system.startswith(SYSTEM_PROMPT)
        assert "Current state: PRELIMINARY_EVAL" in system
        assert "| Product | Budget app |" in system
        assert system.endswith("Always reply in Simplified Chinese.")


class TestRespond:
    def test_returns_text(self, settings):
        llm = ScriptedLLM(["## Preliminary assessment"])
        reply = asyncio.run(Responder(llm, settings).respond(DIRECTIVE, "hi"))
        assert reply == "## Preliminary assessment"
        assert llm.calls[0]["timeout"] == settings.generation_timeout_s

    def test_retries_transient(self, settings):
        llm = ScriptedLLM([TransientLLMError("529"), "ok"])
        assert asyncio.run(Responder(llm, settings).respond(DIRECTIVE, "hi")) == "ok"
        assert len(llm.calls) == 2

    def test_exhausted_timeouts_raise_generation_timeout(self, settings):
        llm = ScriptedLLM([LLMTimeoutError("slow")] * (settings.max_retries + 1))
        with pytest.raises(GenerationTimeout) as info:
            asyncio.run(Responder(llm, settings).respond(DIRECTIVE, "hi"))
        assert info.value.timed_out is True
        assert info.value.retryable is True

    def test_exhausted_transient_raises_unavailable(self, settings):
        llm = ScriptedLLM([TransientLLMError("503")] * (settings.max_retries + 1))
        with pytest.raises(GenerationUnavailable) as info:
            asyncio.run(Responder(llm, settings).respond(DIRECTIVE, "hi"))
        assert not isinstance(info.value, GenerationTimeout)

    def test_rejected_request_not_retried(self, settings):
        llm = ScriptedLLM([LLMRequestError("400"), "never"])
        with pytest.raises(GenerationUnavailable):
            asyncio.run(Responder(llm, settings).respond(DIRECTIVE, "hi"))
        assert len(llm.calls) == 1

    def test_configuration_error_propagates(self, settings):
        llm = ScriptedLLM([LLMConfigurationError("no key")])
        with pytest.raises(LLMConfigurationError):
            asyncio.run(Responder(llm, settings).respond(DIRECTIVE, "hi"))


class TestStream:
    def test_yields_chunks(self, settings):
        llm = ScriptedLLM([["Hel", "lo"]])
        chunks = asyncio.run(_collect(Responder(llm, settings).stream(DIRECTIVE, "hi")))
        assert chunks == ["Hel", "lo"]
        assert llm.calls[0]["idle_timeout"] == settings.stream_idle_timeout_s

    def test_retries_before_first_chunk(self, settings):
        llm = ScriptedLLM([TransientLLMError("503"), ["ok"]])
        chunks = asyncio.run(_collect(Responder(llm, settings).stream(DIRECTIVE, "hi")))
        assert chunks == ["ok"]
        assert len(llm.calls) == 2

    def test_no_retry_after_first_chunk(self, settings):
        llm = ScriptedLLM([["partial", LLMTimeoutError("stalled")], ["never"]])
        received: list[str] = []

        async def run():
            async for chunk in Responder(llm, settings).stream(DIRECTIVE, "hi"):
                received.append(chunk)

        with pytest.raises(GenerationTimeout):
            asyncio.run(run())
        assert received == ["partial"]
        assert len(llm.calls) == 1

    def test_exhausted_before_first_chunk(self, settings):
        llm = ScriptedLLM([TransientLLMError("503")] * (settings.max_retries + 1))
        with pytest.raises(GenerationUnavailable):
            asyncio.run(_collect(Responder(llm, settings).stream(DIRECTIVE, "hi")))
        assert len(llm.calls) == settings.max_retries + 1
