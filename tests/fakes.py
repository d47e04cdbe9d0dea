"""Scripted stand-ins for the LLM transport and the turn adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

from vibecheck.errors import (
    ExtractionUnavailable,
    GenerationTimeout,
    GenerationUnavailable,
)
from vibecheck.models.conversation import Extraction
from vibecheck.models.schema import SchemaUpdate

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from vibecheck.models.conversation import TurnDirective


class ScriptedLLM:
    """LLMPort double: each call pops the next scripted outcome.

    An outcome that is an exception instance is raised; anything else is
    returned (or, for streams, yielded chunk by chunk).
    """

    def __init__(self, outcomes: list[object] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.calls: list[dict[str, object]] = []

    @property
    def is_available(self) -> bool:
        return True

    def _next(self, kind: str, **kwargs: object) -> object:
        self.calls.append({"kind": kind, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def generate(self, prompt, response_model, **kwargs):
        return self._next("generate", prompt=prompt, **kwargs)

    async def generate_text(self, prompt, **kwargs):
        return self._next("generate_text", prompt=prompt, **kwargs)

    async def stream_text(self, prompt, **kwargs):
        self.calls.append({"kind": "stream_text", "prompt": prompt, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        for chunk in outcome:
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk

    async def ping(self) -> bool:
        return True


class FakeExtractor:
    """Returns a fixed update, or raises ExtractionUnavailable when *fail* is set."""

    def __init__(
        self,
        update: SchemaUpdate | dict | None = None,
        understood: str = "understood",
        confidence: float = 0.9,
        fail: bool = False,
    ) -> None:
        if isinstance(update, dict):
            update = SchemaUpdate.model_validate(update)
        self.update = update or SchemaUpdate()
        self.understood = understood
        self.confidence = confidence
        self.fail = fail
        self.calls: list[str] = []

    async def extract(self, message, schema, language=None) -> Extraction:
        self.calls.append(message)
        if self.fail:
            raise ExtractionUnavailable("extraction down", timed_out=True)
        return Extraction(
            understood=self.understood, extracted=self.update, confidence=self.confidence
        )


class FakeResponder:
    """Returns *reply* (or streams *chunks*); can fail with a generation error."""

    def __init__(
        self,
        reply: str = "ok",
        chunks: list[str] | None = None,
        fail: bool = False,
        timeout: bool = False,
    ) -> None:
        self.reply = reply
        self.chunks = chunks if chunks is not None else [reply]
        self.fail = fail
        self.timeout = timeout
        self.directives: list[TurnDirective] = []

    def _error(self) -> GenerationUnavailable:
        if self.timeout:
            return GenerationTimeout("timed out")
        return GenerationUnavailable("down")

    async def respond(self, directive, user_message, history=(), language=None) -> str:
        self.directives.append(directive)
        if self.fail:
            raise self._error()
        return self.reply

    async def stream(
        self, directive, user_message, history=(), language=None
    ) -> AsyncIterator[str]:
        self.directives.append(directive)
        if self.fail:
            raise self._error()
        for chunk in self.chunks:
            yield chunk
