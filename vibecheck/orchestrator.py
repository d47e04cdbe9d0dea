"""Turn orchestrator: extraction -> merge -> state -> reply for one user message."""

from __future__ import annotations

import time as time_mod
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict

from vibecheck.errors import ExtractionUnavailable, GenerationUnavailable
from vibecheck.metrics import (
    extraction_degraded_total,
    generation_failures_total,
    turn_duration_seconds,
    turns_total,
)
from vibecheck.models.conversation import (
    AssistantReply,
    ContentEvent,
    DoneEvent,
    Extraction,
    Language,
    MessageMetadata,
    MessageType,
    MetadataEvent,
    SchemaEvent,
    TurnDirective,
    TurnResult,
)
from vibecheck.models.question import Question, QuestionType
from vibecheck.models.schema import ConversationState, SchemaUpdate
from vibecheck.prompts import CONVERSATION_STARTER
from vibecheck.question_bank import (
    display_choices,
    get_question,
    next_question,
    parse_answer_value,
)
from vibecheck.schema_store import (
    filled_fields,
    merge,
    next_state,
    score,
    summarize,
    update_for_field,
)
from vibecheck.wire import CHOICES_MARKER, split_choices

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from vibecheck.config import Settings
    from vibecheck.extraction import Extractor
    from vibecheck.models.conversation import ChatMessage, StreamEvent
    from vibecheck.models.schema import EvaluationSchema
    from vibecheck.protocols import LLMPort
    from vibecheck.responder import Responder

logger = structlog.get_logger()

DEGRADED_CONFIDENCE = 0.3


class _Plan(BaseModel):
    """State, selected question and directive for one reply."""

    model_config = ConfigDict(frozen=True)

    state: ConversationState
    question: Question | None = None
    directive: TurnDirective


class _MarkerHoldback:
    """Emit streamed text up to the choices marker and swallow the rest.

    Holds back a tail as long as the marker so a marker split across chunks
    never reaches the client.
    """

    def __init__(self) -> None:
        self.raw = ""
        self._emitted = 0
        self._closed = False

    def feed(self, chunk: str) -> str:
        self.raw += chunk
        if self._closed:
            return ""
        idx = self.raw.find(CHOICES_MARKER)
        if idx != -1:
            self._closed = True
            safe_end = idx
        else:
            safe_end = max(self._emitted, len(self.raw) - len(CHOICES_MARKER) + 1)
        out = self.raw[self._emitted : safe_end]
        self._emitted = max(self._emitted, safe_end)
        return out

    def flush(self) -> str:
        if self._closed:
            return ""
        out = self.raw[self._emitted :]
        self._emitted = len(self.raw)
        return out


class TurnOrchestrator:
    """Runs one conversation turn end to end.

    Holds no per-conversation state: callers load the schema and history,
    pass them in, and persist what comes back.
    """

    def __init__(
        self,
        extractor: Extractor,
        responder: Responder,
        language: Language = Language.EN,
    ) -> None:
        self.extractor = extractor
        self.responder = responder
        self.language = language

    # -- helpers ------------------------------------------------------------

    async def _extract(
        self, message: str, schema: EvaluationSchema, language: Language
    ) -> Extraction:
        try:
            return await self.extractor.extract(message, schema, language)
        except ExtractionUnavailable as exc:
            reason = "timeout" if exc.timed_out else "unavailable"
            extraction_degraded_total.labels(reason=reason).inc()
            logger.warning("Extraction degraded", reason=reason, error=str(exc))
            return Extraction(understood=message, confidence=DEGRADED_CONFIDENCE)

    def _plan(self, schema: EvaluationSchema) -> _Plan:
        completion = score(schema)
        state = next_state(completion)
        question = None
        if state == ConversationState.ASK_QUESTION:
            question = next_question(schema)
            if question is None:
                state = ConversationState.PRELIMINARY_EVAL

        directive = TurnDirective(
            state=state,
            score=completion,
            schema_summary=summarize(schema),
            question_text=question.question if question else None,
            choices=display_choices(question) if question else [],
        )
        return _Plan(state=state, question=question, directive=directive)

    def _build_reply(
        self, raw: str, question: Question | None, updated_fields: list[str]
    ) -> AssistantReply:
        text, choices = split_choices(raw)
        if question is not None and question.type == QuestionType.CHOICE:
            choices = display_choices(question)
        metadata = MessageMetadata(
            type=MessageType.CHOICES if choices else MessageType.TEXT,
            choices=choices,
            question_id=question.id if question else None,
            updated_fields=updated_fields,
        )
        return AssistantReply(content=text, metadata=metadata)

    def _fail(self, exc: GenerationUnavailable, schema: EvaluationSchema) -> GenerationUnavailable:
        reason = "timeout" if exc.timed_out else "unavailable"
        generation_failures_total.labels(reason=reason).inc()
        logger.error("Reply generation failed", reason=reason, error=str(exc))
        return exc.with_schema(schema)

    # -- operations ---------------------------------------------------------

    async def handle_turn(
        self,
        message: str,
        schema: EvaluationSchema,
        history: Sequence[ChatMessage] = (),
        language: Language | None = None,
    ) -> TurnResult:
        """Process one user message and produce the assistant reply.

        Raises:
            GenerationUnavailable: the reply could not be produced; the error
                carries the merged schema.
            LLMConfigurationError: credentials are missing or rejected.
        """
        lang = language or self.language
        started = time_mod.monotonic()

        extraction = await self._extract(message, schema, lang)
        updated = merge(schema, extraction.extracted)
        plan = self._plan(updated)

        try:
            raw = await self.responder.respond(plan.directive, message, history, lang)
        except GenerationUnavailable as exc:
            raise self._fail(exc, updated) from exc.__cause__

        reply = self._build_reply(raw, plan.question, filled_fields(extraction.extracted))
        turns_total.labels(state=plan.state.value).inc()
        turn_duration_seconds.labels(mode="sync").observe(time_mod.monotonic() - started)
        logger.info(
            "Turn complete",
            state=plan.state.value,
            score=updated.meta.completion_score,
            question_id=plan.question.id if plan.question else None,
        )
        return TurnResult(
            reply=reply,
            schema_data=updated,
            state=plan.state,
            score=updated.meta.completion_score,
            understood=extraction.understood,
            confidence=extraction.confidence,
            extracted=extraction.extracted,
            question=plan.question,
        )

    async def stream_turn(
        self,
        message: str,
        schema: EvaluationSchema,
        history: Sequence[ChatMessage] = (),
        language: Language | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Streaming variant of :meth:`handle_turn`.

        Yields content events, then one metadata, one schema and one done
        event. Text after the choices marker is never emitted as content.
        """
        lang = language or self.language
        started = time_mod.monotonic()

        extraction = await self._extract(message, schema, lang)
        updated = merge(schema, extraction.extracted)
        plan = self._plan(updated)

        holdback = _MarkerHoldback()
        try:
            async for chunk in self.responder.stream(plan.directive, message, history, lang):
                text = holdback.feed(chunk)
                if text:
                    yield ContentEvent(content=text)
        except GenerationUnavailable as exc:
            raise self._fail(exc, updated) from exc.__cause__

        tail = holdback.flush()
        if tail:
            yield ContentEvent(content=tail)

        reply = self._build_reply(holdback.raw, plan.question, filled_fields(extraction.extracted))
        turns_total.labels(state=plan.state.value).inc()
        turn_duration_seconds.labels(mode="stream").observe(time_mod.monotonic() - started)

        yield MetadataEvent(text=reply.content, metadata=reply.metadata)
        yield SchemaEvent(
            schema_data=updated,
            completion_score=updated.meta.completion_score,
            next_state=plan.state,
        )
        yield DoneEvent()

    async def regenerate(
        self,
        message: str,
        schema: EvaluationSchema,
        history: Sequence[ChatMessage] = (),
        language: Language | None = None,
    ) -> TurnResult:
        """Produce a reply for an already-merged schema, skipping extraction."""
        lang = language or self.language
        plan = self._plan(schema)
        try:
            raw = await self.responder.respond(plan.directive, message, history, lang)
        except GenerationUnavailable as exc:
            raise self._fail(exc, schema) from exc.__cause__

        turns_total.labels(state=plan.state.value).inc()
        # No extraction ran, so nothing was understood or extracted this time.
        return TurnResult(
            reply=self._build_reply(raw, plan.question, []),
            schema_data=schema,
            state=plan.state,
            score=schema.meta.completion_score,
            understood=message,
            confidence=0.0,
            extracted=SchemaUpdate(),
            question=plan.question,
        )

    def answer_question(
        self, schema: EvaluationSchema, question_id: str, answer: str
    ) -> EvaluationSchema:
        """Record a direct answer to a catalog question.

        Unknown question ids leave the schema unchanged.
        """
        question = get_question(question_id)
        if question is None:
            logger.warning("Unknown question id", question_id=question_id)
            return schema
        value = parse_answer_value(question, answer)
        return merge(schema, update_for_field(question.field, value))

    def starter_message(self, language: Language | None = None) -> AssistantReply:
        return AssistantReply(content=CONVERSATION_STARTER[language or self.language])


def build_orchestrator(settings: Settings, llm: LLMPort | None = None) -> TurnOrchestrator:
    """Wire the extraction and reply adapters around one shared LLM client."""
    from vibecheck.extraction import Extractor
    from vibecheck.llm import LLMClient
    from vibecheck.responder import Responder

    client = llm or LLMClient(settings)
    return TurnOrchestrator(
        Extractor(client, settings),
        Responder(client, settings),
        language=Language(settings.default_language),
    )
