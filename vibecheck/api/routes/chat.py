"""Chat turn endpoints: one-shot JSON and Server-Sent Events streaming."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import structlog
from fastapi import APIRouter
from sse_starlette.sse import EventSourceResponse

from vibecheck.api.deps import OrchestratorDep, SettingsDep, StoreDep
from vibecheck.api.middleware import generation_error_body
from vibecheck.api.routes.conversations import (
    load_history,
    persist_failed_turn,
    require_conversation,
)
from vibecheck.api.schemas import ChatRequest, ChatResponse
from vibecheck.errors import GenerationUnavailable, LLMConfigurationError
from vibecheck.logging import bind_conversation
from vibecheck.models.conversation import MessageRole, MetadataEvent, SchemaEvent

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

router = APIRouter(prefix="/chat", tags=["chat"])

logger = structlog.get_logger()


@router.post("", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    store: StoreDep,
    settings: SettingsDep,
    orchestrator: OrchestratorDep,
) -> ChatResponse:
    conv = require_conversation(store, body.conversation_id)
    bind_conversation(conv.id, conv.language.value)
    store.append_message(conv.id, MessageRole.USER, body.message)
    history = load_history(store, conv.id, settings.recent_messages_limit)

    try:
        result = await orchestrator.handle_turn(
            body.message, conv.schema_data, history, conv.language
        )
    except GenerationUnavailable as exc:
        persist_failed_turn(store, conv.id, exc)
        raise

    store.save_schema(conv.id, result.schema_data)
    store.append_message(
        conv.id, MessageRole.ASSISTANT, result.reply.content, result.reply.metadata
    )
    return ChatResponse(
        message=result.reply.content,
        metadata=result.reply.metadata,
        schema_data=result.schema_data,
        completion_score=result.score,
        state=result.state,
        understood=result.understood,
        confidence=result.confidence,
        extracted=result.extracted,
    )


@router.post("/stream")
async def chat_stream(
    body: ChatRequest,
    store: StoreDep,
    settings: SettingsDep,
    orchestrator: OrchestratorDep,
) -> EventSourceResponse:
    """Stream the reply as SSE events named content, metadata, schema and done.

    A failure after the stream has started is reported as an ``error`` event.
    """
    conv = require_conversation(store, body.conversation_id)
    bind_conversation(conv.id, conv.language.value)
    store.append_message(conv.id, MessageRole.USER, body.message)
    history = load_history(store, conv.id, settings.recent_messages_limit)

    async def event_stream() -> AsyncIterator[dict[str, str]]:
        try:
            async for event in orchestrator.stream_turn(
                body.message, conv.schema_data, history, conv.language
            ):
                if isinstance(event, MetadataEvent):
                    store.append_message(
                        conv.id, MessageRole.ASSISTANT, event.text, event.metadata
                    )
                elif isinstance(event, SchemaEvent):
                    store.save_schema(conv.id, event.schema_data)
                yield {"event": event.type, "data": event.model_dump_json()}
        except GenerationUnavailable as exc:
            persist_failed_turn(store, conv.id, exc)
            yield {"event": "error", "data": json.dumps(generation_error_body(exc))}
        except LLMConfigurationError as exc:
            logger.error("LLM not configured", error=str(exc))
            yield {
                "event": "error",
                "data": json.dumps({"error": "llm_not_configured", "retryable": False}),
            }

    return EventSourceResponse(event_stream())
