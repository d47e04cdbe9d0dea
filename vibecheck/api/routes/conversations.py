"""Conversation CRUD, schema edits, direct answers and reply regeneration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from fastapi import APIRouter

from vibecheck.api.deps import OrchestratorDep, SettingsDep, StoreDep
from vibecheck.api.schemas import (
    AnswersRequest,
    AnswersResponse,
    ChatResponse,
    ConversationListResponse,
    ConversationResponse,
    ConversationSummaryResponse,
    CreateConversationRequest,
    MessageResponse,
    SchemaResponse,
)
from vibecheck.errors import ConversationNotFound, GenerationUnavailable
from vibecheck.models.conversation import (
    ConversationStatus,
    Language,
    MessageRole,
)
from vibecheck.models.schema import SchemaUpdate
from vibecheck.question_bank import get_question, get_question_for_field, progress
from vibecheck.schema_store import create_empty, merge, update_for_field

if TYPE_CHECKING:
    from vibecheck.protocols import ConversationStorePort
    from vibecheck.models.conversation import ChatMessage, Conversation, Message
    from vibecheck.models.schema import EvaluationSchema

router = APIRouter(prefix="/conversations", tags=["conversations"])

logger = structlog.get_logger()


def _message_to_response(msg: Message) -> MessageResponse:
    return MessageResponse(
        id=msg.id,
        role=msg.role.value,
        content=msg.content,
        metadata=msg.metadata,
        created_at=str(msg.created_at),
    )


def _conversation_to_response(
    conv: Conversation, messages: list[Message] | None = None
) -> ConversationResponse:
    schema = conv.schema_data
    return ConversationResponse(
        id=conv.id,
        status=conv.status.value,
        project_name=conv.project_name,
        language=conv.language.value,
        schema_data=schema,
        completion_score=schema.meta.completion_score,
        state=schema.meta.current_state,
        progress=progress(schema),
        messages=[_message_to_response(m) for m in messages or []],
        created_at=str(conv.created_at),
        updated_at=str(conv.updated_at),
    )


def _schema_response(schema: EvaluationSchema) -> SchemaResponse:
    return SchemaResponse(
        schema_data=schema,
        completion_score=schema.meta.completion_score,
        state=schema.meta.current_state,
        progress=progress(schema),
    )


def require_conversation(store: ConversationStorePort, conversation_id: str) -> Conversation:
    conv = store.get_conversation(conversation_id)
    if conv is None:
        raise ConversationNotFound(conversation_id)
    return conv


def load_history(
    store: ConversationStorePort, conversation_id: str, limit: int
) -> list[ChatMessage]:
    """Recent user/assistant turns, oldest first, excluding the newest message."""
    recent = store.load_recent_messages(conversation_id, limit)
    turns = [m.as_chat_message() for m in recent if m.role != MessageRole.SYSTEM]
    return turns[:-1]


@router.post("", response_model=ConversationResponse, status_code=201)
def create_conversation(
    body: CreateConversationRequest,
    store: StoreDep,
    settings: SettingsDep,
    orchestrator: OrchestratorDep,
) -> ConversationResponse:
    """Start a conversation; a project name seeds the one-line idea."""
    language = body.language or Language(settings.default_language)
    project_name = body.project_name.strip()
    schema = create_empty()
    if project_name:
        schema = merge(schema, update_for_field("idea.one_liner", project_name))

    conv = store.create_conversation(schema, project_name=project_name, language=language.value)
    starter = orchestrator.starter_message(language)
    store.append_message(conv.id, MessageRole.ASSISTANT, starter.content, starter.metadata)
    logger.info("Conversation created", conversation_id=conv.id, language=language.value)
    return _conversation_to_response(conv, store.list_messages(conv.id))


@router.get("", response_model=ConversationListResponse)
def list_conversations(
    store: StoreDep,
    status: str | None = None,
    limit: int = 50,
) -> ConversationListResponse:
    conv_status = ConversationStatus(status) if status else None
    conversations = store.list_conversations(conv_status, limit=limit)
    return ConversationListResponse(
        conversations=[
            ConversationSummaryResponse(
                id=c.id,
                status=c.status.value,
                project_name=c.project_name,
                language=c.language.value,
                completion_score=c.schema_data.meta.completion_score,
                state=c.schema_data.meta.current_state,
                created_at=str(c.created_at),
                updated_at=str(c.updated_at),
            )
            for c in conversations
        ],
        total=len(conversations),
    )


@router.get("/{conversation_id}", response_model=ConversationResponse)
def get_conversation(
    conversation_id: str,
    store: StoreDep,
) -> ConversationResponse:
    conv = require_conversation(store, conversation_id)
    return _conversation_to_response(conv, store.list_messages(conversation_id))


@router.patch("/{conversation_id}/schema", response_model=SchemaResponse)
def update_schema(
    conversation_id: str,
    body: SchemaUpdate,
    store: StoreDep,
) -> SchemaResponse:
    """Merge a partial schema edit made directly by the user."""
    schema = merge(store.load_schema(conversation_id), body)
    store.save_schema(conversation_id, schema)
    return _schema_response(schema)


@router.post("/{conversation_id}/answers", response_model=AnswersResponse)
def save_answers(
    conversation_id: str,
    body: AnswersRequest,
    store: StoreDep,
    orchestrator: OrchestratorDep,
) -> AnswersResponse:
    schema = store.load_schema(conversation_id)
    applied: list[str] = []
    ignored: list[str] = []
    for key, answer in body.answers.items():
        question = get_question(key) or get_question_for_field(key)
        if question is None:
            ignored.append(key)
            continue
        schema = orchestrator.answer_question(schema, question.id, answer)
        applied.append(question.field)

    store.save_schema(conversation_id, schema)
    return AnswersResponse(
        schema_data=schema,
        completion_score=schema.meta.completion_score,
        state=schema.meta.current_state,
        progress=progress(schema),
        applied=applied,
        ignored=ignored,
    )


@router.post("/{conversation_id}/regenerate", response_model=ChatResponse)
async def regenerate_reply(
    conversation_id: str,
    store: StoreDep,
    settings: SettingsDep,
    orchestrator: OrchestratorDep,
) -> ChatResponse:
    """Retry reply generation for the latest user message without re-extracting."""
    conv = require_conversation(store, conversation_id)
    recent = [
        m.as_chat_message()
        for m in store.load_recent_messages(conversation_id, settings.recent_messages_limit)
        if m.role != MessageRole.SYSTEM
    ]
    last_user = next(
        (i for i in range(len(recent) - 1, -1, -1) if recent[i].role == MessageRole.USER),
        None,
    )
    if last_user is None:
        raise ValueError("No user message to regenerate a reply for")

    result = await orchestrator.regenerate(
        recent[last_user].content,
        conv.schema_data,
        recent[:last_user],
        conv.language,
    )
    store.append_message(
        conversation_id, MessageRole.ASSISTANT, result.reply.content, result.reply.metadata
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


def persist_failed_turn(
    store: ConversationStorePort, conversation_id: str, exc: GenerationUnavailable
) -> None:
    """Keep what the user told us even though no reply was produced."""
    if exc.schema is not None:
        store.save_schema(conversation_id, exc.schema)
    logger.warning(
        "Turn persisted without reply",
        conversation_id=conversation_id,
        timed_out=exc.timed_out,
    )
