"""Conversation, message and turn models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from vibecheck.models.question import Choice, Question
from vibecheck.models.schema import ConversationState, EvaluationSchema, SchemaUpdate


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Language(StrEnum):
    EN = "en"
    ZH = "zh"


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ConversationStatus(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class MessageType(StrEnum):
    TEXT = "text"
    CHOICES = "choices"


class MessageMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: MessageType = MessageType.TEXT
    choices: list[Choice] = Field(default_factory=list)
    question_id: str | None = None
    updated_fields: list[str] = Field(default_factory=list)


class ChatMessage(BaseModel):
    """A prior turn passed to the response generator as context."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str


class Message(BaseModel):
    """A persisted chat message."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    conversation_id: str
    role: MessageRole
    content: str
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)
    created_at: datetime = Field(default_factory=_utcnow)

    def as_chat_message(self) -> ChatMessage:
        return ChatMessage(role=self.role, content=self.content)


class Conversation(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    status: ConversationStatus = ConversationStatus.ACTIVE
    schema_data: EvaluationSchema = Field(default_factory=EvaluationSchema)
    project_name: str = ""
    language: Language = Language.EN
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Turn processing
# ---------------------------------------------------------------------------


class Extraction(BaseModel):
    """Structured facts pulled out of one user message."""

    model_config = ConfigDict(frozen=True)

    understood: str
    extracted: SchemaUpdate = Field(default_factory=SchemaUpdate)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class TurnDirective(BaseModel):
    """Instruction set driving response generation for one turn."""

    model_config = ConfigDict(frozen=True)

    state: ConversationState
    score: int
    schema_summary: str
    question_text: str | None = None
    choices: list[Choice] = Field(default_factory=list)


class AssistantReply(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)


class TurnResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    reply: AssistantReply
    schema_data: EvaluationSchema
    state: ConversationState
    score: int
    understood: str
    confidence: float
    extracted: SchemaUpdate
    question: Question | None = None


class Progress(BaseModel):
    model_config = ConfigDict(frozen=True)

    mvp_percent: int
    total_percent: int
    mvp_filled: int
    mvp_total: int
    supplementary_filled: int
    supplementary_total: int


# ---------------------------------------------------------------------------
# Streaming events, emitted in this order: content*, metadata, schema, done.
# ---------------------------------------------------------------------------


class ContentEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["content"] = "content"
    content: str


class MetadataEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["metadata"] = "metadata"
    text: str
    metadata: MessageMetadata


class SchemaEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["schema"] = "schema"
    schema_data: EvaluationSchema
    completion_score: int
    next_state: ConversationState


class DoneEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["done"] = "done"


StreamEvent = ContentEvent | MetadataEvent | SchemaEvent | DoneEvent
