"""API request/response schemas (separate from domain models)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from vibecheck.models.conversation import Language, MessageMetadata, Progress
from vibecheck.models.document import EvaluationReport
from vibecheck.models.schema import ConversationState, EvaluationSchema, SchemaUpdate

# --- Requests ---


class CreateConversationRequest(BaseModel):
    project_name: str = ""
    language: Language | None = None


class ChatRequest(BaseModel):
    conversation_id: str
    message: str = Field(min_length=1)


class AnswersRequest(BaseModel):
    """Answers keyed by question id (``q3``) or field path (``user.primary_user``)."""

    answers: dict[str, str]


# --- Responses ---


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int | None
    role: str
    content: str
    metadata: MessageMetadata
    created_at: str


class ConversationSummaryResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    status: str
    project_name: str
    language: str
    completion_score: int
    state: ConversationState
    created_at: str
    updated_at: str


class ConversationListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    conversations: list[ConversationSummaryResponse]
    total: int


class ConversationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    status: str
    project_name: str
    language: str
    schema_data: EvaluationSchema
    completion_score: int
    state: ConversationState
    progress: Progress
    messages: list[MessageResponse] = Field(default_factory=list)
    created_at: str
    updated_at: str


class SchemaResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    schema_data: EvaluationSchema
    completion_score: int
    state: ConversationState
    progress: Progress


class AnswersResponse(SchemaResponse):
    applied: list[str]
    ignored: list[str]


class ChatResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    metadata: MessageMetadata
    schema_data: EvaluationSchema
    completion_score: int
    state: ConversationState
    understood: str
    confidence: float
    extracted: SchemaUpdate


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    version: str
    db_connected: bool
    checks: dict[str, bool] = Field(default_factory=dict)


class ConfigCheckResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    configured: dict[str, bool]
    settings: dict[str, str | int | float] = Field(default_factory=dict)


class ReportResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    conversation_id: str
    report: EvaluationReport
    completion_score: int
    created_at: str


class BriefResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    conversation_id: str
    project_name: str
    markdown: str
    created_at: str
