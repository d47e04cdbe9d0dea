"""Re-exports all Pydantic models."""

from vibecheck.models.conversation import (
    AssistantReply,
    ChatMessage,
    ContentEvent,
    Conversation,
    ConversationStatus,
    DoneEvent,
    Extraction,
    Language,
    Message,
    MessageMetadata,
    MessageRole,
    MessageType,
    MetadataEvent,
    Progress,
    SchemaEvent,
    StreamEvent,
    TurnDirective,
    TurnResult,
)
from vibecheck.models.document import Document, DocumentKind, EvaluationReport
from vibecheck.models.question import Choice, Question, QuestionOption, QuestionType
from vibecheck.models.schema import (
    APIDependency,
    ConversationState,
    EvaluationSchema,
    MVPType,
    PainLevel,
    PlatformForm,
    PriorityPreference,
    PrivacyLevel,
    SchemaUpdate,
    TimelinePreference,
)

__all__ = [
    "APIDependency",
    "AssistantReply",
    "ChatMessage",
    "Choice",
    "ContentEvent",
    "Conversation",
    "ConversationState",
    "ConversationStatus",
    "Document",
    "DocumentKind",
    "DoneEvent",
    "EvaluationReport",
    "EvaluationSchema",
    "Extraction",
    "Language",
    "MVPType",
    "Message",
    "MessageMetadata",
    "MessageRole",
    "MessageType",
    "MetadataEvent",
    "PainLevel",
    "PlatformForm",
    "PriorityPreference",
    "PrivacyLevel",
    "Progress",
    "Question",
    "QuestionOption",
    "QuestionType",
    "SchemaEvent",
    "SchemaUpdate",
    "StreamEvent",
    "TimelinePreference",
    "TurnDirective",
    "TurnResult",
]
