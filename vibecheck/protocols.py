"""Port interfaces (Protocols) consumed by the conversation core."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from pydantic import BaseModel

    from vibecheck.models.conversation import (
        ChatMessage,
        Conversation,
        ConversationStatus,
        Message,
        MessageMetadata,
        MessageRole,
    )
    from vibecheck.models.document import Document, DocumentKind
    from vibecheck.models.schema import EvaluationSchema


@runtime_checkable
class LLMPort(Protocol):
    """Chat-completion style transport used by the extraction and reply adapters."""

    @property
    def is_available(self) -> bool: ...

    async def generate(
        self,
        prompt: str,
        response_model: type[BaseModel],
        system: str = "",
        history: Sequence[ChatMessage] = (),
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ) -> BaseModel: ...

    async def generate_text(
        self,
        prompt: str,
        system: str = "",
        history: Sequence[ChatMessage] = (),
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ) -> str: ...

    def stream_text(
        self,
        prompt: str,
        system: str = "",
        history: Sequence[ChatMessage] = (),
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
        idle_timeout: float | None = None,
    ) -> AsyncIterator[str]: ...

    async def ping(self) -> bool: ...


@runtime_checkable
class ConversationStorePort(Protocol):
    """Conversation and message persistence. The core never calls this itself."""

    def create_conversation(
        self,
        schema: EvaluationSchema | None = None,
        project_name: str = "",
        language: str = "en",
    ) -> Conversation: ...
    def get_conversation(self, conversation_id: str) -> Conversation | None: ...
    def load_schema(self, conversation_id: str) -> EvaluationSchema: ...
    def save_schema(self, conversation_id: str, schema: EvaluationSchema) -> None: ...
    def append_message(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        metadata: MessageMetadata | None = None,
    ) -> int: ...
    def load_recent_messages(self, conversation_id: str, n: int) -> list[Message]: ...
    def list_conversations(
        self, status: ConversationStatus | None = None, limit: int = 50
    ) -> list[Conversation]: ...
    def list_messages(self, conversation_id: str) -> list[Message]: ...
    def save_document(
        self, conversation_id: str, kind: DocumentKind, content: str
    ) -> Document: ...
    def latest_document(self, conversation_id: str, kind: DocumentKind) -> Document | None: ...
    def check_connection(self) -> bool: ...
