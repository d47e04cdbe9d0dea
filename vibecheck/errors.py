"""Error taxonomy for the conversation core and its LLM transport."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vibecheck.models.schema import EvaluationSchema

USER_FACING_RETRY_MESSAGE = (
    "Your message was received, but something went wrong producing a reply. Please retry."
)


class VibeCheckError(Exception):
    """Base class for all vibecheck errors."""


# --- Transport ---


class LLMError(VibeCheckError):
    """A call to the language-model service failed."""


class TransientLLMError(LLMError):
    """Timeouts, rate limits, 5xx and connection failures. Safe to retry."""


class LLMTimeoutError(TransientLLMError):
    """The call exceeded its timeout."""


class LLMConfigurationError(LLMError):
    """Missing or rejected credentials. Retrying will not help."""


class LLMRequestError(LLMError):
    """The service rejected the request as malformed. Not retried."""


class MalformedResponseError(LLMError):
    """The service answered, but not with the structure that was asked for."""


# --- Core ---


class ExtractionUnavailable(VibeCheckError):
    """Structured extraction could not be performed for this message."""

    def __init__(self, message: str, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


class GenerationUnavailable(VibeCheckError):
    """The reply could not be generated.

    ``schema`` holds the already-merged schema for the turn; callers should
    persist it, since it reflects information the user did give.
    """

    retryable = True
    timed_out = False

    def __init__(self, message: str, schema: EvaluationSchema | None = None) -> None:
        super().__init__(message)
        self.schema = schema

    def with_schema(self, schema: EvaluationSchema) -> GenerationUnavailable:
        """Return a copy of this error carrying *schema*."""
        err = type(self)(str(self), schema=schema)
        err.__cause__ = self.__cause__
        return err


class GenerationTimeout(GenerationUnavailable):
    """Reply generation kept timing out."""

    timed_out = True


class ConversationNotFound(VibeCheckError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class DocumentNotFound(VibeCheckError):
    def __init__(self, conversation_id: str, kind: str) -> None:
        super().__init__(f"No {kind} generated for conversation {conversation_id}")
        self.conversation_id = conversation_id
        self.kind = kind
