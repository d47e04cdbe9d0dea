"""Response generator: turns a turn directive into the user-facing reply."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from vibecheck.config import Settings
from vibecheck.errors import (
    GenerationTimeout,
    GenerationUnavailable,
    LLMRequestError,
    LLMTimeoutError,
    MalformedResponseError,
    TransientLLMError,
)
from vibecheck.metrics import retry_attempts_total, retry_exhausted_total
from vibecheck.models.conversation import Language, MessageRole
from vibecheck.prompts import FEW_SHOT_EXAMPLES, SYSTEM_PROMPT, language_instruction, state_prompt
from vibecheck.retry import RetryExhaustedError, async_with_retry, backoff_delay

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from vibecheck.models.conversation import ChatMessage, TurnDirective
    from vibecheck.protocols import LLMPort

logger = structlog.get_logger()


def generation_error(
    exc: BaseException, action: str = "Reply generation"
) -> GenerationUnavailable:
    """Map a failed generation call to GenerationTimeout or GenerationUnavailable."""
    cause = exc.__cause__ if isinstance(exc, RetryExhaustedError) else exc
    if isinstance(cause, LLMTimeoutError):
        return GenerationTimeout(f"{action} timed out")
    return GenerationUnavailable(f"{action} unavailable")


class Responder:
    """Wraps the reply-generation call, plain or streamed.

    Uses the same retry policy as extraction. A streamed reply is only
    retried while nothing has been emitted yet.
    """

    def __init__(self, llm: LLMPort, settings: Settings | None = None) -> None:
        self.llm = llm
        self.settings = settings or Settings()

    def build_system(self, directive: TurnDirective, language: Language) -> str:
        return "\n\n".join(
            [SYSTEM_PROMPT, state_prompt(directive), language_instruction(language)]
        )

    def build_context(self, history: Sequence[ChatMessage]) -> list[ChatMessage]:
        """Few-shot examples for young conversations, then the recent history tail."""
        context: list[ChatMessage] = []
        if len(history) < self.settings.few_shot_max_history:
            context.extend(FEW_SHOT_EXAMPLES)
        window = self.settings.history_window
        context.extend(history[-window:] if window > 0 else [])
        while context and context[0].role != MessageRole.USER:
            context.pop(0)
        return context

    async def respond(
        self,
        directive: TurnDirective,
        user_message: str,
        history: Sequence[ChatMessage] = (),
        language: Language = Language.EN,
    ) -> str:
        s = self.settings
        system = self.build_system(directive, language)
        context = self.build_context(history)

        async def _call() -> str:
            return await self.llm.generate_text(
                user_message,
                system=system,
                history=context,
                temperature=s.response_temperature,
                max_tokens=s.response_max_tokens,
                timeout=s.generation_timeout_s,
            )

        try:
            return await async_with_retry(
                _call,
                max_retries=s.max_retries,
                base_delay=s.retry_base_delay,
                max_delay=s.retry_max_delay,
                retryable=(TransientLLMError,),
                label="respond",
            )
        except (RetryExhaustedError, LLMRequestError, MalformedResponseError) as exc:
            raise generation_error(exc) from exc

    async def stream(
        self,
        directive: TurnDirective,
        user_message: str,
        history: Sequence[ChatMessage] = (),
        language: Language = Language.EN,
    ) -> AsyncIterator[str]:
        s = self.settings
        system = self.build_system(directive, language)
        context = self.build_context(history)

        attempt = 0
        while True:
            emitted = False
            try:
                async for chunk in self.llm.stream_text(
                    user_message,
                    system=system,
                    history=context,
                    temperature=s.response_temperature,
                    max_tokens=s.response_max_tokens,
                    timeout=s.generation_timeout_s,
                    idle_timeout=s.stream_idle_timeout_s,
                ):
                    emitted = True
                    yield chunk
                return
            except TransientLLMError as exc:
                if emitted or attempt >= s.max_retries:
                    retry_exhausted_total.labels(fn_name="respond_stream").inc()
                    raise generation_error(exc) from exc
                retry_attempts_total.labels(fn_name="respond_stream").inc()
                delay = backoff_delay(attempt, s.retry_base_delay, s.retry_max_delay)
                logger.warning(
                    "Retry attempt",
                    attempt=attempt + 1,
                    max_retries=s.max_retries,
                    fn="respond_stream",
                    delay_s=round(delay, 2),
                    error=str(exc),
                )
                attempt += 1
                await asyncio.sleep(delay)
            except (LLMRequestError, MalformedResponseError) as exc:
                raise generation_error(exc) from exc
