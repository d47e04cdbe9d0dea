"""LLM client wrapper using PydanticAI + Anthropic.

Every call carries an explicit timeout, and provider failures are translated
into the :mod:`vibecheck.errors` taxonomy so callers can tell transient
failures (retry) from configuration problems (fix the deployment).
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import TYPE_CHECKING, TypeVar

import httpx
import structlog
from anthropic import APIConnectionError, APITimeoutError
from pydantic import BaseModel
from pydantic_ai.exceptions import ModelAPIError, ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.messages import ModelRequest, ModelResponse, TextPart, UserPromptPart
from pydantic_ai.models.anthropic import AnthropicModelSettings

from vibecheck.config import Settings
from vibecheck.errors import (
    LLMConfigurationError,
    LLMRequestError,
    LLMTimeoutError,
    MalformedResponseError,
    TransientLLMError,
)
from vibecheck.metrics import llm_tokens_total
from vibecheck.models.conversation import MessageRole

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator, Sequence

    from pydantic_ai.messages import ModelMessage
    from pydantic_ai.models import Model
    from pydantic_ai.usage import RunUsage

    from vibecheck.models.conversation import ChatMessage

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

DEFAULT_SYSTEM = "You are a helpful assistant."

_TRANSIENT_STATUS = frozenset({408, 409, 425, 429})
_AUTH_STATUS = frozenset({401, 403})


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Map provider exceptions onto the vibecheck error taxonomy."""
    try:
        yield
    except ModelHTTPError as exc:
        status = exc.status_code
        if status in _AUTH_STATUS:
            raise LLMConfigurationError(f"LLM credentials rejected (HTTP {status})") from exc
        if status in _TRANSIENT_STATUS or status >= 500:
            raise TransientLLMError(f"LLM service error (HTTP {status})") from exc
        raise LLMRequestError(f"LLM rejected the request (HTTP {status})") from exc
    except ModelAPIError as exc:
        # Transport failures arrive wrapped; the provider exception is the cause.
        if isinstance(exc.__cause__, (APITimeoutError, httpx.TimeoutException)):
            raise LLMTimeoutError("LLM request timed out") from exc
        raise TransientLLMError(f"Could not reach the LLM service: {exc}") from exc
    except (TimeoutError, APITimeoutError) as exc:
        raise LLMTimeoutError("LLM request timed out") from exc
    except APIConnectionError as exc:
        raise TransientLLMError("Could not reach the LLM service") from exc
    except UnexpectedModelBehavior as exc:
        raise MalformedResponseError(str(exc)) from exc


def to_model_messages(history: Sequence[ChatMessage]) -> list[ModelMessage]:
    """Convert chat history into PydanticAI message objects."""
    messages: list[ModelMessage] = []
    for msg in history:
        if msg.role == MessageRole.USER:
            messages.append(ModelRequest(parts=[UserPromptPart(content=msg.content)]))
        elif msg.role == MessageRole.ASSISTANT:
            messages.append(ModelResponse(parts=[TextPart(content=msg.content)]))
    return messages


class LLMClient:
    """Wrapper around Anthropic Claude with PydanticAI for structured outputs.

    The underlying model is built lazily from settings unless one is injected.
    """

    def __init__(self, settings: Settings | None = None, model: Model | None = None) -> None:
        self.settings = settings or Settings()
        self._model: Model | None = model

    @property
    def model(self) -> Model:
        if self._model is None:
            if not self.settings.anthropic_api_key:
                raise LLMConfigurationError("ANTHROPIC_API_KEY is not configured")
            from pydantic_ai.models.anthropic import AnthropicModel
            from pydantic_ai.providers.anthropic import AnthropicProvider

            provider = AnthropicProvider(api_key=self.settings.anthropic_api_key)
            self._model = AnthropicModel(self.settings.llm_model, provider=provider)
        return self._model

    @property
    def is_available(self) -> bool:
        return self._model is not None or bool(self.settings.anthropic_api_key)

    def _build_model_settings(
        self,
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ) -> AnthropicModelSettings:
        """Build model_settings with Anthropic prompt caching enabled."""
        temp = temperature if temperature is not None else self.settings.response_temperature
        tokens = max_tokens if max_tokens is not None else self.settings.response_max_tokens
        model_settings = AnthropicModelSettings(
            temperature=temp,
            max_tokens=tokens,
            anthropic_cache_instructions=True,
        )
        if timeout is not None:
            model_settings["timeout"] = timeout
        return model_settings

    def _log_and_record_usage(self, output_type: str, usage: RunUsage) -> None:
        """Log LLM usage and record Prometheus token counters."""
        logger.info(
            "LLM response",
            model=self.settings.llm_model,
            output_type=output_type,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.total_tokens,
        )

        model_label = self.settings.llm_model
        llm_tokens_total.labels(model=model_label, token_type="request").inc(
            usage.input_tokens or 0
        )
        llm_tokens_total.labels(model=model_label, token_type="response").inc(
            usage.output_tokens or 0
        )
        llm_tokens_total.labels(model=model_label, token_type="cache_read").inc(
            usage.cache_read_tokens or 0
        )
        llm_tokens_total.labels(model=model_label, token_type="cache_write").inc(
            usage.cache_write_tokens or 0
        )

    async def generate(
        self,
        prompt: str,
        response_model: type[T],
        system: str = "",
        history: Sequence[ChatMessage] = (),
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ) -> T:
        """Generate a structured (JSON) response validated against *response_model*."""
        from pydantic_ai import Agent

        with _translate_errors():
            # instructions are re-sent with every request, unlike system_prompt,
            # which is dropped when message_history is supplied.
            agent: Agent[None, T] = Agent(
                self.model,
                output_type=response_model,
                instructions=system or DEFAULT_SYSTEM,
            )
            logger.debug(
                "LLM request",
                model=self.settings.llm_model,
                response_model=response_model.__name__,
                history=len(history),
            )
            async with asyncio.timeout(timeout):
                result = await agent.run(
                    prompt,
                    message_history=to_model_messages(history),
                    model_settings=self._build_model_settings(temperature, max_tokens, timeout),
                )

        self._log_and_record_usage(response_model.__name__, result.usage())
        return result.output

    async def generate_text(
        self,
        prompt: str,
        system: str = "",
        history: Sequence[ChatMessage] = (),
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ) -> str:
        """Generate a plain text response."""
        from pydantic_ai import Agent

        with _translate_errors():
            agent: Agent[None, str] = Agent(
                self.model,
                output_type=str,
                instructions=system or DEFAULT_SYSTEM,
            )
            logger.debug("LLM request", model=self.settings.llm_model, response_model="str")
            async with asyncio.timeout(timeout):
                result = await agent.run(
                    prompt,
                    message_history=to_model_messages(history),
                    model_settings=self._build_model_settings(temperature, max_tokens, timeout),
                )

        self._log_and_record_usage("str", result.usage())
        return result.output

    async def stream_text(
        self,
        prompt: str,
        system: str = "",
        history: Sequence[ChatMessage] = (),
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
        idle_timeout: float | None = None,
    ) -> AsyncIterator[str]:
        """Stream a plain text response as incremental chunks.

        *timeout* bounds the provider request; *idle_timeout* bounds the wait
        for each subsequent chunk.
        """
        from pydantic_ai import Agent

        with _translate_errors():
            agent: Agent[None, str] = Agent(
                self.model,
                output_type=str,
                instructions=system or DEFAULT_SYSTEM,
            )
            logger.debug(
                "LLM request", model=self.settings.llm_model, response_model="str", streaming=True
            )
            async with agent.run_stream(
                prompt,
                message_history=to_model_messages(history),
                model_settings=self._build_model_settings(temperature, max_tokens, timeout),
            ) as result:
                chunks = aiter(result.stream_text(delta=True))
                while True:
                    try:
                        async with asyncio.timeout(idle_timeout):
                            chunk = await anext(chunks)
                    except StopAsyncIteration:
                        break
                    if chunk:
                        yield chunk
                usage = result.usage()

        self._log_and_record_usage("stream", usage)

    async def ping(self) -> bool:
        """Send one canned prompt and report whether any text came back."""
        text = await self.generate_text(
            "Hello",
            system="You are an assistant. Reply with a short greeting.",
            max_tokens=50,
            timeout=self.settings.extraction_timeout_s,
        )
        return bool(text.strip())
