"""Extraction adapter: one user message -> partial schema update."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from vibecheck.config import Settings
from vibecheck.errors import (
    ExtractionUnavailable,
    LLMRequestError,
    LLMTimeoutError,
    MalformedResponseError,
    TransientLLMError,
)
from vibecheck.models.conversation import Extraction, Language
from vibecheck.models.schema import SchemaUpdate
from vibecheck.prompts import EXTRACTION_PROMPT, extraction_user_prompt, language_instruction
from vibecheck.retry import RetryExhaustedError, async_with_retry
from vibecheck.schema_store import UNKNOWN, filled_fields, summarize

if TYPE_CHECKING:
    from vibecheck.models.schema import EvaluationSchema
    from vibecheck.protocols import LLMPort

logger = structlog.get_logger()


class _ExtractionLLMOutput(BaseModel):
    """LLM-generated extraction (JSON object)."""

    model_config = ConfigDict(frozen=True)

    understood: str = Field(default="", description="The idea as understood, 1-2 sentences")
    extracted: SchemaUpdate = Field(default_factory=SchemaUpdate)
    confidence: float = Field(default=0.5, description="0 to 1")

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: object) -> float:
        try:
            number = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0.5
        return max(0.0, min(1.0, number))


def _drop_blank_values(update: SchemaUpdate) -> SchemaUpdate:
    """Remove empty and 'unknown' values so they cannot erase known answers."""
    cleaned: dict[str, dict[str, str]] = {}
    for section, values in update.model_dump(exclude_none=True).items():
        kept = {k: v for k, v in values.items() if v.strip() and v.strip() != UNKNOWN}
        if kept:
            cleaned[section] = kept
    return SchemaUpdate.model_validate(cleaned)


class Extractor:
    """Turns a free-text message into structured schema fields.

    Transient failures are retried with exponential backoff. Exhausted
    retries, malformed output and rejected requests all surface as
    ExtractionUnavailable; credential problems propagate unchanged.
    """

    def __init__(self, llm: LLMPort, settings: Settings | None = None) -> None:
        self.llm = llm
        self.settings = settings or Settings()

    async def extract(
        self,
        message: str,
        schema: EvaluationSchema,
        language: Language = Language.EN,
    ) -> Extraction:
        s = self.settings
        prompt = extraction_user_prompt(message, summarize(schema))
        system = f"{EXTRACTION_PROMPT}\n\n{language_instruction(language)}"

        async def _call() -> BaseModel:
            return await self.llm.generate(
                prompt,
                _ExtractionLLMOutput,
                system=system,
                temperature=s.extraction_temperature,
                max_tokens=s.extraction_max_tokens,
                timeout=s.extraction_timeout_s,
            )

        try:
            output = await async_with_retry(
                _call,
                max_retries=s.max_retries,
                base_delay=s.retry_base_delay,
                max_delay=s.retry_max_delay,
                retryable=(TransientLLMError,),
                label="extract",
            )
        except RetryExhaustedError as exc:
            timed_out = isinstance(exc.__cause__, LLMTimeoutError)
            raise ExtractionUnavailable(
                "Extraction service unavailable", timed_out=timed_out
            ) from exc
        except (MalformedResponseError, LLMRequestError) as exc:
            raise ExtractionUnavailable(f"Extraction failed: {exc}") from exc

        if not isinstance(output, _ExtractionLLMOutput):
            raise ExtractionUnavailable(
                f"Unexpected extraction output type: {type(output).__name__}"
            )

        extracted = _drop_blank_values(output.extracted)
        logger.debug(
            "Extraction complete",
            confidence=output.confidence,
            fields=filled_fields(extracted),
        )
        return Extraction(
            understood=output.understood.strip() or message,
            extracted=extracted,
            confidence=output.confidence,
        )
