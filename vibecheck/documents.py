"""Report and brief generation from a conversation's schema and messages."""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

import structlog

from vibecheck.config import Settings
from vibecheck.errors import LLMRequestError, MalformedResponseError, TransientLLMError
from vibecheck.metrics import documents_total
from vibecheck.models.conversation import Language, MessageRole
from vibecheck.models.document import DocumentKind, EvaluationReport
from vibecheck.prompts import (
    BRIEF_PROMPT,
    REPORT_PROMPT,
    brief_user_prompt,
    language_instruction,
    report_user_prompt,
)
from vibecheck.responder import generation_error
from vibecheck.retry import RetryExhaustedError, async_with_retry
from vibecheck.schema_store import is_filled, summarize

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from vibecheck.models.conversation import ChatMessage
    from vibecheck.models.schema import EvaluationSchema
    from vibecheck.protocols import LLMPort

logger = structlog.get_logger()

T = TypeVar("T")

_SPEAKERS = {MessageRole.USER: "User", MessageRole.ASSISTANT: "Assistant"}


def require_idea(schema: EvaluationSchema) -> None:
    """Documents need at least the one-line idea to say anything useful."""
    if not is_filled(schema, "idea.one_liner"):
        raise ValueError("Describe the idea before generating a report or brief")


def transcript(messages: Sequence[ChatMessage], limit: int) -> str:
    """The last *limit* user/assistant messages as ``Speaker: text`` paragraphs."""
    turns = [m for m in messages if m.role in _SPEAKERS]
    recent = turns[-limit:] if limit > 0 else []
    return "\n\n".join(f"{_SPEAKERS[m.role]}: {m.content}" for m in recent)


class DocumentWriter:
    """Writes the scored evaluation report and the Markdown pre-build brief.

    Both use the same retry policy as the conversation calls. Failures
    surface as GenerationUnavailable (or GenerationTimeout); credential
    problems propagate unchanged.
    """

    def __init__(self, llm: LLMPort, settings: Settings | None = None) -> None:
        self.llm = llm
        self.settings = settings or Settings()

    async def _run(self, call: Callable[[], Awaitable[T]], kind: DocumentKind) -> T:
        s = self.settings
        action = f"{kind.value.capitalize()} generation"
        try:
            result = await async_with_retry(
                call,
                max_retries=s.max_retries,
                base_delay=s.retry_base_delay,
                max_delay=s.retry_max_delay,
                retryable=(TransientLLMError,),
                label=f"write_{kind.value}",
            )
        except (RetryExhaustedError, LLMRequestError, MalformedResponseError) as exc:
            documents_total.labels(kind=kind.value, status="failed").inc()
            logger.error("Document generation failed", kind=kind.value, error=str(exc))
            raise generation_error(exc, action) from exc
        documents_total.labels(kind=kind.value, status="ok").inc()
        return result

    async def write_report(
        self,
        schema: EvaluationSchema,
        project_name: str = "",
        language: Language = Language.EN,
    ) -> EvaluationReport:
        """Score the idea and return a structured report.

        Raises:
            ValueError: the idea itself has not been described yet.
            GenerationUnavailable: the report could not be produced.
        """
        require_idea(schema)
        s = self.settings
        prompt = report_user_prompt(summarize(schema), project_name)
        system = f"{REPORT_PROMPT}\n\n{language_instruction(language)}"

        async def _call() -> EvaluationReport:
            output = await self.llm.generate(
                prompt,
                EvaluationReport,
                system=system,
                temperature=s.report_temperature,
                max_tokens=s.document_max_tokens,
                timeout=s.document_timeout_s,
            )
            if not isinstance(output, EvaluationReport):
                raise MalformedResponseError(
                    f"Unexpected report output type: {type(output).__name__}"
                )
            return output

        report = await self._run(_call, DocumentKind.REPORT)
        logger.info("Report generated", feasibility=report.score.feasibility)
        return report

    async def write_brief(
        self,
        schema: EvaluationSchema,
        messages: Sequence[ChatMessage] = (),
        language: Language = Language.EN,
    ) -> str:
        """Return the pre-build brief as Markdown."""
        require_idea(schema)
        s = self.settings
        prompt = brief_user_prompt(
            summarize(schema), transcript(messages, s.brief_history_messages)
        )
        system = f"{BRIEF_PROMPT}\n\n{language_instruction(language)}"

        async def _call() -> str:
            text = await self.llm.generate_text(
                prompt,
                system=system,
                temperature=s.brief_temperature,
                max_tokens=s.document_max_tokens,
                timeout=s.document_timeout_s,
            )
            if not text.strip():
                raise MalformedResponseError("Brief came back empty")
            return text.strip()

        markdown = await self._run(_call, DocumentKind.BRIEF)
        logger.info("Brief generated", chars=len(markdown))
        return markdown


def _bullets(items: Sequence[str]) -> list[str]:
    return [f"- {item}" for item in items]


def render_report(report: EvaluationReport) -> str:
    """Markdown rendering of a report, for terminals and downloads."""
    score = report.score
    b = score.breakdown
    lines = [
        f"# Feasibility {score.feasibility}/100",
        "",
        report.conclusion,
        "",
        f"Tech {b.tech} | Market {b.market} | Onboarding {b.onboarding} | "
        f"User match {b.user_match}",
    ]
    if report.why_worth_it:
        lines += ["", "## Why it is worth building", *_bullets(report.why_worth_it)]
    if report.risks:
        lines += ["", "## Risks", *_bullets(report.risks)]

    market = report.market
    if market.opportunity or market.competitors:
        lines += ["", "## Market"]
        if market.opportunity:
            lines.append(market.opportunity)
        for c in market.competitors:
            lines.append(f"- **{c.name}**: {c.pros} / {c.cons}".rstrip(" /"))

    for label, option in (
        ("Fastest path", report.tech_options.fastest),
        ("Scalable path", report.tech_options.scalable),
    ):
        if option is not None:
            tools = ", ".join(option.tools)
            lines += ["", f"## {label}: {option.name}"]
            lines.append(f"{tools} ({option.dev_time}, {option.cost})")
    if report.tech_options.advice:
        lines += ["", report.tech_options.advice]

    if report.fastest_path:
        lines += ["", "## Steps"]
        for i, step in enumerate(report.fastest_path, start=1):
            lines.append(f"{i}. {step.title}")
    if report.pitfalls:
        lines += ["", "## Pitfalls", *_bullets(report.pitfalls)]

    steps = report.next_steps
    for label, items in (("Today", steps.today), ("This week", steps.this_week)):
        if items:
            lines += ["", f"## {label}", *_bullets(items)]
    return "\n".join(lines)
