"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from structlog.types import EventDict, WrappedLogger

# Event fields that may carry raw user or model text.
TEXT_FIELDS = ("message", "content", "understood", "reply")
MAX_TEXT_CHARS = 200

_NOISY_LOGGERS = ("httpx", "httpcore", "anthropic")


def shorten_text_fields(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    """Cut conversation text down to ``MAX_TEXT_CHARS`` so logs stay one line."""
    for key in TEXT_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > MAX_TEXT_CHARS:
            event_dict[key] = f"{value[:MAX_TEXT_CHARS]}... ({len(value)} chars)"
    return event_dict


def bind_conversation(conversation_id: str, language: str) -> None:
    """Attach the active conversation to every log line in this context."""
    structlog.contextvars.bind_contextvars(conversation_id=conversation_id, language=language)


def configure_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
        log_format: "console" for a terminal, "json" for log shipping.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        shorten_text_fields,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(
            ensure_ascii=False
        )
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # The LLM transport and uvicorn log through stdlib.
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Request-level chatter from the HTTP client is only useful when debugging.
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)
