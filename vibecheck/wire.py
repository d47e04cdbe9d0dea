"""Marker-delimited reply format shared with the response prompt.

A generated reply may end with::

    ---CHOICES---
    {"choices": [{"id": "a", "text": "Yes"}]}

Everything before the first marker is the user-facing message; everything after
it is parsed as the choice list.
"""

from __future__ import annotations

import json

import structlog

from vibecheck.models.question import Choice

logger = structlog.get_logger()

CHOICES_MARKER = "---CHOICES---"


def split_choices(raw: str) -> tuple[str, list[Choice]]:
    """Split *raw* into ``(message_text, choices)``.

    Without a marker the text is returned verbatim. An unparsable payload
    yields no choices.
    """
    index = raw.find(CHOICES_MARKER)
    if index == -1:
        return raw, []

    text = raw[:index].strip()
    payload = raw[index + len(CHOICES_MARKER) :].strip()
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        logger.warning("Unparsable choices payload", error=str(exc))
        return text, []

    items = parsed.get("choices") if isinstance(parsed, dict) else None
    if not isinstance(items, list):
        return text, []

    choices: list[Choice] = []
    for item in items:
        if not isinstance(item, dict) or "id" not in item or "text" not in item:
            continue
        choices.append(Choice(id=str(item["id"]), text=str(item["text"])))
    return text, choices


def render_choices(choices: list[Choice]) -> str:
    """Inverse of :func:`split_choices` for the payload part."""
    body = json.dumps(
        {"choices": [c.model_dump() for c in choices]},
        ensure_ascii=False,
    )
    return f"{CHOICES_MARKER}\n{body}"
