"""Pure functions over the evaluation schema: fill rules, scoring, merging.

``merge`` is the only sanctioned way to change a schema. It always recomputes
``completion_score`` and ``current_state`` so neither can drift from the field
contents.
"""

from __future__ import annotations

from datetime import UTC, datetime

from vibecheck.models.schema import (
    SECTION_NAMES,
    ConversationState,
    EvaluationSchema,
    MetaSection,
    SchemaUpdate,
)

# Product constants: three core answers (90 points) unlock the full evaluation.
CORE_FIELD_POINTS = 30
SUPPLEMENTARY_FIELD_POINTS = 2
MAX_SCORE = 100
PRELIMINARY_EVAL_THRESHOLD = 30
FULL_EVAL_THRESHOLD = 60

CORE_FIELDS: tuple[str, ...] = (
    "idea.one_liner",
    "user.primary_user",
    "platform.form",
)

ALL_FIELDS: tuple[str, ...] = (
    "idea.one_liner",
    "idea.background",
    "problem.scenario",
    "problem.pain_level",
    "user.primary_user",
    "user.usage_context",
    "mvp.first_job",
    "mvp.type",
    "platform.form",
    "constraints.api_or_data_dependency",
    "constraints.privacy_level",
    "preference.priority",
    "preference.timeline",
)

SUPPLEMENTARY_FIELDS: tuple[str, ...] = tuple(f for f in ALL_FIELDS if f not in CORE_FIELDS)

TEXT_FIELDS: frozenset[str] = frozenset(
    {
        "idea.one_liner",
        "idea.background",
        "problem.scenario",
        "user.primary_user",
        "user.usage_context",
        "mvp.first_job",
    }
)

UNKNOWN = "unknown"

FIELD_LABELS: dict[str, str] = {
    "idea.one_liner": "Product",
    "idea.background": "Motivation",
    "problem.scenario": "Problem scenario",
    "problem.pain_level": "Pain level",
    "user.primary_user": "Target user",
    "user.usage_context": "Usage context",
    "mvp.first_job": "First job",
    "mvp.type": "Product type",
    "platform.form": "Platform",
    "constraints.api_or_data_dependency": "External dependencies",
    "constraints.privacy_level": "Privacy level",
    "preference.priority": "Priority",
    "preference.timeline": "Timeline",
}

VALUE_LABELS: dict[str, dict[str, str]] = {
    "problem.pain_level": {"low": "Mild", "medium": "Noticeable", "high": "Severe"},
    "mvp.type": {
        "content_tool": "Content generation tool",
        "functional_tool": "Functional tool",
        "ai_tool": "AI tool",
        "other": "Other",
    },
    "platform.form": {
        "web": "Web app",
        "ios": "iOS app",
        "android": "Android app",
        "plugin": "Browser plugin / desktop tool",
        "cli": "Command-line tool",
    },
    "constraints.api_or_data_dependency": {
        "none": "None",
        "possible": "Possibly",
        "confirmed": "Confirmed",
    },
    "constraints.privacy_level": {"low": "Low", "medium": "Medium", "high": "High"},
    "preference.priority": {
        "ship_fast": "Ship fast",
        "stable_first": "Stability first",
        "cost_first": "Low cost first",
    },
    "preference.timeline": {
        "7d": "Within a week",
        "14d": "About two weeks",
        "30d": "About a month",
        "flexible": "No rush",
    },
}

EMPTY_SUMMARY = "No confirmed information yet."


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _split_path(path: str) -> tuple[str, str]:
    if path not in ALL_FIELDS:
        raise ValueError(f"Unknown schema field: {path!r}")
    section, key = path.split(".", 1)
    return section, key


def _recompute(schema: EvaluationSchema, **meta_updates: object) -> EvaluationSchema:
    completion = score(schema)
    meta = schema.meta.model_copy(
        update={
            **meta_updates,
            "completion_score": completion,
            "current_state": next_state(completion),
        }
    )
    return schema.model_copy(update={"meta": meta})


def create_empty(now: datetime | None = None) -> EvaluationSchema:
    """Return a schema with every field at its default and score/state derived."""
    stamp = now or _utcnow()
    schema = EvaluationSchema(meta=MetaSection(created_at=stamp, updated_at=stamp))
    return _recompute(schema)


def get_field_value(schema: EvaluationSchema, path: str) -> str:
    section, key = _split_path(path)
    value = getattr(getattr(schema, section), key)
    return str(value) if value is not None else ""


def is_filled(schema: EvaluationSchema, path: str) -> bool:
    """Free text counts once non-blank; enum fields once neither empty nor 'unknown'."""
    value = get_field_value(schema, path).strip()
    if path in TEXT_FIELDS:
        return bool(value)
    return value not in ("", UNKNOWN)


def score(schema: EvaluationSchema) -> int:
    core = sum(1 for f in CORE_FIELDS if is_filled(schema, f))
    supplementary = sum(1 for f in SUPPLEMENTARY_FIELDS if is_filled(schema, f))
    total = CORE_FIELD_POINTS * core + SUPPLEMENTARY_FIELD_POINTS * supplementary
    return min(MAX_SCORE, total)


def next_state(completion: int) -> ConversationState:
    if completion < PRELIMINARY_EVAL_THRESHOLD:
        return ConversationState.ASK_QUESTION
    if completion < FULL_EVAL_THRESHOLD:
        return ConversationState.PRELIMINARY_EVAL
    return ConversationState.FULL_EVAL


def merge(
    schema: EvaluationSchema,
    update: SchemaUpdate,
    now: datetime | None = None,
) -> EvaluationSchema:
    """Overlay the provided fields of *update* and recompute score and state.

    Fields left as ``None`` in *update* are untouched. ``updated_at`` advances
    even when no field changes.
    """
    sections: dict[str, object] = {}
    last_field = schema.meta.last_updated_field

    for name in SECTION_NAMES:
        section_update = getattr(update, name)
        if section_update is None:
            continue
        provided = section_update.model_dump(exclude_none=True)
        if not provided:
            continue
        sections[name] = getattr(schema, name).model_copy(update=provided)
        last_field = f"{name}.{list(provided)[-1]}"

    merged = schema.model_copy(update=sections)
    return _recompute(merged, last_updated_field=last_field, updated_at=now or _utcnow())


def unfilled_fields(schema: EvaluationSchema) -> list[str]:
    """Unfilled core fields first, then unfilled supplementary fields."""
    core = [f for f in CORE_FIELDS if not is_filled(schema, f)]
    supplementary = [f for f in SUPPLEMENTARY_FIELDS if not is_filled(schema, f)]
    return core + supplementary


def filled_fields(update: SchemaUpdate) -> list[str]:
    """Dotted paths carried by *update*, in section order."""
    paths: list[str] = []
    for section, values in update.model_dump(exclude_none=True).items():
        paths.extend(f"{section}.{key}" for key in values)
    return paths


def update_for_field(path: str, value: str) -> SchemaUpdate:
    section, key = _split_path(path)
    return SchemaUpdate.model_validate({section: {key: value}})


def display_value(path: str, value: str) -> str:
    return VALUE_LABELS.get(path, {}).get(value, value)


def summarize(schema: EvaluationSchema) -> str:
    """Render filled fields as a Markdown ``| Field | Value |`` table."""
    rows = [
        f"| {FIELD_LABELS[path]} | {display_value(path, get_field_value(schema, path).strip())} |"
        for path in ALL_FIELDS
        if is_filled(schema, path)
    ]
    if not rows:
        return EMPTY_SUMMARY
    return "| Field | Value |\n|------|------|\n" + "\n".join(rows)


def progress_bar(completion: int) -> str:
    filled = max(0, min(5, completion // 20))
    return "[" + "■" * filled + "□" * (5 - filled) + "]"
