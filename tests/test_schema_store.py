"""Tests for schema scoring, state derivation and merging."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from vibecheck.models.schema import ConversationState, SchemaUpdate
from vibecheck.schema_store import (
    ALL_FIELDS,
    CORE_FIELDS,
    EMPTY_SUMMARY,
    SUPPLEMENTARY_FIELDS,
    create_empty,
    filled_fields,
    get_field_value,
    is_filled,
    merge,
    next_state,
    progress_bar,
    score,
    summarize,
    unfilled_fields,
    update_for_field,
)

T0 = datetime(2025, 1, 1, tzinfo=UTC)


def _filled(*pairs: tuple[str, str]):
    schema = create_empty(T0)
    for path, value in pairs:
        schema = merge(schema, update_for_field(path, value), now=T0)
    return schema


class TestCreateEmpty:
    def test_defaults(self):
        schema = create_empty(T0)
        assert schema.idea.one_liner == ""
        assert schema.platform.form == "unknown"
        assert schema.meta.completion_score == 0
        assert schema.meta.current_state == ConversationState.ASK_QUESTION
        assert schema.meta.created_at == T0
        assert schema.meta.updated_at == T0

    def test_serializes_meta_under_underscore_key(self):
        dumped = create_empty(T0).model_dump(mode="json")
        assert "_meta" in dumped
        assert dumped["_meta"]["current_state"] == "ASK_QUESTION"


class TestIsFilled:
    def test_text_field_needs_non_blank(self):
        assert not is_filled(_filled(("idea.one_liner", "   ")), "idea.one_liner")
        assert is_filled(_filled(("idea.one_liner", "A budget app")), "idea.one_liner")

    def test_enum_field_unknown_is_unfilled(self):
        assert not is_filled(_filled(("platform.form", "unknown")), "platform.form")
        assert not is_filled(_filled(("platform.form", "")), "platform.form")
        assert is_filled(_filled(("platform.form", "web")), "platform.form")

    def test_custom_enum_value_counts(self):
        assert is_filled(_filled(("platform.form", "smart watch")), "platform.form")

    def test_unknown_path_rejected(self):
        with pytest.raises(ValueError, match="Unknown schema field"):
            get_field_value(create_empty(T0), "idea.nope")


class TestScore:
    def test_empty_is_zero(self):
        assert score(create_empty(T0)) == 0

    def test_core_fields_worth_thirty(self):
        schema = _filled(("idea.one_liner", "x"), ("user.primary_user", "self"))
        assert score(schema) == 60

    def test_supplementary_fields_worth_two(self):
        schema = _filled(("mvp.type", "ai_tool"), ("preference.timeline", "7d"))
        assert score(schema) == 4

    def test_capped_at_hundred(self):
        values = {
            "problem.pain_level": "high",
            "mvp.type": "ai_tool",
            "platform.form": "web",
            "constraints.api_or_data_dependency": "none",
            "constraints.privacy_level": "low",
            "preference.priority": "ship_fast",
            "preference.timeline": "7d",
        }
        pairs = [(path, values.get(path, "filled")) for path in ALL_FIELDS]
        assert score(_filled(*pairs)) == 100

    def test_all_supplementary_cannot_reach_one_core_field(self):
        values = {
            "problem.pain_level": "high",
            "mvp.type": "ai_tool",
            "constraints.api_or_data_dependency": "none",
            "constraints.privacy_level": "low",
            "preference.priority": "ship_fast",
            "preference.timeline": "7d",
        }
        pairs = [(path, values.get(path, "filled")) for path in SUPPLEMENTARY_FIELDS]
        schema = _filled(*pairs)
        assert score(schema) == 2 * len(SUPPLEMENTARY_FIELDS)
        assert score(schema) < 30
        assert schema.meta.current_state == ConversationState.ASK_QUESTION


class TestNextState:
    @pytest.mark.parametrize(
        ("completion", "expected"),
        [
            (0, ConversationState.ASK_QUESTION),
            (29, ConversationState.ASK_QUESTION),
            (30, ConversationState.PRELIMINARY_EVAL),
            (59, ConversationState.PRELIMINARY_EVAL),
            (60, ConversationState.FULL_EVAL),
            (100, ConversationState.FULL_EVAL),
        ],
    )
    def test_thresholds(self, completion, expected):
        assert next_state(completion) == expected

    def test_one_liner_only_is_preliminary(self):
        schema = _filled(("idea.one_liner", "A budgeting app"))
        assert schema.meta.completion_score == 30
        assert schema.meta.current_state == ConversationState.PRELIMINARY_EVAL


class TestMerge:
    def test_only_provided_fields_change(self):
        schema = _filled(("idea.one_liner", "A budgeting app"), ("platform.form", "web"))
        merged = merge(schema, SchemaUpdate.model_validate({"idea": {"background": "own pain"}}))
        assert merged.idea.one_liner == "A budgeting app"
        assert merged.idea.background == "own pain"
        assert merged.platform.form == "web"

    def test_recomputes_score_and_state(self):
        update = SchemaUpdate.model_validate(
            {
                "idea": {"one_liner": "A budgeting app"},
                "user": {"primary_user": "self"},
                "platform": {"form": "web"},
            }
        )
        merged = merge(create_empty(T0), update)
        assert merged.meta.completion_score == 90
        assert merged.meta.current_state == ConversationState.FULL_EVAL

    def test_does_not_mutate_input(self):
        schema = create_empty(T0)
        merge(schema, update_for_field("idea.one_liner", "x"))
        assert schema.idea.one_liner == ""
        assert schema.meta.completion_score == 0

    def test_idempotent(self):
        update = SchemaUpdate.model_validate({"mvp": {"type": "ai_tool", "first_job": "draft"}})
        once = merge(create_empty(T0), update, now=T0)
        twice = merge(once, update, now=T0)
        assert once == twice

    def test_empty_update_only_touches_updated_at(self):
        schema = _filled(("idea.one_liner", "x"))
        later = T0 + timedelta(minutes=5)
        merged = merge(schema, SchemaUpdate(), now=later)
        assert merged.meta.updated_at == later
        assert merged.model_dump(exclude={"meta"}) == schema.model_dump(exclude={"meta"})
        assert merged.meta.completion_score == schema.meta.completion_score

    def test_score_never_drops_when_filling(self):
        schema = create_empty(T0)
        previous = 0
        for path in CORE_FIELDS + SUPPLEMENTARY_FIELDS:
            schema = merge(schema, update_for_field(path, "filled"))
            assert schema.meta.completion_score >= previous
            previous = schema.meta.completion_score

    def test_records_last_updated_field(self):
        merged = merge(create_empty(T0), update_for_field("preference.timeline", "14d"))
        assert merged.meta.last_updated_field == "preference.timeline"

    def test_created_at_preserved(self):
        merged = merge(create_empty(T0), update_for_field("idea.one_liner", "x"))
        assert merged.meta.created_at == T0


class TestHelpers:
    def test_filled_fields_lists_paths(self):
        update = SchemaUpdate.model_validate(
            {"idea": {"one_liner": "x"}, "platform": {"form": "web"}}
        )
        assert filled_fields(update) == ["idea.one_liner", "platform.form"]

    def test_unfilled_fields_core_first(self):
        fields = unfilled_fields(_filled(("user.primary_user", "self")))
        assert fields[:2] == ["idea.one_liner", "platform.form"]
        assert "user.primary_user" not in fields

    def test_summarize_empty(self):
        assert summarize(create_empty(T0)) == EMPTY_SUMMARY

    def test_summarize_uses_display_labels(self):
        table = summarize(_filled(("idea.one_liner", "Budget app"), ("platform.form", "web")))
        assert table.startswith("| Field | Value |")
        assert "| Product | Budget app |" in table
        assert "| Platform | Web app |" in table

    def test_progress_bar(self):
        assert progress_bar(0) == "[□□□□□]"
        assert progress_bar(30) == "[■□□□□]"
        assert progress_bar(100) == "[■■■■■]"
