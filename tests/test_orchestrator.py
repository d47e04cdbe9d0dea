"""Tests for the turn orchestrator (extraction -> merge -> state -> reply)."""

from __future__ import annotations

import asyncio

import pytest
from fakes import FakeExtractor, FakeResponder
from pydantic import ValidationError

from vibecheck.errors import GenerationTimeout, GenerationUnavailable
from vibecheck.models.conversation import (
    ContentEvent,
    DoneEvent,
    Language,
    MessageType,
    MetadataEvent,
    SchemaEvent,
)
from vibecheck.models.question import Choice
from vibecheck.models.schema import ConversationState, SchemaUpdate
from vibecheck.orchestrator import TurnOrchestrator, _MarkerHoldback
from vibecheck.prompts import CONVERSATION_STARTER
from vibecheck.question_bank import get_question
from vibecheck.schema_store import create_empty, merge, update_for_field

CHOICES_REPLY = 'Who is it for?\n---CHOICES---\n{"choices":[{"id":"a","text":"Me"}]}'


def _run(coro):
    return asyncio.run(coro)


async def _events(orchestrator, *args, **kwargs):
    return [event async for event in orchestrator.stream_turn(*args, **kwargs)]


class TestHandleTurn:
    def test_scenario_full_profile_in_one_message(self):
        extractor = FakeExtractor(
            {
                "idea": {"one_liner": "A budgeting app"},
                "user": {"primary_user": "self"},
                "platform": {"form": "web"},
            }
        )
        responder = FakeResponder("## Project evaluation")
        orchestrator = TurnOrchestrator(extractor, responder)

        result = _run(
            orchestrator.handle_turn(
                "I want a budgeting app for myself, as a website", create_empty()
            )
        )

        assert result.score >= 90
        assert result.state == ConversationState.FULL_EVAL
        assert result.schema_data.meta.current_state == ConversationState.FULL_EVAL
        assert result.question is None
        assert result.reply.content == "## Project evaluation"
        assert result.reply.metadata.updated_fields == [
            "idea.one_liner",
            "user.primary_user",
            "platform.form",
        ]
        assert responder.directives[0].state == ConversationState.FULL_EVAL

    def test_scenario_one_liner_only_is_preliminary(self):
        schema = merge(create_empty(), update_for_field("idea.one_liner", "A budgeting app"))
        responder = FakeResponder("## Preliminary assessment")
        orchestrator = TurnOrchestrator(FakeExtractor(), responder)

        result = _run(orchestrator.handle_turn("not sure yet", schema))

        assert result.score == 30
        assert result.state == ConversationState.PRELIMINARY_EVAL
        assert result.question is None
        assert "| Product | A budgeting app |" in responder.directives[0].schema_summary

    def test_empty_schema_asks_first_question(self):
        responder = FakeResponder(CHOICES_REPLY)
        orchestrator = TurnOrchestrator(FakeExtractor(), responder)

        result = _run(orchestrator.handle_turn("hello", create_empty()))

        assert result.state == ConversationState.ASK_QUESTION
        assert result.question.id == "q1"
        directive = responder.directives[0]
        assert directive.question_text == get_question("q1").question
        assert directive.choices == []
        # Open question: the model's own choices are kept.
        assert result.reply.content == "Who is it for?"
        assert result.reply.metadata.type == MessageType.CHOICES
        assert result.reply.metadata.choices == [Choice(id="a", text="Me")]
        assert result.reply.metadata.question_id == "q1"

    def test_extraction_failure_degrades_gracefully(self):
        schema = merge(create_empty(), update_for_field("idea.one_liner", "A budgeting app"))
        orchestrator = TurnOrchestrator(FakeExtractor(fail=True), FakeResponder("reply"))

        result = _run(orchestrator.handle_turn("it's for my family", schema))

        assert result.understood == "it's for my family"
        assert result.confidence == pytest.approx(0.3)
        assert result.extracted == SchemaUpdate()
        assert result.reply.metadata.updated_fields == []
        assert result.schema_data.model_dump(exclude={"meta"}) == schema.model_dump(
            exclude={"meta"}
        )
        assert result.schema_data.meta.completion_score == schema.meta.completion_score
        assert result.reply.content == "reply"

    def test_generation_failure_carries_merged_schema(self):
        extractor = FakeExtractor({"idea": {"one_liner": "A budgeting app"}})
        orchestrator = TurnOrchestrator(extractor, FakeResponder(fail=True))

        with pytest.raises(GenerationUnavailable) as info:
            _run(orchestrator.handle_turn("budget app", create_empty()))

        assert info.value.schema is not None
        assert info.value.schema.idea.one_liner == "A budgeting app"
        assert info.value.schema.meta.completion_score == 30

    def test_generation_timeout_keeps_subclass(self):
        orchestrator = TurnOrchestrator(FakeExtractor(), FakeResponder(fail=True, timeout=True))

        with pytest.raises(GenerationTimeout) as info:
            _run(orchestrator.handle_turn("x", create_empty()))

        assert info.value.timed_out is True
        assert info.value.schema is not None

    def test_input_schema_not_mutated(self):
        schema = create_empty()
        extractor = FakeExtractor({"platform": {"form": "cli"}})
        _run(TurnOrchestrator(extractor, FakeResponder()).handle_turn("cli", schema))
        assert schema.platform.form == "unknown"


class TestPlan:
    def test_empty_schema_plans_first_question(self):
        plan = TurnOrchestrator(FakeExtractor(), FakeResponder())._plan(create_empty())

        assert plan.state == ConversationState.ASK_QUESTION
        assert plan.question == get_question("q1")
        assert plan.directive.question_text == get_question("q1").question
        assert plan.directive.choices == []

    def test_plan_is_frozen(self):
        plan = TurnOrchestrator(FakeExtractor(), FakeResponder())._plan(create_empty())
        with pytest.raises(ValidationError):
            plan.state = ConversationState.FULL_EVAL  # type: ignore[misc]


class TestChoiceOverride:
    def test_catalog_options_replace_model_choices(self):
        orchestrator = TurnOrchestrator(FakeExtractor(), FakeResponder())
        reply = orchestrator._build_reply(CHOICES_REPLY, get_question("q3"), [])

        assert reply.content == "Who is it for?"
        assert [c.id for c in reply.metadata.choices] == ["self", "specific", "public", "skip"]
        assert reply.metadata.question_id == "q3"

    def test_catalog_options_used_without_marker(self):
        orchestrator = TurnOrchestrator(FakeExtractor(), FakeResponder())
        reply = orchestrator._build_reply("Which platform?", get_question("q7"), [])

        assert reply.metadata.type == MessageType.CHOICES
        assert len(reply.metadata.choices) == 5

    def test_plain_text_without_question(self):
        orchestrator = TurnOrchestrator(FakeExtractor(), FakeResponder())
        reply = orchestrator._build_reply("Assessment", None, [])

        assert reply.metadata.type == MessageType.TEXT
        assert reply.metadata.choices == []
        assert reply.metadata.question_id is None


class TestStreamTurn:
    def test_event_order_and_marker_hidden(self):
        chunks = ["Hello", "!\n---CHO", 'ICES---\n{"choices":[{"id":"a","text":"Yes"}]}']
        orchestrator = TurnOrchestrator(FakeExtractor(), FakeResponder(chunks=chunks))

        events = _run(_events(orchestrator, "hi", create_empty()))

        kinds = [e.type for e in events]
        first_non_content = kinds.index("metadata")
        assert set(kinds[:first_non_content]) == {"content"}
        assert kinds[first_non_content:] == ["metadata", "schema", "done"]

        streamed = "".join(e.content for e in events if isinstance(e, ContentEvent))
        assert "---CHOICES---" not in streamed
        assert streamed.strip() == "Hello!"

        metadata = next(e for e in events if isinstance(e, MetadataEvent))
        assert metadata.text == "Hello!"
        assert metadata.metadata.choices == [Choice(id="a", text="Yes")]

        schema_event = next(e for e in events if isinstance(e, SchemaEvent))
        assert schema_event.next_state == ConversationState.ASK_QUESTION
        assert isinstance(events[-1], DoneEvent)

    def test_plain_stream(self):
        extractor = FakeExtractor({"idea": {"one_liner": "A budgeting app"}})
        orchestrator = TurnOrchestrator(extractor, FakeResponder(chunks=["Market ", "looks ok"]))

        events = _run(_events(orchestrator, "budget app", create_empty()))

        streamed = "".join(e.content for e in events if isinstance(e, ContentEvent))
        assert streamed == "Market looks ok"
        schema_event = next(e for e in events if isinstance(e, SchemaEvent))
        assert schema_event.completion_score == 30
        assert schema_event.next_state == ConversationState.PRELIMINARY_EVAL

    def test_stream_failure_carries_schema(self):
        extractor = FakeExtractor({"platform": {"form": "web"}})
        orchestrator = TurnOrchestrator(extractor, FakeResponder(fail=True))

        with pytest.raises(GenerationUnavailable) as info:
            _run(_events(orchestrator, "web", create_empty()))

        assert info.value.schema.platform.form == "web"


class TestMarkerHoldback:
    def test_marker_split_across_chunks(self):
        holdback = _MarkerHoldback()
        out = [holdback.feed(c) for c in ["abc---CH", "OICES---", '{"choices":[]}']]
        out.append(holdback.flush())
        assert "".join(out) == "abc"
        assert holdback.raw == 'abc---CHOICES---{"choices":[]}'

    def test_text_resembling_marker_prefix_is_released(self):
        holdback = _MarkerHoldback()
        out = [holdback.feed("a --- b"), holdback.flush()]
        assert "".join(out) == "a --- b"


class TestRegenerateAndAnswers:
    def test_regenerate_skips_extraction(self):
        extractor = FakeExtractor({"idea": {"one_liner": "ignored"}})
        schema = merge(create_empty(), update_for_field("idea.one_liner", "A budgeting app"))
        orchestrator = TurnOrchestrator(extractor, FakeResponder("again"))

        result = _run(orchestrator.regenerate("budget app", schema))

        assert extractor.calls == []
        assert result.schema_data == schema
        assert result.reply.content == "again"
        assert result.state == ConversationState.PRELIMINARY_EVAL

    def test_answer_choice_question_by_index(self):
        orchestrator = TurnOrchestrator(FakeExtractor(), FakeResponder())
        schema = orchestrator.answer_question(create_empty(), "q7", "2")
        assert schema.platform.form == "ios"
        assert schema.meta.completion_score == 30

    def test_answer_open_question(self):
        orchestrator = TurnOrchestrator(FakeExtractor(), FakeResponder())
        schema = orchestrator.answer_question(create_empty(), "q1", "  A habit tracker ")
        assert schema.idea.one_liner == "A habit tracker"

    def test_unknown_question_leaves_schema(self):
        orchestrator = TurnOrchestrator(FakeExtractor(), FakeResponder())
        schema = create_empty()
        assert orchestrator.answer_question(schema, "q99", "x") is schema

    def test_starter_message_language(self):
        orchestrator = TurnOrchestrator(FakeExtractor(), FakeResponder(), language=Language.ZH)
        assert orchestrator.starter_message().content == CONVERSATION_STARTER[Language.ZH]
        assert orchestrator.starter_message(Language.EN).content.startswith("Hi!")
