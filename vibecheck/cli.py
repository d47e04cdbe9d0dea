"""Click CLI entry point for vibecheck."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import click

from vibecheck.config import Settings
from vibecheck.db import ConversationStore
from vibecheck.errors import (
    USER_FACING_RETRY_MESSAGE,
    GenerationUnavailable,
    LLMConfigurationError,
    LLMError,
)
from vibecheck.logging import bind_conversation, configure_logging
from vibecheck.models.conversation import (
    ContentEvent,
    ConversationStatus,
    Language,
    MessageRole,
    MetadataEvent,
    SchemaEvent,
)

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from vibecheck.documents import DocumentWriter
    from vibecheck.models.conversation import AssistantReply, ChatMessage, Conversation
    from vibecheck.models.schema import EvaluationSchema
    from vibecheck.orchestrator import TurnOrchestrator

T = TypeVar("T")

_EXIT_WORDS = frozenset({"exit", "quit", ":q"})


def _get_store(settings: Settings) -> ConversationStore:
    settings.ensure_data_dir()
    store = ConversationStore(settings.db_path)
    store.init_schema()
    return store


def _get_orchestrator(settings: Settings) -> TurnOrchestrator:
    from vibecheck.orchestrator import build_orchestrator

    return build_orchestrator(settings)


def _get_documents(settings: Settings) -> DocumentWriter:
    from vibecheck.documents import DocumentWriter
    from vibecheck.llm import LLMClient

    return DocumentWriter(LLMClient(settings), settings)


def _require(store: ConversationStore, conversation_id: str) -> Conversation:
    conv = store.get_conversation(conversation_id)
    if conv is None:
        click.echo(f"Conversation {conversation_id} not found.", err=True)
        sys.exit(1)
    return conv


def _history(store: ConversationStore, conversation_id: str, limit: int) -> list[ChatMessage]:
    return [
        m.as_chat_message()
        for m in store.load_recent_messages(conversation_id, limit)
        if m.role != MessageRole.SYSTEM
    ]


def _echo_reply(reply: AssistantReply) -> None:
    click.echo(reply.content)
    for i, choice in enumerate(reply.metadata.choices, start=1):
        click.echo(f"  {i}. {choice.text}")


def _echo_progress(schema: EvaluationSchema) -> None:
    from vibecheck.schema_store import progress_bar

    score = schema.meta.completion_score
    click.echo(f"\n{progress_bar(score)} {score}%  ({schema.meta.current_state.value})")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """vibecheck: check a product idea before writing code."""
    ctx.ensure_object(dict)
    settings = Settings()
    log_level = "DEBUG" if verbose else settings.log_level
    configure_logging(log_level=log_level, log_format=settings.log_format)
    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option("--offline", is_flag=True, help="Skip the live LLM round trip")
@click.pass_context
def selftest(ctx: click.Context, offline: bool) -> None:
    """Check configuration, database and LLM connectivity."""
    from vibecheck.llm import LLMClient

    settings = ctx.obj["settings"]
    ok = True

    click.echo(f"  {'Anthropic key':16s} {'OK' if settings.anthropic_api_key else '-- not set'}")
    click.echo(f"  {'Model':16s} {settings.llm_model}")

    store = _get_store(settings)
    try:
        store.check_connection()
        click.echo(f"  {'Database':16s} OK ({settings.db_path})")
    finally:
        store.close()

    if offline:
        click.echo(f"  {'LLM round trip':16s} skipped")
    else:
        try:
            replied = asyncio.run(LLMClient(settings).ping())
        except LLMError as exc:
            replied = False
            click.echo(f"  {'LLM round trip':16s} FAILED: {exc}")
        else:
            click.echo(f"  {'LLM round trip':16s} {'OK' if replied else 'FAILED: empty reply'}")
        ok = ok and replied

    if not ok:
        sys.exit(1)


@cli.command()
@click.option("--name", "project_name", type=str, default="", help="Project name (seeds the idea)")
@click.option(
    "--lang",
    type=click.Choice([lang.value for lang in Language], case_sensitive=False),
    default=None,
    help="Reply language",
)
@click.pass_context
def new(ctx: click.Context, project_name: str, lang: str | None) -> None:
    """Start a new conversation."""
    from vibecheck.schema_store import create_empty, merge, update_for_field

    settings = ctx.obj["settings"]
    language = Language(lang or settings.default_language)
    store = _get_store(settings)
    try:
        schema = create_empty()
        if project_name.strip():
            schema = merge(schema, update_for_field("idea.one_liner", project_name.strip()))
        conv = store.create_conversation(
            schema, project_name=project_name.strip(), language=language.value
        )
        starter = _get_orchestrator(settings).starter_message(language)
        store.append_message(conv.id, MessageRole.ASSISTANT, starter.content, starter.metadata)
        click.echo(f"Conversation {conv.id}\n")
        _echo_reply(starter)
    finally:
        store.close()


async def _run_turn(
    store: ConversationStore,
    orchestrator: TurnOrchestrator,
    conv: Conversation,
    message: str,
    limit: int,
    stream: bool,
) -> EvaluationSchema:
    """Run one turn, persist it and print the reply. Returns the new schema."""
    schema = store.load_schema(conv.id)
    history = _history(store, conv.id, limit)
    store.append_message(conv.id, MessageRole.USER, message)

    try:
        if not stream:
            result = await orchestrator.handle_turn(message, schema, history, conv.language)
            store.save_schema(conv.id, result.schema_data)
            store.append_message(
                conv.id, MessageRole.ASSISTANT, result.reply.content, result.reply.metadata
            )
            _echo_reply(result.reply)
            return result.schema_data

        async for event in orchestrator.stream_turn(message, schema, history, conv.language):
            if isinstance(event, ContentEvent):
                click.echo(event.content, nl=False)
            elif isinstance(event, MetadataEvent):
                click.echo()
                store.append_message(conv.id, MessageRole.ASSISTANT, event.text, event.metadata)
                for i, choice in enumerate(event.metadata.choices, start=1):
                    click.echo(f"  {i}. {choice.text}")
            elif isinstance(event, SchemaEvent):
                store.save_schema(conv.id, event.schema_data)
                schema = event.schema_data
        return schema
    except GenerationUnavailable as exc:
        if exc.schema is not None:
            store.save_schema(conv.id, exc.schema)
        raise


async def _chat_loop(
    store: ConversationStore,
    orchestrator: TurnOrchestrator,
    conv: Conversation,
    message: str | None,
    limit: int,
    stream: bool,
) -> None:
    """One turn for *message*, or a prompt loop until EOF or an exit word."""
    while True:
        text = message
        if text is None:
            try:
                text = click.prompt("\nyou", prompt_suffix="> ")
            except click.Abort:
                click.echo()
                return
            if text.strip().lower() in _EXIT_WORDS:
                return
        click.echo()
        schema = await _run_turn(store, orchestrator, conv, text, limit, stream)
        _echo_progress(schema)
        if message is not None:
            return


@cli.command()
@click.argument("conversation_id", type=str)
@click.argument("message", type=str, required=False)
@click.option("--stream", is_flag=True, help="Print the reply as it is generated")
@click.pass_context
def chat(ctx: click.Context, conversation_id: str, message: str | None, stream: bool) -> None:
    """Send MESSAGE, or chat interactively when no message is given."""
    settings = ctx.obj["settings"]
    store = _get_store(settings)
    try:
        conv = _require(store, conversation_id)
        bind_conversation(conv.id, conv.language.value)
        orchestrator = _get_orchestrator(settings)
        try:
            asyncio.run(
                _chat_loop(
                    store, orchestrator, conv, message, settings.recent_messages_limit, stream
                )
            )
        except GenerationUnavailable:
            click.echo(USER_FACING_RETRY_MESSAGE, err=True)
            sys.exit(1)
        except LLMConfigurationError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)
    finally:
        store.close()


@cli.command()
@click.argument("conversation_id", type=str)
@click.option("--messages", "show_messages", is_flag=True, help="Show the message log")
@click.pass_context
def show(ctx: click.Context, conversation_id: str, show_messages: bool) -> None:
    """Show a conversation's collected information and progress."""
    from vibecheck.question_bank import next_question, progress
    from vibecheck.schema_store import summarize

    settings = ctx.obj["settings"]
    store = _get_store(settings)
    try:
        conv = _require(store, conversation_id)
        schema = conv.schema_data
        click.echo(f"Conversation {conv.id}: {conv.project_name or '(unnamed)'}")
        click.echo(f"  Status: {conv.status.value}")
        click.echo(f"  Language: {conv.language.value}")
        click.echo()
        click.echo(summarize(schema))
        _echo_progress(schema)

        p = progress(schema)
        click.echo(
            f"  Core: {p.mvp_filled}/{p.mvp_total}  "
            f"Supplementary: {p.supplementary_filled}/{p.supplementary_total}"
        )
        question = next_question(schema)
        if question is not None:
            click.echo(f"  Next question [{question.id}]: {question.question.splitlines()[0]}")

        if show_messages:
            click.echo("\nMessages:")
            for msg in store.list_messages(conversation_id):
                click.echo(f"  [{msg.created_at:%Y-%m-%d %H:%M}] {msg.role.value}: {msg.content}")
    finally:
        store.close()


@cli.command()
@click.argument("conversation_id", type=str)
@click.argument("question", type=str)
@click.argument("answer", type=str)
@click.pass_context
def answer(ctx: click.Context, conversation_id: str, question: str, answer: str) -> None:
    """Answer QUESTION (id like q3, or a field like user.primary_user) directly."""
    from vibecheck.question_bank import get_question, get_question_for_field
    from vibecheck.schema_store import display_value, get_field_value

    settings = ctx.obj["settings"]
    store = _get_store(settings)
    try:
        _require(store, conversation_id)
        q = get_question(question) or get_question_for_field(question)
        if q is None:
            click.echo(f"Unknown question '{question}'.", err=True)
            sys.exit(1)
        orchestrator = _get_orchestrator(settings)
        schema = orchestrator.answer_question(store.load_schema(conversation_id), q.id, answer)
        store.save_schema(conversation_id, schema)
        value = get_field_value(schema, q.field)
        click.echo(f"  {q.field} = {display_value(q.field, value) or '(skipped)'}")
        _echo_progress(schema)
    finally:
        store.close()


def _run_document(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except ValueError as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)
    except GenerationUnavailable as exc:
        click.echo(f"Error: {exc}. Please retry.", err=True)
        sys.exit(1)
    except LLMConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("conversation_id", type=str)
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def report(ctx: click.Context, conversation_id: str, as_json: bool) -> None:
    """Generate a scored feasibility report."""
    from vibecheck.documents import render_report
    from vibecheck.models.document import DocumentKind

    settings = ctx.obj["settings"]
    store = _get_store(settings)
    try:
        conv = _require(store, conversation_id)
        bind_conversation(conv.id, conv.language.value)
        writer = _get_documents(settings)
        result = _run_document(
            writer.write_report(conv.schema_data, conv.project_name, conv.language)
        )
        store.save_document(conv.id, DocumentKind.REPORT, result.model_dump_json())
        click.echo(result.model_dump_json(indent=2) if as_json else render_report(result))
    finally:
        store.close()


@cli.command()
@click.argument("conversation_id", type=str)
@click.option(
    "--out",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write the Markdown to a file instead of stdout",
)
@click.pass_context
def brief(ctx: click.Context, conversation_id: str, out: str | None) -> None:
    """Generate the pre-build brief as Markdown."""
    from vibecheck.models.document import DocumentKind

    settings = ctx.obj["settings"]
    store = _get_store(settings)
    try:
        conv = _require(store, conversation_id)
        bind_conversation(conv.id, conv.language.value)
        messages = [m.as_chat_message() for m in store.list_messages(conv.id)]
        writer = _get_documents(settings)
        markdown = _run_document(writer.write_brief(conv.schema_data, messages, conv.language))
        store.save_document(conv.id, DocumentKind.BRIEF, markdown)
        if out:
            Path(out).write_text(markdown + "\n", encoding="utf-8")
            click.echo(f"Brief written to {out}")
        else:
            click.echo(markdown)
    finally:
        store.close()


@cli.command("ls")
@click.option("--status", type=str, default=None, help="Filter by status")
@click.option("--limit", type=int, default=50, help="Maximum rows")
@click.pass_context
def list_conversations(ctx: click.Context, status: str | None, limit: int) -> None:
    """List conversations, most recent first."""
    settings = ctx.obj["settings"]
    store = _get_store(settings)
    try:
        conv_status = ConversationStatus(status) if status else None
        conversations = store.list_conversations(conv_status, limit=limit)
        if not conversations:
            click.echo("No conversations found.")
            return
        for conv in conversations:
            meta = conv.schema_data.meta
            title = conv.project_name or conv.schema_data.idea.one_liner or "(no idea yet)"
            click.echo(
                f"  [{conv.id}] {meta.completion_score:3d}% {meta.current_state.value:16s} {title}"
            )
    finally:
        store.close()


@cli.command()
@click.option("--host", type=str, default=None, help="Bind host")
@click.option("--port", type=int, default=None, help="Bind port")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the FastAPI API server."""
    import uvicorn

    settings = ctx.obj["settings"]
    uvicorn.run(
        "vibecheck.api.app:create_app",
        factory=True,
        host=host or settings.api_host,
        port=port or settings.api_port,
    )
