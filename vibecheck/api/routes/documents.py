"""Generated documents: the scored report and the pre-build brief."""

from __future__ import annotations

import structlog
from fastapi import APIRouter

from vibecheck.api.deps import DocumentsDep, StoreDep
from vibecheck.api.routes.conversations import require_conversation
from vibecheck.api.schemas import BriefResponse, ReportResponse
from vibecheck.errors import DocumentNotFound
from vibecheck.logging import bind_conversation
from vibecheck.models.document import Document, DocumentKind

router = APIRouter(prefix="/conversations", tags=["documents"])

logger = structlog.get_logger()


def _report_response(doc: Document, completion_score: int) -> ReportResponse:
    return ReportResponse(
        conversation_id=doc.conversation_id,
        report=doc.report(),
        completion_score=completion_score,
        created_at=str(doc.created_at),
    )


@router.post("/{conversation_id}/report", response_model=ReportResponse, status_code=201)
async def generate_report(
    conversation_id: str, store: StoreDep, documents: DocumentsDep
) -> ReportResponse:
    conv = require_conversation(store, conversation_id)
    bind_conversation(conv.id, conv.language.value)
    report = await documents.write_report(conv.schema_data, conv.project_name, conv.language)
    doc = store.save_document(conv.id, DocumentKind.REPORT, report.model_dump_json())
    return _report_response(doc, conv.schema_data.meta.completion_score)


@router.get("/{conversation_id}/report", response_model=ReportResponse)
def get_report(conversation_id: str, store: StoreDep) -> ReportResponse:
    conv = require_conversation(store, conversation_id)
    doc = store.latest_document(conv.id, DocumentKind.REPORT)
    if doc is None:
        raise DocumentNotFound(conv.id, DocumentKind.REPORT.value)
    return _report_response(doc, conv.schema_data.meta.completion_score)


@router.post("/{conversation_id}/brief", response_model=BriefResponse, status_code=201)
async def generate_brief(
    conversation_id: str, store: StoreDep, documents: DocumentsDep
) -> BriefResponse:
    conv = require_conversation(store, conversation_id)
    bind_conversation(conv.id, conv.language.value)
    messages = [m.as_chat_message() for m in store.list_messages(conv.id)]
    markdown = await documents.write_brief(conv.schema_data, messages, conv.language)
    doc = store.save_document(conv.id, DocumentKind.BRIEF, markdown)
    return BriefResponse(
        conversation_id=conv.id,
        project_name=conv.project_name,
        markdown=doc.content,
        created_at=str(doc.created_at),
    )


@router.get("/{conversation_id}/brief", response_model=BriefResponse)
def get_brief(conversation_id: str, store: StoreDep) -> BriefResponse:
    conv = require_conversation(store, conversation_id)
    doc = store.latest_document(conv.id, DocumentKind.BRIEF)
    if doc is None:
        raise DocumentNotFound(conv.id, DocumentKind.BRIEF.value)
    return BriefResponse(
        conversation_id=conv.id,
        project_name=conv.project_name,
        markdown=doc.content,
        created_at=str(doc.created_at),
    )
