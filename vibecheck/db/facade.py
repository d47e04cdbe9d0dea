"""SQLAlchemy-backed conversation store."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select, text

from vibecheck.db.engine import create_db_engine, create_session_factory
from vibecheck.db.orm import Base, ConversationRow, DocumentRow, MessageRow
from vibecheck.errors import ConversationNotFound
from vibecheck.models.conversation import (
    Conversation,
    ConversationStatus,
    Language,
    Message,
    MessageMetadata,
    MessageRole,
)
from vibecheck.models.document import Document, DocumentKind
from vibecheck.models.schema import EvaluationSchema
from vibecheck.schema_store import create_empty

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy import Engine
    from sqlalchemy.orm import Session, sessionmaker


class ConversationStore:
    """Persists conversations, their schema snapshot and their messages.

    The schema is stored whole as JSON on every save; messages are
    append-only.
    """

    def __init__(self, db_path: str | Path = ":memory:"):
        self.db_path = str(db_path)
        self._engine: Engine = create_db_engine(self.db_path)
        self._session_factory: sessionmaker[Session] = create_session_factory(self._engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def init_schema(self) -> None:
        """Create all tables via ORM metadata."""
        Base.metadata.create_all(self._engine)

    def close(self) -> None:
        self._engine.dispose()

    def check_connection(self) -> bool:
        """Verify the database is reachable. Returns True or raises."""
        with self._session_factory() as session:
            session.execute(text("SELECT 1"))
        return True

    # --- Conversations ---

    def create_conversation(
        self,
        schema: EvaluationSchema | None = None,
        project_name: str = "",
        language: str = "en",
    ) -> Conversation:
        schema = schema or create_empty()
        with self._session_factory() as session:
            row = ConversationRow(
                schema_json=schema.model_dump_json(),
                project_name=project_name,
                language=Language(language).value,
            )
            session.add(row)
            session.commit()
            return self._row_to_conversation(row)

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        with self._session_factory() as session:
            row = session.get(ConversationRow, conversation_id)
            if row is None:
                return None
            return self._row_to_conversation(row)

    def list_conversations(
        self, status: ConversationStatus | None = None, limit: int = 50
    ) -> list[Conversation]:
        """Most recently updated first."""
        with self._session_factory() as session:
            stmt = select(ConversationRow).order_by(
                ConversationRow.updated_at.desc(), ConversationRow.id
            )
            if status:
                stmt = stmt.where(ConversationRow.status == status.value)
            rows = session.scalars(stmt.limit(limit)).all()
            return [self._row_to_conversation(r) for r in rows]

    def update_status(self, conversation_id: str, status: ConversationStatus) -> None:
        with self._session_factory() as session:
            row = self._require(session, conversation_id)
            row.status = status.value
            row.updated_at = _utcnow_str()
            session.commit()

    # --- Schema ---

    def load_schema(self, conversation_id: str) -> EvaluationSchema:
        with self._session_factory() as session:
            row = self._require(session, conversation_id)
            return EvaluationSchema.model_validate_json(row.schema_json)

    def save_schema(self, conversation_id: str, schema: EvaluationSchema) -> None:
        with self._session_factory() as session:
            row = self._require(session, conversation_id)
            row.schema_json = schema.model_dump_json()
            row.updated_at = _utcnow_str()
            session.commit()

    # --- Messages ---

    def append_message(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        metadata: MessageMetadata | None = None,
    ) -> int:
        with self._session_factory() as session:
            conversation = self._require(session, conversation_id)
            row = MessageRow(
                conversation_id=conversation_id,
                role=MessageRole(role).value,
                content=content,
                metadata_json=(metadata or MessageMetadata()).model_dump_json(),
            )
            session.add(row)
            conversation.updated_at = _utcnow_str()
            session.commit()
            return row.id

    def load_recent_messages(self, conversation_id: str, n: int) -> list[Message]:
        """The last *n* messages, oldest first."""
        if n <= 0:
            return []
        with self._session_factory() as session:
            stmt = (
                select(MessageRow)
                .where(MessageRow.conversation_id == conversation_id)
                .order_by(MessageRow.id.desc())
                .limit(n)
            )
            rows = session.scalars(stmt).all()
            return [self._row_to_message(r) for r in reversed(rows)]

    def list_messages(self, conversation_id: str) -> list[Message]:
        with self._session_factory() as session:
            stmt = (
                select(MessageRow)
                .where(MessageRow.conversation_id == conversation_id)
                .order_by(MessageRow.id)
            )
            rows = session.scalars(stmt).all()
            return [self._row_to_message(r) for r in rows]

    # --- Documents ---

    def save_document(
        self, conversation_id: str, kind: DocumentKind, content: str
    ) -> Document:
        """Store a generated report or brief. Earlier ones are kept."""
        with self._session_factory() as session:
            self._require(session, conversation_id)
            row = DocumentRow(
                conversation_id=conversation_id,
                kind=DocumentKind(kind).value,
                content=content,
            )
            session.add(row)
            session.commit()
            return self._row_to_document(row)

    def latest_document(self, conversation_id: str, kind: DocumentKind) -> Document | None:
        with self._session_factory() as session:
            stmt = (
                select(DocumentRow)
                .where(
                    DocumentRow.conversation_id == conversation_id,
                    DocumentRow.kind == DocumentKind(kind).value,
                )
                .order_by(DocumentRow.id.desc())
                .limit(1)
            )
            row = session.scalars(stmt).first()
            return self._row_to_document(row) if row is not None else None

    # --- Helpers ---

    @staticmethod
    def _require(session: Session, conversation_id: str) -> ConversationRow:
        row = session.get(ConversationRow, conversation_id)
        if row is None:
            raise ConversationNotFound(conversation_id)
        return row

    @staticmethod
    def _parse_dt(value: str) -> datetime:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))

    @staticmethod
    def _row_to_conversation(row: ConversationRow) -> Conversation:
        return Conversation(
            id=row.id,
            status=ConversationStatus(row.status),
            schema_data=EvaluationSchema.model_validate_json(row.schema_json),
            project_name=row.project_name,
            language=Language(row.language),
            created_at=ConversationStore._parse_dt(row.created_at),
            updated_at=ConversationStore._parse_dt(row.updated_at),
        )

    @staticmethod
    def _row_to_message(row: MessageRow) -> Message:
        return Message(
            id=row.id,
            conversation_id=row.conversation_id,
            role=MessageRole(row.role),
            content=row.content,
            metadata=MessageMetadata.model_validate_json(row.metadata_json),
            created_at=ConversationStore._parse_dt(row.created_at),
        )

    @staticmethod
    def _row_to_document(row: DocumentRow) -> Document:
        return Document(
            id=row.id,
            conversation_id=row.conversation_id,
            kind=DocumentKind(row.kind),
            content=row.content,
            created_at=ConversationStore._parse_dt(row.created_at),
        )


def _utcnow_str() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
