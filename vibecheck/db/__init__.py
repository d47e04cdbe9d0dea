"""Database package: engine, ORM models, and conversation store."""

from vibecheck.db.engine import create_db_engine, create_session_factory
from vibecheck.db.facade import ConversationStore
from vibecheck.db.orm import Base, ConversationRow, DocumentRow, MessageRow

__all__ = [
    "Base",
    "ConversationRow",
    "ConversationStore",
    "DocumentRow",
    "MessageRow",
    "create_db_engine",
    "create_session_factory",
]
