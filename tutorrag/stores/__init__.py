"""SQLite-backed session, vector and chat history stores."""

from .history_store import SQLiteHistoryStore
from .session_store import SQLiteSessionStore
from .vector_store import SQLiteVectorStore

__all__ = [
    "SQLiteHistoryStore",
    "SQLiteSessionStore",
    "SQLiteVectorStore",
]
