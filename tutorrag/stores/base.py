"""Shared schema management for the SQLite-backed stores."""

from __future__ import annotations

import datetime
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from tutorrag.config import config

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = config.get_logger(__name__)


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string.

    Returns:
        Timestamp with microseconds, so rows written in quick succession still
        sort in write order.
    """
    return datetime.datetime.now(tz=datetime.UTC).isoformat()


class BaseSQLiteStore:
    """Common schema and connection handling for stores sharing one database."""

    def __init__(self, db_path: Path) -> None:
        """Initialize the store and ensure the schema exists."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self._create_tables()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection that commits on success and rolls back on error.

        Yields:
            An open connection, closed once the block exits.
        """
        conn = sqlite3.connect(str(self.db_path))
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _create_tables(self) -> None:
        """Create session, embedding, chat and student tables if missing."""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS students (
                    id TEXT PRIMARY KEY,
                    session_count INTEGER NOT NULL DEFAULT 0
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tutoring_sessions (
                    id TEXT PRIMARY KEY,
                    student_id TEXT NOT NULL,
                    session_date TEXT NOT NULL,
                    transcript TEXT NOT NULL,
                    duration_minutes INTEGER,
                    tutor_id TEXT,
                    created_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS session_embeddings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL,
                    student_id TEXT NOT NULL,
                    chunk_text TEXT NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    embedding BLOB NOT NULL,
                    dimension INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE (session_id, chunk_index),
                    FOREIGN KEY (session_id) REFERENCES tutoring_sessions (id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS chat_messages (
                    id TEXT PRIMARY KEY,
                    student_id TEXT NOT NULL,
                    role TEXT NOT NULL CHECK(role IN ('user','assistant','system')),
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            self._create_indexes(cursor)

    @staticmethod
    def _create_indexes(cursor: sqlite3.Cursor) -> None:
        """Ensure indexes exist for the per-student lookups."""
        cursor.execute(
            (
                "CREATE INDEX IF NOT EXISTS idx_sessions_student "
                "ON tutoring_sessions(student_id, session_date DESC)"
            ),
        )
        cursor.execute(
            (
                "CREATE INDEX IF NOT EXISTS idx_embeddings_student "
                "ON session_embeddings(student_id, dimension)"
            ),
        )
        cursor.execute(
            (
                "CREATE INDEX IF NOT EXISTS idx_messages_student_created_at "
                "ON chat_messages(student_id, created_at DESC)"
            ),
        )
