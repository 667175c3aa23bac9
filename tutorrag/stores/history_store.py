"""SQLite store for the append-only chat log."""

from __future__ import annotations

import sqlite3
import uuid
from pathlib import Path

from tutorrag.config import config
from tutorrag.exceptions import PersistenceError
from tutorrag.models import VALID_ROLES, ChatMessage
from tutorrag.stores.base import BaseSQLiteStore, utc_now

logger = config.get_logger(__name__)


class SQLiteHistoryStore(BaseSQLiteStore):
    """Chat messages per student, read back newest first."""

    def __init__(self, db_path: Path = Path("data/tutorrag.db")) -> None:
        super().__init__(db_path)

    def append_message(self, student_id: str, role: str, content: str) -> str:
        """Append a message to a student's chat log.

        Returns:
            The id of the stored message.

        Raises:
            ValueError: If the role is not user, assistant or system.
            PersistenceError: If the insert fails.
        """
        if role not in VALID_ROLES:
            msg = f"Invalid chat role: {role!r}"
            raise ValueError(msg)

        message_id = str(uuid.uuid4())
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO chat_messages
                        (id, student_id, role, content, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (message_id, student_id, role, content, utc_now()),
                )
        except sqlite3.Error as exc:
            logger.exception("Failed to save %s message for %s", role, student_id)
            msg = f"Failed to save message: {exc}"
            raise PersistenceError(msg) from exc

        return message_id

    def get_recent(self, student_id: str, limit: int) -> list[ChatMessage]:
        """Most recent messages of a student.

        Returns:
            Up to ``limit`` messages, newest first.
        """
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, student_id, role, content, created_at
                FROM chat_messages
                WHERE student_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (student_id, limit),
            ).fetchall()

        return [
            ChatMessage(
                id=message_id,
                student_id=owner,
                role=role,
                content=content,
                created_at=created_at,
            )
            for message_id, owner, role, content, created_at in rows
        ]
