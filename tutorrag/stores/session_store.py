"""SQLite store for tutoring sessions and per-student session counters."""

from __future__ import annotations

import sqlite3
import uuid
from pathlib import Path

from tutorrag.config import config
from tutorrag.exceptions import PersistenceError
from tutorrag.models import TutoringSession
from tutorrag.stores.base import BaseSQLiteStore, utc_now

logger = config.get_logger(__name__)

SESSION_COLUMNS = (
    "id, student_id, session_date, transcript, duration_minutes, tutor_id, created_at"
)


class SQLiteSessionStore(BaseSQLiteStore):
    """Persists raw transcripts with their session metadata."""

    def __init__(self, db_path: Path = Path("data/tutorrag.db")) -> None:
        super().__init__(db_path)

    def create_session(
        self,
        student_id: str,
        transcript: str,
        session_date: str,
        duration_minutes: int | None = None,
        tutor_id: str | None = None,
    ) -> TutoringSession:
        """Insert a session record.

        Returns:
            The stored session, including its generated id.

        Raises:
            PersistenceError: If the insert fails.
        """
        session = TutoringSession(
            id=str(uuid.uuid4()),
            student_id=student_id,
            session_date=session_date,
            transcript=transcript,
            created_at=utc_now(),
            duration_minutes=duration_minutes,
            tutor_id=tutor_id,
        )
        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO tutoring_sessions ({SESSION_COLUMNS}) "  # noqa: S608
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        session.id,
                        session.student_id,
                        session.session_date,
                        session.transcript,
                        session.duration_minutes,
                        session.tutor_id,
                        session.created_at,
                    ),
                )
        except sqlite3.Error as exc:
            logger.exception("Failed to create session for student %s", student_id)
            msg = f"Failed to create session: {exc}"
            raise PersistenceError(msg) from exc

        logger.info("Created session %s for student %s", session.id, student_id)
        return session

    def get_session(self, session_id: str) -> TutoringSession | None:
        """Fetch a session by id.

        Returns:
            The session if found; otherwise None.
        """
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {SESSION_COLUMNS} FROM tutoring_sessions "  # noqa: S608
                "WHERE id = ?",
                (session_id,),
            ).fetchone()
        return self._build_session(row) if row else None

    def list_sessions(self, student_id: str, limit: int = 10) -> list[TutoringSession]:
        """Most recent sessions of one student.

        Returns:
            Up to ``limit`` sessions, latest session date first.
        """
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {SESSION_COLUMNS} FROM tutoring_sessions "  # noqa: S608
                "WHERE student_id = ? ORDER BY session_date DESC, created_at DESC "
                "LIMIT ?",
                (student_id, limit),
            ).fetchall()
        return [self._build_session(row) for row in rows]

    def sessions_without_chunks(self, student_id: str | None = None) -> list[str]:
        """Find sessions that have no stored chunks.

        These are left behind when embedding or the chunk write fails after the
        session insert; sessions with a blank transcript show up here as well.

        Returns:
            Session ids in creation order.
        """
        query = """
            SELECT s.id FROM tutoring_sessions s
            WHERE NOT EXISTS (
                SELECT 1 FROM session_embeddings e WHERE e.session_id = s.id
            )
        """
        params: tuple[str, ...] = ()
        if student_id is not None:
            query += " AND s.student_id = ?"
            params = (student_id,)
        query += " ORDER BY s.created_at"

        with self._connect() as conn:
            return [row[0] for row in conn.execute(query, params).fetchall()]

    def increment_session_count(self, student_id: str) -> int:
        """Bump the lifetime session counter of a student.

        Returns:
            The counter value after the increment.

        Raises:
            PersistenceError: If the update fails.
        """
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO students (id, session_count) VALUES (?, 1)
                    ON CONFLICT(id) DO UPDATE SET session_count = session_count + 1
                    """,
                    (student_id,),
                )
                row = conn.execute(
                    "SELECT session_count FROM students WHERE id = ?", (student_id,)
                ).fetchone()
        except sqlite3.Error as exc:
            msg = f"Failed to increment session count: {exc}"
            raise PersistenceError(msg) from exc
        return int(row[0])

    def get_session_count(self, student_id: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT session_count FROM students WHERE id = ?", (student_id,)
            ).fetchone()
        return int(row[0]) if row else 0

    @staticmethod
    def _build_session(row: tuple) -> TutoringSession:
        (
            session_id,
            student_id,
            session_date,
            transcript,
            duration_minutes,
            tutor_id,
            created_at,
        ) = row
        return TutoringSession(
            id=session_id,
            student_id=student_id,
            session_date=session_date,
            transcript=transcript,
            created_at=created_at,
            duration_minutes=duration_minutes,
            tutor_id=tutor_id,
        )
