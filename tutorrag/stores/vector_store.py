"""Chunk vectors in SQLite with student-scoped FAISS similarity search."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

import faiss
import numpy as np

from tutorrag.config import config
from tutorrag.exceptions import PersistenceError
from tutorrag.models import RetrievedChunk
from tutorrag.stores.base import BaseSQLiteStore, utc_now

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tutorrag.models import EmbeddingRecord

logger = config.get_logger(__name__)

VECTOR_DTYPE = np.float32


def encode_vector(embedding: np.ndarray) -> tuple[bytes, int]:
    """Serialize a vector to the blob layout stored in ``session_embeddings``.

    Returns:
        Tuple of (raw float32 bytes, dimension).

    Raises:
        ValueError: If the embedding is not a non-empty one-dimensional vector.
    """
    vector = np.asarray(embedding, dtype=VECTOR_DTYPE)
    if vector.ndim != 1 or vector.shape[0] == 0:
        msg = f"Expected a non-empty 1-D embedding, got shape {vector.shape}"
        raise ValueError(msg)
    return vector.tobytes(), int(vector.shape[0])


def decode_vector(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype=VECTOR_DTYPE)


class SQLiteVectorStore(BaseSQLiteStore):
    """Vector storage using SQLite rows and FAISS inner-product search."""

    def __init__(self, db_path: Path = Path("data/tutorrag.db")) -> None:
        super().__init__(db_path)

    def insert(self, records: Sequence[EmbeddingRecord]) -> int:
        """Write a batch of chunk records in one transaction.

        Either every record is stored or none is.

        Returns:
            Number of records written.

        Raises:
            PersistenceError: If a vector is malformed or the write fails.
        """
        if not records:
            return 0

        created_at = utc_now()
        try:
            rows = []
            for record in records:
                blob, dimension = encode_vector(record.embedding)
                rows.append((
                    record.session_id,
                    record.student_id,
                    record.chunk_text,
                    record.chunk_index,
                    blob,
                    dimension,
                    created_at,
                ))

            with self._connect() as conn:
                conn.executemany(
                    """
                    INSERT INTO session_embeddings (
                        session_id,
                        student_id,
                        chunk_text,
                        chunk_index,
                        embedding,
                        dimension,
                        created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
        except (sqlite3.Error, ValueError) as exc:
            logger.exception("Failed to store %d chunk embeddings", len(records))
            msg = f"Failed to store embeddings: {exc}"
            raise PersistenceError(msg) from exc

        logger.info("Stored %d chunk embeddings", len(rows))
        return len(rows)

    def nearest(
        self,
        query_embedding: np.ndarray,
        *,
        student_id: str,
        k: int,
    ) -> list[RetrievedChunk]:
        """Find the chunks of one student most similar to a query vector.

        Only records of ``student_id`` whose dimension matches the query are
        scored; records embedded with a different model are skipped and
        reported in the log.

        Returns:
            At most ``k`` chunks ordered by descending cosine similarity.

        Raises:
            ValueError: If no student scope is given or ``k`` is not positive.
        """
        if not student_id:
            msg = "A student_id is required for every similarity search"
            raise ValueError(msg)
        if k < 1:
            msg = f"k must be positive, got {k}"
            raise ValueError(msg)

        query = np.array(query_embedding, dtype=VECTOR_DTYPE).reshape(1, -1)
        dimension = query.shape[1]

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT e.chunk_text, e.session_id, s.session_date, e.embedding
                FROM session_embeddings e
                JOIN tutoring_sessions s ON s.id = e.session_id
                WHERE e.student_id = ? AND e.dimension = ?
                ORDER BY e.id
                """,
                (student_id, dimension),
            )
            rows = cursor.fetchall()
            cursor.execute(
                """
                SELECT COUNT(*) FROM session_embeddings
                WHERE student_id = ? AND dimension != ?
                """,
                (student_id, dimension),
            )
            stale_count = int(cursor.fetchone()[0])

        if stale_count:
            logger.warning(
                "Skipped %d chunks of student %s embedded with a dimension other "
                "than %d; re-ingest those sessions with the current model",
                stale_count,
                student_id,
                dimension,
            )

        if not rows:
            return []

        vectors = np.vstack([decode_vector(row[3]) for row in rows])
        faiss.normalize_L2(vectors)
        faiss.normalize_L2(query)

        index = faiss.IndexFlatIP(dimension)
        index.add(vectors)
        scores, positions = index.search(query, min(k, len(rows)))

        results = []
        for score, position in zip(scores[0], positions[0], strict=True):
            if position < 0:
                continue
            chunk_text, session_id, session_date, _ = rows[position]
            results.append(
                RetrievedChunk(
                    chunk_text=chunk_text,
                    session_id=session_id,
                    session_date=session_date,
                    similarity_score=float(score),
                )
            )

        logger.info(
            "Retrieved %d of %d chunks for student %s",
            len(results),
            len(rows),
            student_id,
        )
        return results
