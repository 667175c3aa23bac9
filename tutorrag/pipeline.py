"""Ingestion pipeline turning transcripts into retrievable chunk vectors."""

from pathlib import Path

from .chunking import TranscriptChunker
from .config import config
from .embeddings import EmbeddingService
from .models import EmbeddingRecord, IngestResult
from .stores import SQLiteSessionStore, SQLiteVectorStore

logger = config.get_logger(__name__)


class IngestionPipeline:
    """Orchestrates Persist session -> Chunk -> Embed -> Store for a transcript."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        session_store: SQLiteSessionStore | None = None,
        vector_store: SQLiteVectorStore | None = None,
        embedding_service: EmbeddingService | None = None,
        chunker: TranscriptChunker | None = None,
        openai_api_key: str | None = None,
        db_path: Path | None = None,
    ) -> None:
        """Initialize the pipeline with its collaborators.

        Args:
            session_store: Store for session records. If None, a SQLite store
                at ``db_path`` is used.
            vector_store: Store for chunk vectors. If None, a SQLite store at
                ``db_path`` is used.
            embedding_service: Embedding generator. If None, an OpenAI-backed
                service is created with ``openai_api_key``.
            chunker: Transcript chunker. If None, uses the configured token
                budget and overlap.
            openai_api_key: OpenAI API key for the default embedding service.
            db_path: SQLite database path for default stores. If None, uses
                config.DATABASE_PATH.
        """
        if db_path is None:
            db_path = config.DATABASE_PATH

        self.session_store = session_store or SQLiteSessionStore(db_path)
        self.vector_store = vector_store or SQLiteVectorStore(db_path)
        self.embedding_service = embedding_service or EmbeddingService(
            api_key=openai_api_key
        )
        self.chunker = chunker or TranscriptChunker()

    def ingest(  # noqa: PLR0913,PLR0917
        self,
        student_id: str,
        transcript: str,
        session_date: str,
        duration_minutes: int | None = None,
        tutor_id: str | None = None,
    ) -> IngestResult:
        """Persist a tutoring session and index its transcript.

        An empty transcript is valid: the session is stored and no chunks are
        created. If embedding or the chunk write fails, the session record
        stays in place; ``sessions_without_chunks`` and ``reindex_session``
        recover from that.

        Returns:
            The new session id with chunk and embedding counts.

        Raises:
            ValueError: If ``student_id`` or ``session_date`` is missing.
        """
        if not student_id:
            msg = "student_id is required"
            raise ValueError(msg)
        if not session_date:
            msg = "session_date is required"
            raise ValueError(msg)

        logger.info("Starting ingestion for student %s", student_id)

        session = self.session_store.create_session(
            student_id=student_id,
            transcript=transcript,
            session_date=session_date,
            duration_minutes=duration_minutes,
            tutor_id=tutor_id,
        )

        result = self._index_transcript(session.id, student_id, transcript)
        if result.chunks_created == 0:
            logger.info("Session %s has no transcript content to index", session.id)
            return result

        try:
            self.session_store.increment_session_count(student_id)
        except Exception:  # noqa: BLE001
            logger.warning(
                "Could not increment session count for student %s",
                student_id,
                exc_info=True,
            )

        logger.info(
            "Ingestion completed for session %s: %d chunks",
            session.id,
            result.chunks_created,
        )
        return result

    def reindex_session(self, session_id: str) -> IngestResult:
        """Chunk and embed a stored session that has no chunks yet.

        Returns:
            Counts for the re-run; the session id is unchanged.

        Raises:
            ValueError: If the session does not exist or is already indexed.
        """
        session = self.session_store.get_session(session_id)
        if session is None:
            msg = f"Unknown session: {session_id}"
            raise ValueError(msg)
        if session_id not in self.session_store.sessions_without_chunks(
            session.student_id
        ):
            msg = f"Session {session_id} already has stored chunks"
            raise ValueError(msg)

        logger.info("Re-indexing session %s", session_id)
        return self._index_transcript(
            session.id, session.student_id, session.transcript
        )

    def _index_transcript(
        self, session_id: str, student_id: str, transcript: str
    ) -> IngestResult:
        chunks = self.chunker.chunk(transcript)
        if not chunks:
            return IngestResult(
                session_id=session_id, chunks_created=0, embeddings_generated=0
            )

        embeddings = self.embedding_service.embed([chunk.text for chunk in chunks])

        records = [
            EmbeddingRecord(
                session_id=session_id,
                student_id=student_id,
                chunk_text=chunk.text,
                embedding=embedding,
                chunk_index=chunk.index,
            )
            for chunk, embedding in zip(chunks, embeddings, strict=True)
        ]
        self.vector_store.insert(records)

        return IngestResult(
            session_id=session_id,
            chunks_created=len(chunks),
            embeddings_generated=len(embeddings),
        )
