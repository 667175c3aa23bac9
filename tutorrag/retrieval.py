"""Student-scoped semantic search over stored transcript chunks."""

from pathlib import Path

from .config import config
from .embeddings import EmbeddingService
from .exceptions import SearchError
from .models import RetrievedChunk
from .stores import SQLiteVectorStore

logger = config.get_logger(__name__)


class RetrievalEngine:
    """Embeds a query and asks the vector store for one student's nearest chunks."""

    def __init__(
        self,
        *,
        vector_store: SQLiteVectorStore | None = None,
        embedding_service: EmbeddingService | None = None,
        openai_api_key: str | None = None,
        db_path: Path | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            vector_store: Store answering nearest-neighbour queries. If None, a
                SQLite store at ``db_path`` (or config.DATABASE_PATH) is used.
            embedding_service: Must be the generator used at ingestion time so
                query and chunk vectors share one embedding space.
            openai_api_key: OpenAI API key for the default embedding service.
            db_path: SQLite database path for the default store.
        """
        self.vector_store = vector_store or SQLiteVectorStore(
            db_path if db_path is not None else config.DATABASE_PATH
        )
        self.embedding_service = embedding_service or EmbeddingService(
            api_key=openai_api_key
        )

    def search(
        self, student_id: str, query: str, top_k: int = 3
    ) -> list[RetrievedChunk]:
        """Find the stored chunks of one student most relevant to a query.

        Args:
            student_id: Scope of the search; chunks of other students are never
                returned.
            query: Free-text question.
            top_k: Maximum number of chunks to return.

        Returns:
            Up to ``top_k`` chunks in the store's descending similarity order;
            fewer when the student has fewer chunks.

        Raises:
            ValueError: If ``student_id`` is empty or ``top_k`` is not positive.
            SearchError: If embedding the query or the store lookup fails.
        """
        if not student_id:
            msg = "student_id is required for transcript search"
            raise ValueError(msg)
        if top_k < 1:
            msg = f"top_k must be positive, got {top_k}"
            raise ValueError(msg)

        logger.info("Searching transcripts of student %s (top_k=%d)", student_id, top_k)

        try:
            query_embedding = self.embedding_service.embed([query])[0]
            results = self.vector_store.nearest(
                query_embedding, student_id=student_id, k=top_k
            )
        except Exception as exc:
            logger.exception("Transcript search failed for student %s", student_id)
            msg = f"Search failed: {exc}"
            raise SearchError(msg) from exc

        for i, chunk in enumerate(results):
            logger.debug(
                "  Result %d: session %s (score: %.4f)",
                i + 1,
                chunk.session_id,
                chunk.similarity_score,
            )
        return results
