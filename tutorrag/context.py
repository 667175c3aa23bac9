"""Chat context assembly from retrieved transcript chunks and recent history."""

import datetime

from .config import config
from .exceptions import SearchError
from .models import ChatContext, ContextChunk, RetrievedChunk
from .retrieval import RetrievalEngine
from .stores import SQLiteHistoryStore

logger = config.get_logger(__name__)

NO_SESSION_CONTEXT = "No previous session context available yet."


def format_session_date(value: str) -> str:
    """Render a stored session date as a locale date.

    Returns:
        The date in the current locale's ``%x`` format, or the stored value
        unchanged if it is not an ISO-8601 date or timestamp.
    """
    try:
        parsed = datetime.datetime.fromisoformat(value)
    except (TypeError, ValueError):
        logger.warning("Unparseable session date %r", value)
        return value
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.strftime("%x")


def build_system_prompt(chunks: list[ContextChunk]) -> str:
    """Build the assistant's system prompt around retrieved session excerpts.

    Returns:
        The prompt text; a fixed placeholder stands in for the excerpts when
        nothing was retrieved.
    """
    context_text = (
        "\n\n".join(
            f"[Session on {chunk.session_date}]:\n{chunk.chunk_text}"
            for chunk in chunks
        )
        if chunks
        else NO_SESSION_CONTEXT
    )

    return (
        "You are a helpful AI study companion for a student. Your role is to:\n"
        "- Help students review material from their tutoring sessions\n"
        "- Answer questions clearly and encouragingly\n"
        "- Provide practice problems when appropriate\n"
        "- Encourage students to book a session with their human tutor for "
        "complex topics or when they're struggling\n\n"
        "You have access to the student's previous tutoring session transcripts "
        "for context:\n\n"
        f"{context_text}\n\n"
        "Use this context when relevant, but don't force it. If the student asks "
        "about something not covered in their sessions, you can still help with "
        "general knowledge. Be supportive and educational."
    )


class ContextAssembler:
    """Combines a student's relevant transcript chunks with recent dialogue."""

    def __init__(
        self,
        retrieval_engine: RetrievalEngine,
        history_store: SQLiteHistoryStore,
        *,
        top_k: int | None = None,
        history_limit: int | None = None,
        degrade_on_search_error: bool = False,
    ) -> None:
        """Initialize the assembler.

        Args:
            retrieval_engine: Scoped transcript search.
            history_store: Chat log read newest first.
            top_k: Chunks to retrieve per turn. If None, uses
                config.RETRIEVAL_TOP_K.
            history_limit: Messages of history per turn. If None, uses
                config.HISTORY_CONTEXT_LIMIT.
            degrade_on_search_error: When True a failed search is logged and
                the context carries no chunks; when False the SearchError
                propagates.
        """
        self.retrieval_engine = retrieval_engine
        self.history_store = history_store
        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k
        self.history_limit = (
            config.HISTORY_CONTEXT_LIMIT if history_limit is None else history_limit
        )
        self.degrade_on_search_error = degrade_on_search_error

    def build_context(self, student_id: str, query: str) -> ChatContext:
        """Collect the context for one chat turn.

        Returns:
            Retrieved chunks in similarity order and history oldest first.

        Raises:
            SearchError: If retrieval fails and degrading is disabled.
        """
        try:
            retrieved = self.retrieval_engine.search(
                student_id, query, top_k=self.top_k
            )
        except SearchError:
            if not self.degrade_on_search_error:
                raise
            logger.warning(
                "Continuing without session context for student %s",
                student_id,
                exc_info=True,
            )
            retrieved = []

        history = self.history_store.get_recent(student_id, self.history_limit)
        history.reverse()

        return ChatContext(
            retrieved_chunks=[self._to_context_chunk(chunk) for chunk in retrieved],
            conversation_history=history,
        )

    @staticmethod
    def _to_context_chunk(chunk: RetrievedChunk) -> ContextChunk:
        return ContextChunk(
            chunk_text=chunk.chunk_text,
            session_date=format_session_date(chunk.session_date),
        )
