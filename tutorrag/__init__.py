"""TutorRAG - transcript retrieval for a tutoring chat assistant."""

from .chunking import TranscriptChunker, chunk_text, split_sentences
from .context import ContextAssembler, build_system_prompt, format_session_date
from .conversation import ConversationManager, ReplyStream
from .embeddings import EmbeddingService
from .exceptions import (
    EmbeddingError,
    GenerationError,
    PersistenceError,
    SearchError,
    TutorRAGError,
)
from .generation import ChatGenerator
from .models import (
    ChatContext,
    ChatMessage,
    ContextChunk,
    EmbeddingRecord,
    IngestResult,
    RetrievedChunk,
    TranscriptChunk,
    TutoringSession,
)
from .pipeline import IngestionPipeline
from .retrieval import RetrievalEngine
from .stores import (
    SQLiteHistoryStore,
    SQLiteSessionStore,
    SQLiteVectorStore,
)
from .tokenizer import TiktokenCounter, TokenCounter
from .transcripts import load_transcript, normalize_transcript

__all__ = [
    "ChatContext",
    "ChatGenerator",
    "ChatMessage",
    "ContextAssembler",
    "ContextChunk",
    "ConversationManager",
    "EmbeddingError",
    "EmbeddingRecord",
    "EmbeddingService",
    "GenerationError",
    "IngestResult",
    "IngestionPipeline",
    "PersistenceError",
    "ReplyStream",
    "RetrievalEngine",
    "RetrievedChunk",
    "SQLiteHistoryStore",
    "SQLiteSessionStore",
    "SQLiteVectorStore",
    "SearchError",
    "TiktokenCounter",
    "TokenCounter",
    "TranscriptChunk",
    "TranscriptChunker",
    "TutorRAGError",
    "TutoringSession",
    "build_system_prompt",
    "chunk_text",
    "format_session_date",
    "load_transcript",
    "normalize_transcript",
    "split_sentences",
]
