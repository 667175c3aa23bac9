"""Data models for the transcript retrieval pipeline."""

from dataclasses import dataclass, field
from typing import Literal

import numpy as np

Role = Literal["user", "assistant", "system"]
VALID_ROLES: frozenset[str] = frozenset({"user", "assistant", "system"})


@dataclass(frozen=True)
class TranscriptChunk:
    """A token-bounded slice of one transcript, in sequence order."""

    text: str
    index: int
    token_count: int


@dataclass
class EmbeddingRecord:
    """A chunk paired with its vector, ready to be written to the vector store."""

    session_id: str
    student_id: str
    chunk_text: str
    embedding: np.ndarray
    chunk_index: int


@dataclass(frozen=True)
class RetrievedChunk:
    """A stored chunk returned by a scoped similarity search."""

    chunk_text: str
    session_id: str
    session_date: str
    similarity_score: float


@dataclass(frozen=True)
class ContextChunk:
    """Retrieved chunk as it is handed to the prompt, with a display date."""

    chunk_text: str
    session_date: str


@dataclass
class ChatMessage:
    """A single entry of a student's chat log."""

    id: str
    student_id: str
    role: Role
    content: str
    created_at: str


@dataclass
class ChatContext:
    """Retrieved transcript knowledge plus recent dialogue for one chat turn."""

    retrieved_chunks: list[ContextChunk] = field(default_factory=list)
    conversation_history: list[ChatMessage] = field(default_factory=list)


@dataclass
class TutoringSession:
    """A persisted tutoring session with its raw transcript."""

    id: str
    student_id: str
    session_date: str
    transcript: str
    created_at: str
    duration_minutes: int | None = None
    tutor_id: str | None = None


@dataclass(frozen=True)
class IngestResult:
    """Outcome of ingesting one transcript."""

    session_id: str
    chunks_created: int
    embeddings_generated: int
