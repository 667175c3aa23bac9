"""Test configuration and fixtures for TutorRAG tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Mock token counter, embedding service and chat stream
- OpenAI API patches
- Chunker and store fixtures backed by temporary SQLite databases
- Pipeline, retrieval and conversation factories
"""

import hashlib
import sqlite3
from contextlib import closing
from unittest.mock import Mock, patch

import numpy as np
import pytest

from tutorrag import (
    ChatMessage,
    EmbeddingRecord,
    EmbeddingService,
    IngestionPipeline,
    RetrievalEngine,
    SQLiteHistoryStore,
    SQLiteSessionStore,
    SQLiteVectorStore,
    TranscriptChunker,
)


class TestConstants:
    """Centralized test constants shared across the test suite."""

    TEST_API_KEY = "test-key"
    DEFAULT_EMBEDDING_DIMENSION = 64

    SESSION_DATE = "2024-05-01"

    SMALL_CHUNK_SIZE = 10
    SMALL_CHUNK_OVERLAP = 0


class WordTokenCounter:
    """Counts whitespace-separated words; "A." is one token."""

    def __init__(self) -> None:
        self.calls = 0

    def count(self, text: str) -> int:
        self.calls += 1
        return len(text.split())


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Generates deterministic embeddings based on text content hash and records
    every batch it is asked to embed.
    """

    def __init__(
        self, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> None:
        self.dimension = dimension
        self.calls: list[list[str]] = []

    def get_embedding(self, text: str) -> np.ndarray:
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return (embedding / np.linalg.norm(embedding)).astype(np.float32)

    def embed(self, texts: list[str]) -> list[np.ndarray]:
        self.calls.append(list(texts))
        return [self.get_embedding(text) for text in texts]


class FakeChatStream:
    """Stand-in for an OpenAI chat completion stream."""

    def __init__(self, contents: list[str | None]) -> None:
        self.contents = contents
        self.closed = False

    def __iter__(self):  # noqa: ANN204
        for content in self.contents:
            if content == "<no-choices>":
                yield Mock(choices=[])
            else:
                yield Mock(choices=[Mock(delta=Mock(content=content))])

    def close(self) -> None:
        self.closed = True


class FakeGenerator:
    """Generator adapter replaying scripted fragments."""

    def __init__(
        self, fragments: list[str] | None = None, error: Exception | None = None
    ) -> None:
        self.fragments = list(fragments or [])
        self.error = error
        self.calls: list[tuple[str, list[ChatMessage], str]] = []

    def stream_completion(
        self, system_prompt: str, history: list[ChatMessage], user_message: str
    ):  # noqa: ANN201
        self.calls.append((system_prompt, list(history), user_message))
        return self._replay()

    def _replay(self):  # noqa: ANN202
        yield from self.fragments
        if self.error is not None:
            raise self.error


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response."""  # noqa: DOC201
    mock_response = Mock()
    mock_response.data = [
        Mock(embedding=emb, index=i) for i, emb in enumerate(embeddings)
    ]
    return mock_response


def make_transcript(sentence_count: int) -> str:
    """Join numbered five-word sentences into one transcript."""  # noqa: DOC201
    return " ".join(
        f"Sentence number {i} is here." for i in range(sentence_count)
    )


@pytest.fixture
def openai_embeddings_api_mock():
    """Patch the OpenAI embeddings.create method."""
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


@pytest.fixture
def openai_embeddings_factory(openai_embeddings_api_mock):
    """Factory for OpenAI embeddings API mocks with different scenarios."""

    def _create_mock(  # noqa: ANN202
        scenario="batch_success",
        embeddings=None,
        error_message="API Error",
    ):
        """Create a mock based on scenario type.

        Args:
            scenario: One of 'batch_success', 'short_batch' (fewer vectors
                than inputs) or 'error'.
            embeddings: Custom embeddings to return, or None for defaults
            error_message: Custom error message for the error scenario
        """
        openai_embeddings_api_mock.reset_mock()
        openai_embeddings_api_mock.side_effect = None
        openai_embeddings_api_mock.return_value = None

        if scenario == "batch_success":
            mock_embeddings = embeddings or [
                [0.1, 0.2, 0.3],
                [0.4, 0.5, 0.6],
                [0.7, 0.8, 0.9],
            ]
            openai_embeddings_api_mock.return_value = create_mock_openai_response(
                mock_embeddings
            )
        elif scenario == "short_batch":
            openai_embeddings_api_mock.return_value = create_mock_openai_response(
                embeddings or [[0.1, 0.2, 0.3]]
            )
        elif scenario == "error":
            openai_embeddings_api_mock.side_effect = Exception(error_message)
        else:
            msg = f"Unknown scenario: {scenario}"
            raise ValueError(msg)

        return openai_embeddings_api_mock

    return _create_mock


@pytest.fixture
def embedding_service_factory():
    """Factory for creating EmbeddingService instances with a test API key."""

    def _create_service(api_key=None, model=None):  # noqa: ANN202
        api_key = api_key or TestConstants.TEST_API_KEY
        if model is not None:
            return EmbeddingService(api_key=api_key, model=model)
        return EmbeddingService(api_key=api_key)

    return _create_service


@pytest.fixture
def embedding_service(embedding_service_factory):
    return embedding_service_factory()


@pytest.fixture
def mock_embedding_service():
    return MockEmbeddingService()


@pytest.fixture
def word_counter():
    return WordTokenCounter()


@pytest.fixture
def chunker_factory(word_counter):
    """Factory for chunkers that count tokens as words."""

    def _create_chunker(
        chunk_size_tokens: int = 500, overlap_tokens: int = 50
    ) -> TranscriptChunker:
        return TranscriptChunker(
            chunk_size_tokens=chunk_size_tokens,
            overlap_tokens=overlap_tokens,
            token_counter=word_counter,
        )

    return _create_chunker


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "tutorrag.db"


@pytest.fixture
def session_store(db_path):
    return SQLiteSessionStore(db_path)


@pytest.fixture
def vector_store(db_path):
    return SQLiteVectorStore(db_path)


@pytest.fixture
def history_store(db_path):
    return SQLiteHistoryStore(db_path)


@pytest.fixture
def pipeline_factory(
    session_store, vector_store, mock_embedding_service, chunker_factory
):
    """Factory for ingestion pipelines over temporary stores."""

    def _create_pipeline(
        chunk_size_tokens: int = TestConstants.SMALL_CHUNK_SIZE,
        overlap_tokens: int = TestConstants.SMALL_CHUNK_OVERLAP,
        **overrides,
    ) -> IngestionPipeline:
        collaborators = {
            "session_store": session_store,
            "vector_store": vector_store,
            "embedding_service": mock_embedding_service,
            "chunker": chunker_factory(chunk_size_tokens, overlap_tokens),
        }
        collaborators.update(overrides)
        return IngestionPipeline(**collaborators)

    return _create_pipeline


@pytest.fixture
def chunk_count(db_path):
    """Count the chunk rows stored for a student, or for everyone."""

    def _count(student_id: str | None = None) -> int:
        query = "SELECT COUNT(*) FROM session_embeddings"
        params: tuple[str, ...] = ()
        if student_id is not None:
            query += " WHERE student_id = ?"
            params = (student_id,)
        with closing(sqlite3.connect(db_path)) as conn:
            return conn.execute(query, params).fetchone()[0]

    return _count


@pytest.fixture
def retrieval_engine(vector_store, mock_embedding_service):
    return RetrievalEngine(
        vector_store=vector_store, embedding_service=mock_embedding_service
    )


@pytest.fixture
def store_chunks(session_store, vector_store, mock_embedding_service):
    """Store chunk texts for a student under a fresh session.

    Returns the created session.
    """

    def _store(
        student_id: str,
        texts: list[str],
        session_date: str = TestConstants.SESSION_DATE,
    ):  # noqa: ANN202
        session = session_store.create_session(
            student_id=student_id,
            transcript=" ".join(texts),
            session_date=session_date,
        )
        vector_store.insert([
            EmbeddingRecord(
                session_id=session.id,
                student_id=student_id,
                chunk_text=text,
                embedding=mock_embedding_service.get_embedding(text),
                chunk_index=i,
            )
            for i, text in enumerate(texts)
        ])
        return session

    return _store


@pytest.fixture
def transcript_factory():
    """Factory for transcripts of numbered five-word sentences."""
    return make_transcript


@pytest.fixture
def fake_generator_factory():
    """Factory for chat generators replaying scripted fragments."""

    def _create_generator(
        fragments: list[str] | None = None, error: Exception | None = None
    ) -> FakeGenerator:
        return FakeGenerator(fragments, error)

    return _create_generator


@pytest.fixture
def chat_stream_factory():
    """Factory for fake OpenAI chat completion streams."""
    return FakeChatStream
