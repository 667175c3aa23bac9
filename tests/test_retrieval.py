"""Tests for student-scoped transcript retrieval."""

import sqlite3
from unittest.mock import Mock

import numpy as np
import pytest

from tutorrag import EmbeddingError, RetrievalEngine, SearchError


def test_query_embedded_as_single_element_batch(
    retrieval_engine, mock_embedding_service, store_chunks
):
    store_chunks("student-a", ["Fractions share a denominator."])

    retrieval_engine.search("student-a", "what is a denominator?")

    assert mock_embedding_service.calls == [["what is a denominator?"]]


def test_search_only_returns_own_chunks(retrieval_engine, store_chunks):
    own = store_chunks("student-a", ["Photosynthesis needs light.", "Cells divide."])
    store_chunks("student-b", ["What did we learn about algebra?"])

    results = retrieval_engine.search(
        "student-a", "What did we learn about algebra?", top_k=3
    )

    assert len(results) == 2
    assert {r.session_id for r in results} == {own.id}
    assert "What did we learn about algebra?" not in [r.chunk_text for r in results]


def test_exact_match_ranks_first(retrieval_engine, store_chunks):
    store_chunks(
        "student-a",
        ["Quadratic equations have two roots.", "The mitochondria makes energy."],
        session_date="2024-03-02",
    )

    results = retrieval_engine.search(
        "student-a", "The mitochondria makes energy.", top_k=2
    )

    assert results[0].chunk_text == "The mitochondria makes energy."
    assert results[0].similarity_score == pytest.approx(1.0, abs=1e-5)
    assert results[0].session_date == "2024-03-02"
    assert results[0].similarity_score >= results[1].similarity_score


def test_fewer_chunks_than_top_k_not_padded(retrieval_engine, store_chunks):
    store_chunks("student-a", ["Only one chunk here."])

    assert len(retrieval_engine.search("student-a", "anything", top_k=3)) == 1


def test_student_without_chunks_gets_empty_list(retrieval_engine):
    assert retrieval_engine.search("student-z", "anything") == []


@pytest.mark.parametrize(
    ("student_id", "top_k", "match"),
    [
        ("", 3, "student_id is required"),
        ("student-a", 0, "top_k must be positive"),
    ],
)
def test_invalid_arguments_rejected(retrieval_engine, student_id, top_k, match):
    with pytest.raises(ValueError, match=match):
        retrieval_engine.search(student_id, "query", top_k=top_k)


def test_embedding_failure_raises_search_error(vector_store):
    embedder = Mock()
    embedder.embed.side_effect = EmbeddingError("service down")
    engine = RetrievalEngine(vector_store=vector_store, embedding_service=embedder)

    with pytest.raises(SearchError, match="service down") as exc_info:
        engine.search("student-a", "query")

    assert isinstance(exc_info.value.__cause__, EmbeddingError)


def test_store_failure_raises_search_error(mock_embedding_service):
    store = Mock()
    store.nearest.side_effect = sqlite3.OperationalError("database is locked")
    engine = RetrievalEngine(
        vector_store=store, embedding_service=mock_embedding_service
    )

    with pytest.raises(SearchError, match="database is locked"):
        engine.search("student-a", "query")


def test_store_always_receives_student_scope(mock_embedding_service):
    store = Mock()
    store.nearest.return_value = []
    engine = RetrievalEngine(
        vector_store=store, embedding_service=mock_embedding_service
    )

    engine.search("student-a", "query", top_k=5)

    ((query_embedding,), kwargs) = store.nearest.call_args
    assert kwargs == {"student_id": "student-a", "k": 5}
    np.testing.assert_array_equal(
        query_embedding, mock_embedding_service.get_embedding("query")
    )
