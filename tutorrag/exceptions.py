"""Exception types raised by the transcript retrieval pipeline."""


class TutorRAGError(Exception):
    """Base class for failures surfaced to ingestion and chat callers."""


class PersistenceError(TutorRAGError):
    """A write to the session, vector or history store failed."""


class EmbeddingError(TutorRAGError):
    """The embedding API failed or returned a mismatched batch."""


class SearchError(TutorRAGError):
    """Query embedding or the scoped nearest-neighbour lookup failed."""


class GenerationError(TutorRAGError):
    """The chat completion stream failed before it was exhausted."""
