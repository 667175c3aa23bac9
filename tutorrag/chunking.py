"""Sentence-aware, token-bounded chunking of tutoring transcripts."""

import re

from .config import config
from .models import TranscriptChunk
from .tokenizer import TiktokenCounter, TokenCounter

logger = config.get_logger(__name__)

# A sentence runs up to and including its terminal punctuation; whatever trails
# the last terminator is kept as a final unit.
SENTENCE_PATTERN = re.compile(r"[^.!?]+(?:[.!?]+|$)|[.!?]+")


def split_sentences(text: str) -> list[str]:
    """Split text into stripped, non-blank sentence-like units.

    Returns:
        Units in their original order. Text without terminal punctuation is a
        single unit; blank input gives an empty list.
    """
    units = (match.group().strip() for match in SENTENCE_PATTERN.finditer(text))
    return [unit for unit in units if unit]


class TranscriptChunker:
    """Packs sentences into overlapping chunks bounded by a token budget."""

    def __init__(
        self,
        chunk_size_tokens: int | None = None,
        overlap_tokens: int | None = None,
        token_counter: TokenCounter | None = None,
    ) -> None:
        """Initialize the chunker.

        Args:
            chunk_size_tokens: Soft token budget per chunk. If None, uses
                config.CHUNK_SIZE_TOKENS.
            overlap_tokens: Maximum tokens carried from one chunk into the
                next. If None, uses config.CHUNK_OVERLAP_TOKENS.
            token_counter: Counter used to size sentences. Defaults to a
                tiktoken counter with the configured encoding.
        """
        self.chunk_size_tokens = (
            config.CHUNK_SIZE_TOKENS if chunk_size_tokens is None else chunk_size_tokens
        )
        self.overlap_tokens = (
            config.CHUNK_OVERLAP_TOKENS if overlap_tokens is None else overlap_tokens
        )
        self.token_counter = token_counter or TiktokenCounter()

    def chunk(
        self,
        text: str,
        chunk_size_tokens: int | None = None,
        overlap_tokens: int | None = None,
    ) -> list[TranscriptChunk]:
        """Split text into ordered, overlapping chunks.

        The budget is soft: a chunk may overshoot it by the last sentence added
        before it was sealed. Sentences are never split or dropped, and each new
        chunk starts with the overlap carried from the one before.

        Returns:
            Chunks with contiguous indices starting at 0, or an empty list for
            blank text.

        Raises:
            ValueError: If the budget is not positive or the overlap is negative.
        """
        size = (
            self.chunk_size_tokens if chunk_size_tokens is None else chunk_size_tokens
        )
        overlap = self.overlap_tokens if overlap_tokens is None else overlap_tokens
        if size <= 0:
            msg = f"chunk_size_tokens must be positive, got {size}"
            raise ValueError(msg)
        if overlap < 0:
            msg = f"overlap_tokens must not be negative, got {overlap}"
            raise ValueError(msg)

        chunks: list[TranscriptChunk] = []
        buffer: list[tuple[str, int]] = []
        buffer_tokens = 0

        for sentence in split_sentences(text):
            sentence_tokens = self.token_counter.count(sentence)

            if buffer and buffer_tokens + sentence_tokens > size:
                chunks.append(self._seal(buffer, buffer_tokens, len(chunks)))
                buffer = self._overlap_seed(buffer, overlap)
                buffer_tokens = sum(tokens for _, tokens in buffer)

            buffer.append((sentence, sentence_tokens))
            buffer_tokens += sentence_tokens

        if buffer:
            chunks.append(self._seal(buffer, buffer_tokens, len(chunks)))

        logger.info("Transcript split into %d chunks", len(chunks))
        return chunks

    @staticmethod
    def _seal(
        buffer: list[tuple[str, int]], buffer_tokens: int, index: int
    ) -> TranscriptChunk:
        text = " ".join(sentence for sentence, _ in buffer).strip()
        return TranscriptChunk(text=text, index=index, token_count=buffer_tokens)

    @staticmethod
    def _overlap_seed(
        buffer: list[tuple[str, int]], overlap: int
    ) -> list[tuple[str, int]]:
        """Longest suffix of the sealed buffer that fits in the overlap budget.

        Returns:
            Units in original order; empty when the last unit alone is too big.
        """
        seed: list[tuple[str, int]] = []
        seed_tokens = 0
        for sentence, tokens in reversed(buffer):
            if seed_tokens + tokens > overlap:
                break
            seed.insert(0, (sentence, tokens))
            seed_tokens += tokens
        return seed


def chunk_text(
    text: str,
    chunk_size_tokens: int = 500,
    overlap_tokens: int = 50,
    token_counter: TokenCounter | None = None,
) -> list[TranscriptChunk]:
    """Chunk a transcript with a one-off chunker.

    Returns:
        The ordered chunks of ``text``.
    """
    chunker = TranscriptChunker(
        chunk_size_tokens=chunk_size_tokens,
        overlap_tokens=overlap_tokens,
        token_counter=token_counter,
    )
    return chunker.chunk(text)
