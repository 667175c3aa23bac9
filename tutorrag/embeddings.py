"""OpenAI embeddings service."""

import numpy as np
from openai import OpenAI

from .config import config
from .exceptions import EmbeddingError

logger = config.get_logger(__name__)


class EmbeddingService:
    """Maps ordered batches of text to embedding vectors."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        """Initialize the EmbeddingService with OpenAI API key and model.

        Args:
            api_key: OpenAI API key. If None,
                reads from OPENAI_API_KEY environment variable.
            model: Embedding model name. If None, uses config.EMBEDDING_MODEL.
        """
        api_key = api_key or config.get_openai_api_key()
        default_headers = config.get_api_headers()
        self.client = OpenAI(
            api_key=api_key,
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
        )
        self.model = model or config.EMBEDDING_MODEL

    def embed(self, texts: list[str]) -> list[np.ndarray]:
        """Embed a batch of texts in a single API call.

        Args:
            texts: Input texts, in the order their vectors must come back.

        Returns:
            One vector per input text, where ``result[i]`` answers ``texts[i]``.

        Raises:
            EmbeddingError: If the API call fails or returns a different number
                of vectors than texts were sent.
        """
        if not texts:
            return []

        try:
            response = self.client.embeddings.create(
                model=self.model,
                input=list(texts),
            )
        except Exception as exc:
            logger.exception("Error generating embeddings for %d texts", len(texts))
            msg = f"Embedding request failed: {exc}"
            raise EmbeddingError(msg) from exc

        ordered = sorted(response.data, key=lambda data: data.index)
        embeddings = [np.asarray(data.embedding, dtype=np.float32) for data in ordered]
        if len(embeddings) != len(texts):
            msg = (
                f"Embedding API returned {len(embeddings)} vectors "
                f"for {len(texts)} texts"
            )
            raise EmbeddingError(msg)

        logger.info("Generated %d embeddings with %s", len(embeddings), self.model)
        return embeddings
