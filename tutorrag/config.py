"""Configuration management for TutorRAG."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Application configuration loaded from environment variables."""

    # OpenAI Configuration
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Get OpenAI API key from environment variables.

        Returns:
            OpenAI API key from environment or empty string if not set.
        """
        return os.getenv("OPENAI_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Chunking Configuration
    CHUNK_SIZE_TOKENS: int = int(os.getenv("CHUNK_SIZE_TOKENS", "500"))
    CHUNK_OVERLAP_TOKENS: int = int(os.getenv("CHUNK_OVERLAP_TOKENS", "50"))
    TOKENIZER_ENCODING: str = os.getenv("TOKENIZER_ENCODING", "cl100k_base")
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")

    # Chat Model Configuration
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gpt-4o-mini")
    CHAT_MAX_TOKENS: int = int(os.getenv("CHAT_MAX_TOKENS", "800"))
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.7"))

    # Retrieval and Chat Context Configuration
    RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", "3"))
    HISTORY_CONTEXT_LIMIT: int = int(os.getenv("HISTORY_CONTEXT_LIMIT", "10"))
    HISTORY_DISPLAY_LIMIT: int = int(os.getenv("HISTORY_DISPLAY_LIMIT", "50"))
    STREAM_QUEUE_SIZE: int = int(os.getenv("STREAM_QUEUE_SIZE", "64"))
    DEGRADE_ON_SEARCH_ERROR: bool = _env_flag("DEGRADE_ON_SEARCH_ERROR", "true")

    # Storage Configuration
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", "data/tutorrag.db"))

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "TutorRAG/1.0")

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration values.

        Raises:
            ValueError: If OPENAI_API_KEY is not set or chunking values are invalid.
        """
        if not cls.get_openai_api_key():
            msg = (
                "OPENAI_API_KEY is required. Please set it in .env file or environment."
            )
            raise ValueError(msg)
        if cls.CHUNK_SIZE_TOKENS <= 0:
            msg = "CHUNK_SIZE_TOKENS must be positive."
            raise ValueError(msg)
        if cls.CHUNK_OVERLAP_TOKENS < 0:
            msg = "CHUNK_OVERLAP_TOKENS must not be negative."
            raise ValueError(msg)

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment.

        Returns:
            True if environment is development.
        """
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def setup_logging(cls) -> None:
        """Configure logging once at application startup.

        Console output, a simple readable format, and a level taken from
        ``LOG_LEVEL``. The ``openai`` and ``httpx`` loggers follow
        ``OPENAI_LOG_LEVEL``.
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        third_party_level = getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        for name in ("openai", "httpx"):
            logging.getLogger(name).setLevel(third_party_level)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger with the specified name.

        Args:
            name: Logger name (typically __name__)

        Returns:
            Logger instance
        """
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Build default headers for outbound API calls.

        Returns:
            Mapping of header names to values used on outbound HTTP requests.
        """
        headers: dict[str, str] = {}

        if cls.API_USER_AGENT:
            headers["User-Agent"] = cls.API_USER_AGENT

        return headers


config = Config()
