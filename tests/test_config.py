"""Tests for the environment-driven Config class."""

import logging
import os
from importlib import reload
from pathlib import Path
from unittest.mock import patch

import pytest

from tutorrag import config as config_module
from tutorrag.config import Config


@pytest.fixture(autouse=True)
def restore_config_module():
    yield
    reload(config_module)


def test_get_openai_api_key_from_env():
    with patch.dict(os.environ, {"OPENAI_API_KEY": "test-api-key"}):
        assert Config.get_openai_api_key() == "test-api-key"


def test_get_openai_api_key_empty_when_not_set():
    with patch.dict(os.environ, {}, clear=True):
        assert not Config.get_openai_api_key()


def test_validate_success_with_api_key():
    with patch.object(Config, "get_openai_api_key", return_value="test-key"):
        Config.validate()


def test_validate_fails_without_api_key():
    with (
        patch.object(Config, "get_openai_api_key", return_value=""),
        pytest.raises(ValueError, match="OPENAI_API_KEY is required"),
    ):
        Config.validate()


@pytest.mark.parametrize(
    ("size", "overlap", "match"),
    [
        (0, 0, "CHUNK_SIZE_TOKENS must be positive"),
        (500, -1, "CHUNK_OVERLAP_TOKENS must not be negative"),
    ],
)
def test_validate_rejects_bad_chunking(size, overlap, match):
    with (
        patch.object(Config, "get_openai_api_key", return_value="test-key"),
        patch.object(Config, "CHUNK_SIZE_TOKENS", size),
        patch.object(Config, "CHUNK_OVERLAP_TOKENS", overlap),
        pytest.raises(ValueError, match=match),
    ):
        Config.validate()


@pytest.mark.parametrize("overlap", [500, 600])
def test_validate_accepts_overlap_not_below_size(overlap):
    with (
        patch.object(Config, "get_openai_api_key", return_value="test-key"),
        patch.object(Config, "CHUNK_SIZE_TOKENS", 500),
        patch.object(Config, "CHUNK_OVERLAP_TOKENS", overlap),
    ):
        Config.validate()


@pytest.mark.parametrize(
    ("env_var", "default_value", "test_value", "expected_type"),
    [
        ("LOG_LEVEL", "INFO", "debug", str),
        ("OPENAI_LOG_LEVEL", "WARNING", "error", str),
        ("ENVIRONMENT", "development", "production", str),
        ("EMBEDDING_MODEL", "text-embedding-3-small", "text-embedding-3-large", str),
        ("TOKENIZER_ENCODING", "cl100k_base", "o200k_base", str),
        ("CHAT_MODEL", "gpt-4o-mini", "gpt-4o", str),
        ("CHUNK_SIZE_TOKENS", 500, "300", int),
        ("CHUNK_OVERLAP_TOKENS", 50, "20", int),
        ("CHAT_MAX_TOKENS", 800, "1000", int),
        ("CHAT_TEMPERATURE", 0.7, "0.2", float),
        ("RETRIEVAL_TOP_K", 3, "5", int),
        ("HISTORY_CONTEXT_LIMIT", 10, "6", int),
        ("HISTORY_DISPLAY_LIMIT", 50, "20", int),
        ("STREAM_QUEUE_SIZE", 64, "8", int),
    ],
)
def test_config_loading_from_env(env_var, default_value, test_value, expected_type):
    with patch.dict(os.environ, {}, clear=True):
        reload(config_module)
        actual_default = getattr(config_module.Config, env_var)
        if env_var in {"LOG_LEVEL", "OPENAI_LOG_LEVEL"}:
            assert actual_default == default_value.upper()
        else:
            assert actual_default == default_value

    with patch.dict(os.environ, {env_var: test_value}):
        reload(config_module)
        actual_value = getattr(config_module.Config, env_var)
        if expected_type is int:
            expected = int(test_value)
        elif expected_type is float:
            expected = float(test_value)
        elif env_var in {"LOG_LEVEL", "OPENAI_LOG_LEVEL"}:
            expected = test_value.upper()
        else:
            expected = test_value
        assert actual_value == expected


@pytest.mark.parametrize(
    ("env_value", "expected"),
    [
        (None, True),
        ("true", True),
        ("1", True),
        ("On", True),
        ("false", False),
        ("0", False),
        ("no", False),
    ],
)
def test_degrade_on_search_error_flag(env_value, expected):
    env = {} if env_value is None else {"DEGRADE_ON_SEARCH_ERROR": env_value}
    with patch.dict(os.environ, env, clear=True):
        reload(config_module)
        assert config_module.Config.DEGRADE_ON_SEARCH_ERROR is expected


def test_database_path_from_env():
    with patch.dict(os.environ, {}, clear=True):
        reload(config_module)
        assert config_module.Config.DATABASE_PATH == Path("data/tutorrag.db")

    with patch.dict(os.environ, {"DATABASE_PATH": "/custom/path/tutor.db"}):
        reload(config_module)
        assert config_module.Config.DATABASE_PATH == Path("/custom/path/tutor.db")


def test_openai_base_url_from_env():
    with patch.dict(os.environ, {"OPENAI_BASE_URL": "https://custom.openai.com"}):
        reload(config_module)
        assert config_module.Config.OPENAI_BASE_URL == "https://custom.openai.com"


@pytest.mark.parametrize(
    ("env_value", "is_dev"),
    [
        ("development", True),
        ("DEVELOPMENT", True),
        ("production", False),
        ("staging", False),
    ],
)
def test_environment_detection(env_value, is_dev):
    with patch.object(Config, "ENVIRONMENT", env_value):
        assert Config.is_development() == is_dev


@pytest.mark.parametrize(
    ("log_level", "openai_level", "expected_level", "expected_openai_level"),
    [
        ("INFO", "WARNING", logging.INFO, logging.WARNING),
        ("DEBUG", "ERROR", logging.DEBUG, logging.ERROR),
        ("INVALID", "INVALID", logging.INFO, logging.WARNING),
    ],
)
def test_setup_logging_levels(
    log_level, openai_level, expected_level, expected_openai_level
):
    """Verify logging setup respects overrides and falls back on invalid values."""
    with (
        patch.object(Config, "LOG_LEVEL", log_level),
        patch.object(Config, "OPENAI_LOG_LEVEL", openai_level),
        patch("tutorrag.config.logging.basicConfig") as mock_basic,
        patch("tutorrag.config.logging.getLogger") as mock_get_logger,
    ):
        mock_logger = mock_get_logger.return_value

        Config.setup_logging()

        mock_basic.assert_called_once_with(
            level=expected_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        assert [c.args for c in mock_get_logger.call_args_list] == [
            ("openai",),
            ("httpx",),
        ]
        mock_logger.setLevel.assert_called_with(expected_openai_level)


def test_get_logger():
    with patch("tutorrag.config.logging.getLogger") as mock_get_logger:
        result = Config.get_logger("test.module")

        mock_get_logger.assert_called_once_with("test.module")
        assert result == mock_get_logger.return_value


@pytest.mark.parametrize(
    ("user_agent", "expected"),
    [("TutorRAG/1.0", {"User-Agent": "TutorRAG/1.0"}), ("", {})],
)
def test_api_headers(user_agent, expected):
    with patch.object(Config, "API_USER_AGENT", user_agent):
        assert Config.get_api_headers() == expected


@pytest.mark.parametrize(
    ("env_var", "invalid_value", "error_match"),
    [
        ("CHUNK_SIZE_TOKENS", "not_a_number", "invalid literal for int"),
        ("CHAT_TEMPERATURE", "not_a_float", "could not convert string to float"),
    ],
)
def test_type_conversion_errors(env_var, invalid_value, error_match):
    with (
        patch.dict(os.environ, {env_var: invalid_value}),
        pytest.raises(ValueError, match=error_match),
    ):
        reload(config_module)


def test_no_dotenv_loading_when_missing():
    with (
        patch.object(Path, "exists", return_value=False),
        patch("tutorrag.config.load_dotenv") as mock_load,
    ):
        reload(config_module)

        mock_load.assert_not_called()
