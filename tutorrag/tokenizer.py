"""Token counting used to size transcript chunks."""

from functools import cached_property
from typing import Protocol

import tiktoken

from .config import config


class TokenCounter(Protocol):
    """Anything that can count tokens in a text fragment."""

    def count(self, text: str) -> int: ...


class TiktokenCounter:
    """Counts BPE tokens with a tiktoken encoding.

    The encoding is resolved on first use, so constructing the counter never
    touches the network or the tiktoken cache.
    """

    def __init__(self, encoding_name: str | None = None) -> None:
        self.encoding_name = encoding_name or config.TOKENIZER_ENCODING

    @cached_property
    def encoding(self) -> tiktoken.Encoding:
        return tiktoken.get_encoding(self.encoding_name)

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self.encoding.encode(text, disallowed_special=()))
