"""Token-window text splitting backed by ``tiktoken``."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, List

import tiktoken

from .config import DEFAULT_CHUNK_OVERLAP, DEFAULT_CHUNK_SIZE, DEFAULT_ENCODING

logger = logging.getLogger(__name__)


@lru_cache(maxsize=4)
def _load_encoding(name: str) -> Any:
    return tiktoken.get_encoding(name)


class TokenSplitter:
    """Split text into overlapping windows of at most ``chunk_size`` tokens.

    Consecutive chunks share ``chunk_overlap`` tokens.  Empty input yields
    no chunks; input that fits in one window yields exactly one.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        encoding_name: str = DEFAULT_ENCODING,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap must be in [0, chunk_size), got {chunk_overlap} (chunk_size={chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.encoding_name = encoding_name

    def count_tokens(self, text: str) -> int:
        return len(_load_encoding(self.encoding_name).encode(text, disallowed_special=()))

    def split_text(self, text: str) -> List[str]:
        if not text:
            return []
        encoding = _load_encoding(self.encoding_name)
        tokens = encoding.encode(text, disallowed_special=())

        chunks: List[str] = []
        step = self.chunk_size - self.chunk_overlap
        start = 0
        while start < len(tokens):
            window = tokens[start : start + self.chunk_size]
            chunks.append(encoding.decode(window))
            if start + self.chunk_size >= len(tokens):
                break
            start += step

        logger.debug("Split %d tokens into %d chunk(s)", len(tokens), len(chunks))
        return chunks
