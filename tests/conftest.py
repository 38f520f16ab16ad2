"""Pytest configuration and fixtures for CodeMap CLI tests."""

import re
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, List

import pytest

from codemap_cli.embeddings import Embedder, HashEmbedder


class FailingEmbedder(Embedder):
    """Embedder that fails on any text containing ``trigger``."""

    def __init__(self, trigger: str = "explode") -> None:
        self.trigger = trigger
        self.inner = HashEmbedder(dim=32)

    @property
    def dimensions(self) -> int:
        return 32

    @property
    def model(self) -> str:
        return "failing"

    def embed(self, texts: List[str]) -> List[List[float]]:
        if any(self.trigger in text for text in texts):
            raise RuntimeError("model crashed")
        return self.inner.embed(texts)


class _WordEncoding:
    """Offline stand-in for a tiktoken encoding.

    Every run of non-whitespace and every run of whitespace is one token,
    so decoding a slice of tokens gives back the exact source text.
    """

    _PIECE_RE = re.compile(r"\S+|\s+")

    def __init__(self) -> None:
        self._ids: Dict[str, int] = {}
        self._pieces: List[str] = []

    def encode(self, text: str, disallowed_special=()) -> List[int]:
        tokens = []
        for piece in self._PIECE_RE.findall(text):
            if piece not in self._ids:
                self._ids[piece] = len(self._pieces)
                self._pieces.append(piece)
            tokens.append(self._ids[piece])
        return tokens

    def decode(self, tokens: List[int]) -> str:
        return "".join(self._pieces[t] for t in tokens)


@pytest.fixture(autouse=True)
def _offline_encoding(monkeypatch):
    """Replace the tiktoken loader so tests never download BPE files."""
    encoding = _WordEncoding()
    monkeypatch.setattr("codemap_cli.chunker._load_encoding", lambda name: encoding)
    return encoding


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture(autouse=True)
def codemap_home(temp_dir: Path, monkeypatch) -> Path:
    """Point config and state storage at a throwaway directory."""
    home = temp_dir / ".codemap-home"
    monkeypatch.setattr("codemap_cli.config.BASE_DIR", home)
    monkeypatch.setattr("codemap_cli.config.STATE_DIR", home / "state")
    monkeypatch.setattr("codemap_cli.config.CONFIG_FILE", home / "config.toml")
    return home


@pytest.fixture
def sample_repo_path() -> Path:
    """Path to the multi-language sample repository."""
    return Path(__file__).parent / "fixtures" / "sample_repo"


@pytest.fixture
def failing_embedder() -> FailingEmbedder:
    """Embedder that raises for texts mentioning ``explode``."""
    return FailingEmbedder()


@pytest.fixture
def make_repo(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Return a helper that writes ``{relative path: content}`` under a fresh root."""

    def _make(files: Dict[str, str]) -> Path:
        root = temp_dir / "repo"
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        root.mkdir(parents=True, exist_ok=True)
        return root

    return _make
