"""Configuration paths and defaults for local CodeMap state."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("CODEMAP_HOME", str(Path.home() / ".codemap"))).expanduser()
STATE_DIR = BASE_DIR / "state"
CONFIG_FILE = BASE_DIR / "config.toml"

# Token-aware chunking (matches the common 4k-token embedding input window)
DEFAULT_CHUNK_SIZE = 4096
DEFAULT_CHUNK_OVERLAP = 128
DEFAULT_ENCODING = "cl100k_base"

DEFAULT_MIN_RELEVANCE = 0.3
DEFAULT_SEARCH_LIMIT = 5
FILE_TREE_MAX_DEPTH = 10
FUNCTION_TREE_MAX_DEPTH = 20

DEFAULT_EMBEDDING_MODEL = "hash"
DEFAULT_EMBEDDING_DIM = 256

SUPPORTED_EXTENSIONS = frozenset({
    ".go", ".py", ".js", ".jsx", ".ts", ".tsx", ".java",
    ".c", ".cpp", ".h", ".hpp", ".cs", ".rb", ".php",
})

SKIP_DIRS = frozenset({
    "vendor", "node_modules", "__pycache__", "venv", ".venv", "site-packages",
})

ANALYZER_STATE_FILE = "analyzer.json"
VECTOR_STATE_FILE = "vectors.json"


def default_max_workers() -> int:
    """Worker count for file scanning when none is configured."""
    return min(32, (os.cpu_count() or 1) + 4)


def ensure_base_dirs() -> None:
    """Create base directories for local storage if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
    STATE_DIR.mkdir(parents=True, exist_ok=True)
