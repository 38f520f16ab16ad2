"""Embedding providers for code chunks and search queries.

Supported models (configure via ``codemap config set model <key>``):

========== ====================================== ====== ======================
Key        HuggingFace Model                      Dim    Notes
========== ====================================== ====== ======================
jina-code  jinaai/jina-embeddings-v2-base-code     768   Good quality, code-aware
bge-base   BAAI/bge-base-en-v1.5                   768   Solid general-purpose
minilm     sentence-transformers/all-MiniLM-L6-v2  384   Tiny and fast
hash       (none)                                  256   No ML, keyword-level only
========== ====================================== ====== ======================

Transformer models need the optional ``embeddings`` extra
(``torch`` + ``transformers``); weights are cached under
``~/.codemap/models``.
"""

from __future__ import annotations

import logging
import math
import re
from abc import ABC, abstractmethod
from hashlib import blake2b
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import BASE_DIR, DEFAULT_EMBEDDING_DIM, DEFAULT_EMBEDDING_MODEL

logger = logging.getLogger(__name__)

MODEL_CACHE_DIR: Path = BASE_DIR / "models"

_TOKEN_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


# ===================================================================
# Model Registry
# ===================================================================

EMBEDDING_MODELS: Dict[str, Dict[str, Any]] = {
    "jina-code": {
        "hf_id": "jinaai/jina-embeddings-v2-base-code",
        "dim": 768,
        "max_tokens": 8192,
        "pooling": "mean",
        "trust_remote_code": True,
    },
    "bge-base": {
        "hf_id": "BAAI/bge-base-en-v1.5",
        "dim": 768,
        "max_tokens": 512,
        "pooling": "cls",
        "trust_remote_code": False,
    },
    "minilm": {
        "hf_id": "sentence-transformers/all-MiniLM-L6-v2",
        "dim": 384,
        "max_tokens": 256,
        "pooling": "mean",
        "trust_remote_code": False,
    },
    "hash": {
        "hf_id": None,
        "dim": DEFAULT_EMBEDDING_DIM,
        "max_tokens": None,
        "pooling": None,
        "trust_remote_code": False,
    },
}


# ===================================================================
# Embedder interface
# ===================================================================

class Embedder(ABC):
    """Turns texts into fixed-length float vectors."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Length of every vector this embedder returns."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Identifier of the underlying model."""

    @abstractmethod
    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed *texts*, returning one vector per input in order."""

    def batch_embed(self, texts: List[str], batch_size: int = 16) -> List[List[float]]:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        vectors: List[List[float]] = []
        for i in range(0, len(texts), batch_size):
            vectors.extend(self.embed(texts[i : i + batch_size]))
        return vectors

    def embed_text(self, text: str) -> List[float]:
        return self.embed([text])[0]


# ===================================================================
# HashEmbedder  (Zero-dependency default)
# ===================================================================

class HashEmbedder(Embedder):
    """Deterministic token-hashing embedder, no ML dependencies.

    Provides keyword-level similarity only: texts sharing identifiers
    score higher than texts that do not.
    """

    def __init__(self, dim: int = DEFAULT_EMBEDDING_DIM) -> None:
        self.dim = dim

    @property
    def dimensions(self) -> int:
        return self.dim

    @property
    def model(self) -> str:
        return "hash"

    def _embed_one(self, text: str) -> List[float]:
        vec = [0.0] * self.dim
        tokens = _TOKEN_RE.findall(text.lower())
        if not tokens:
            return vec
        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "big") % self.dim
            sign = 1.0 if (digest[4] & 1) == 0 else -1.0
            vec[idx] += sign
        return _l2_normalize(vec)

    def embed(self, texts: List[str]) -> List[List[float]]:
        return [self._embed_one(text) for text in texts]


# ===================================================================
# TransformerEmbedder  (HuggingFace models)
# ===================================================================

class TransformerEmbedder(Embedder):
    """HuggingFace embedding engine with configurable pooling.

    - **mean**: mean over non-padding tokens (Jina, MiniLM).
    - **cls**: ``[CLS]`` first token (BGE).

    The model is loaded on first use.
    """

    def __init__(
        self,
        model_key: str,
        cache_dir: Optional[Path] = None,
        device: str = "cpu",
    ) -> None:
        spec = EMBEDDING_MODELS.get(model_key)
        if spec is None or spec["hf_id"] is None:
            raise ValueError(
                f"Unknown transformer model: '{model_key}'. "
                f"Available: {', '.join(k for k, v in EMBEDDING_MODELS.items() if v['hf_id'])}"
            )
        self.model_key = model_key
        self.hf_id: str = spec["hf_id"]
        self.dim: int = spec["dim"]
        self.max_length: int = spec["max_tokens"]
        self.pooling: str = spec["pooling"]
        self.trust_remote_code: bool = spec["trust_remote_code"]
        self.cache_dir = cache_dir or MODEL_CACHE_DIR
        self.device = device
        self._model: Any = None
        self._tokenizer: Any = None

    @property
    def dimensions(self) -> int:
        return self.dim

    @property
    def model(self) -> str:
        return self.hf_id

    def _load_model(self) -> None:
        if self._model is not None:
            return

        try:
            from transformers import AutoModel, AutoTokenizer
        except ImportError as exc:
            raise ImportError(
                "torch and transformers are required for neural embeddings.\n"
                "Install with:  pip install codemap-cli[embeddings]"
            ) from exc

        logger.info("Loading embedding model '%s' (%s)", self.model_key, self.hf_id)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        try:
            self._tokenizer = AutoTokenizer.from_pretrained(
                self.hf_id,
                cache_dir=str(self.cache_dir),
                trust_remote_code=self.trust_remote_code,
            )
            self._model = AutoModel.from_pretrained(
                self.hf_id,
                cache_dir=str(self.cache_dir),
                trust_remote_code=self.trust_remote_code,
            )
            self._model.eval()
            self._model.to(self.device)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to load embedding model '{self.model_key}' ({self.hf_id}): {exc}"
            ) from exc

    def _pool(self, last_hidden_states: Any, attention_mask: Any) -> Any:
        if self.pooling == "cls":
            return last_hidden_states[:, 0]
        if self.pooling == "mean":
            mask = attention_mask.unsqueeze(-1).expand(last_hidden_states.size()).float()
            return (last_hidden_states * mask).sum(dim=1) / mask.sum(dim=1).clamp(min=1e-9)
        raise ValueError(f"Unknown pooling strategy: {self.pooling}")

    def embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        self._load_model()

        import torch
        import torch.nn.functional as F

        batch_dict = self._tokenizer(
            texts,
            max_length=self.max_length,
            padding=True,
            truncation=True,
            return_tensors="pt",
        )
        batch_dict = {k: v.to(self.device) for k, v in batch_dict.items()}
        with torch.no_grad():
            outputs = self._model(**batch_dict)
        embeddings = self._pool(outputs.last_hidden_state, batch_dict["attention_mask"])
        embeddings = F.normalize(embeddings, p=2, dim=1)
        return embeddings.cpu().tolist()


# ===================================================================
# Factory
# ===================================================================

def get_embedder(
    model_key: Optional[str] = None,
    cache_dir: Optional[Path] = None,
    device: str = "cpu",
) -> Embedder:
    """Return the embedder for *model_key* (default: ``hash``).

    Raises:
        ValueError: *model_key* is not in :data:`EMBEDDING_MODELS`.
    """
    model_key = model_key or DEFAULT_EMBEDDING_MODEL
    spec = EMBEDDING_MODELS.get(model_key)
    if spec is None:
        raise ValueError(
            f"Unknown embedding model: '{model_key}'. "
            f"Available: {', '.join(EMBEDDING_MODELS)}"
        )
    if spec["hf_id"] is None:
        return HashEmbedder(dim=spec["dim"])
    return TransformerEmbedder(model_key=model_key, cache_dir=cache_dir, device=device)


# ===================================================================
# Utility
# ===================================================================

def cosine_similarity(vec_a: List[float], vec_b: List[float]) -> float:
    """Cosine similarity between two vectors.

    Returns a value in ``[-1, 1]``.  Empty, mismatched or zero-norm
    vectors return ``0.0``.
    """
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0
    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    sq_a = sum(a * a for a in vec_a)
    sq_b = sum(b * b for b in vec_b)
    if sq_a < 1e-24 or sq_b < 1e-24:
        return 0.0
    # sqrt(x * x) == x exactly, so identical vectors score exactly 1.
    return max(-1.0, min(1.0, dot / math.sqrt(sq_a * sq_b)))


def _l2_normalize(vec: List[float]) -> List[float]:
    """L2-normalise *vec*.  A zero vector is returned unchanged."""
    norm = math.sqrt(sum(v * v for v in vec))
    if norm < 1e-12:
        return vec
    return [v / norm for v in vec]
