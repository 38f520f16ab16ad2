"""In-memory embedding store with cosine-similarity search.

Records are kept in a dict keyed by id and guarded by a reader/writer
lock, so searches run concurrently while writes are exclusive.  The whole
store can be snapshotted to a single JSON document.

Record layout:

========= ============== =====================================
Field     Type           Description
========= ============== =====================================
id        str            ``<collection_id>:<file path>_<chunk>``
content   str            Chunk text
metadata  dict[str, str] collection_id, file_name, file_path, ...
vector    list[float]    Embedding vector
========= ============== =====================================
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .embeddings import cosine_similarity
from .locks import ReadWriteLock
from .models import EmbeddingRecord

logger = logging.getLogger(__name__)

STORE_VERSION = 1


class EmbeddingNotFoundError(KeyError):
    """No record exists with the requested id."""


class EmbeddingStore:
    """Thread-safe embedding store."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._records: Dict[str, EmbeddingRecord] = {}

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def store_embedding(
        self,
        id: str,
        vector: List[float],
        content: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Insert or replace the record *id*."""
        record = EmbeddingRecord(
            id=id,
            content=content,
            metadata=dict(metadata or {}),
            vector=list(vector),
        )
        with self._lock.write_lock():
            self._records[id] = record

    def delete_embedding(self, id: str) -> None:
        with self._lock.write_lock():
            if id not in self._records:
                raise EmbeddingNotFoundError(id)
            del self._records[id]

    def clear(self) -> None:
        with self._lock.write_lock():
            self._records.clear()

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get_embedding(self, id: str) -> EmbeddingRecord:
        with self._lock.read_lock():
            record = self._records.get(id)
        if record is None:
            raise EmbeddingNotFoundError(id)
        return _copy(record)

    def list_embeddings(self) -> List[EmbeddingRecord]:
        with self._lock.read_lock():
            return [_copy(r) for r in self._records.values()]

    def count(self) -> int:
        with self._lock.read_lock():
            return len(self._records)

    def search_embeddings(
        self,
        query_vector: List[float],
        filter: Optional[Mapping[str, str]] = None,
        limit: int = 0,
        min_relevance: float = 0.0,
    ) -> List[EmbeddingRecord]:
        """Rank records by cosine similarity to *query_vector*.

        Args:
            filter: Every key/value must equal the record's metadata.
            limit: Maximum results; ``0`` or less means no limit.
            min_relevance: Records scoring below this are dropped.

        Returns:
            Copies of the matching records with ``score`` set, best first
            (ties broken by id).
        """
        with self._lock.read_lock():
            scored = []
            for record in self._records.values():
                if filter and any(record.metadata.get(k) != v for k, v in filter.items()):
                    continue
                score = cosine_similarity(query_vector, record.vector)
                if score < min_relevance:
                    continue
                hit = _copy(record)
                hit.score = score
                scored.append(hit)

        scored.sort(key=lambda r: (-r.score, r.id))
        if limit > 0:
            scored = scored[:limit]
        return scored

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_to_file(self, path: str) -> None:
        with self._lock.read_lock():
            data = {
                "version": STORE_VERSION,
                "embeddings": [r.to_dict() for r in self._records.values()],
            }
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(data), encoding="utf-8")
        logger.info("Saved %d embeddings to %s", len(data["embeddings"]), target)

    def load_from_file(self, path: str) -> None:
        """Replace the store contents with the snapshot at *path*."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        records = {}
        for item in data.get("embeddings", []):
            record = EmbeddingRecord.from_dict(item)
            records[record.id] = record
        with self._lock.write_lock():
            self._records = records
        logger.info("Loaded %d embeddings from %s", len(records), path)


def _copy(record: EmbeddingRecord) -> EmbeddingRecord:
    return EmbeddingRecord(
        id=record.id,
        content=record.content,
        metadata=dict(record.metadata),
        vector=list(record.vector),
        score=record.score,
    )
