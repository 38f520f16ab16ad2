"""Chunk, embed and store source files; answer semantic code queries."""

from __future__ import annotations

import json
import logging
import os
from typing import List, Optional

from .analyzer import DependencyAnalyzer
from .chunker import TokenSplitter
from .config import DEFAULT_MIN_RELEVANCE, DEFAULT_SEARCH_LIMIT
from .embeddings import Embedder
from .languages import language_for_path
from .models import DependencyTree, SearchResult
from .vector_store import EmbeddingStore

logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """The embedder failed for a chunk or a query."""


def chunk_id(collection_id: str, path: str, index: int) -> str:
    return f"{collection_id}:{path}_{index}"


class CodeIndexer:
    """Glue between the analyzer, the embedder and the embedding store."""

    def __init__(
        self,
        embedder: Embedder,
        analyzer: DependencyAnalyzer,
        store: EmbeddingStore,
        splitter: Optional[TokenSplitter] = None,
    ) -> None:
        self.embedder = embedder
        self.analyzer = analyzer
        self.store = store
        self.splitter = splitter or TokenSplitter()
        # Set once prior state is loaded; indexing is then skipped.
        self.inited = False

    def index_code_file(self, path: str, collection_id: str) -> int:
        """Index one file and return the number of chunks stored.

        Raises:
            FileNotFoundError: *path* does not exist.
            EmbeddingError: the embedder failed for one of the chunks.
        """
        if self.inited:
            return 0
        # Relative paths are under the analyzer's base path.
        path = os.path.normpath(os.path.join(self.analyzer.base_path, path))
        if not os.path.isfile(path):
            raise FileNotFoundError(f"File not found: {path}")

        with open(path, "r", encoding="utf-8", errors="replace") as f:
            content = f.read()

        language = language_for_path(path)
        tree = self.analyzer.analyze_file_dependency_tree(path)
        metadata = {
            "collection_id": collection_id,
            "file_name": os.path.basename(path),
            "file_path": path,
            "language": language,
            "dependencies": tree.to_json(),
        }

        chunks = self.splitter.split_text(content)
        for index, chunk in enumerate(chunks):
            try:
                vector = self.embedder.embed_text(chunk)
            except Exception as exc:
                raise EmbeddingError(f"Failed to embed chunk {index} of {path}: {exc}") from exc
            self.store.store_embedding(chunk_id(collection_id, path, index), vector, chunk, metadata)

        logger.debug("Indexed %s as %d chunk(s)", path, len(chunks))
        return len(chunks)

    def search_code(
        self,
        query: str,
        collection_id: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
        min_relevance: float = DEFAULT_MIN_RELEVANCE,
    ) -> List[SearchResult]:
        try:
            query_vector = self.embedder.embed_text(query)
        except Exception as exc:
            raise EmbeddingError(f"Failed to embed query {query!r}: {exc}") from exc

        records = self.store.search_embeddings(
            query_vector,
            filter={"collection_id": collection_id},
            limit=limit,
            min_relevance=min_relevance,
        )

        results = []
        for record in records:
            file_path = record.metadata.get("file_path", "")
            language = record.metadata.get("language", "unknown")
            references = None
            raw_tree = record.metadata.get("dependencies")
            if raw_tree:
                try:
                    references = DependencyTree.from_json(raw_tree)
                except (ValueError, KeyError, TypeError) as exc:
                    logger.warning("Ignoring undecodable dependency tree on %s: %s", record.id, exc)
            results.append(SearchResult(
                id=record.id,
                code=record.content,
                description=f"Code from {record.metadata.get('file_name', file_path)} (language: {language})",
                relevance=record.score,
                file_path=file_path,
                references=references,
            ))
        return results

    def save_to_file(self, path: str) -> None:
        self.analyzer.save_to_file(path)

    def load_from_file(self, path: str) -> None:
        self.analyzer.load_from_file(path)
        self.inited = True
