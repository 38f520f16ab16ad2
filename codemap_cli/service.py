"""High-level facade used by the CLI and by task-queue workers."""

from __future__ import annotations

import logging
import os
import threading
from typing import List, Optional, Sequence, Tuple

from .analyzer import DependencyAnalyzer, discover_source_files
from .chunker import TokenSplitter
from .config import DEFAULT_SEARCH_LIMIT
from .config_manager import CodeMapSettings
from .embeddings import Embedder, get_embedder
from .indexer import CodeIndexer
from .languages import SUPPORTED_LANGUAGES
from .models import DependencyTree, SearchResult
from .vector_store import EmbeddingStore

logger = logging.getLogger(__name__)


class IndexingError(RuntimeError):
    """Some files could not be indexed; the rest were."""

    def __init__(self, failures: Sequence[Tuple[str, BaseException]]):
        self.failures = list(failures)
        preview = "; ".join(f"{path}: {exc}" for path, exc in self.failures[:5])
        super().__init__(f"{len(self.failures)} file(s) failed to index: {preview}")


class CodeMapService:
    """Indexes one repository and serves search and dependency queries."""

    def __init__(
        self,
        base_path: str,
        embedder: Optional[Embedder] = None,
        settings: Optional[CodeMapSettings] = None,
    ) -> None:
        self.settings = settings or CodeMapSettings()
        self.analyzer = DependencyAnalyzer(
            base_path,
            max_workers=self.settings.max_workers,
            strict=self.settings.strict,
            file_max_depth=self.settings.file_max_depth,
            function_max_depth=self.settings.function_max_depth,
        )
        self.store = EmbeddingStore()
        self.embedder = embedder or get_embedder(self.settings.embedding_model)
        self.indexer = CodeIndexer(
            self.embedder,
            self.analyzer,
            self.store,
            TokenSplitter(
                chunk_size=self.settings.chunk_size,
                chunk_overlap=self.settings.chunk_overlap,
                encoding_name=self.settings.encoding,
            ),
        )
        self._indexed = False
        self._index_lock = threading.Lock()

    @property
    def base_path(self) -> str:
        return self.analyzer.base_path

    def index_repository(self, root: Optional[str] = None, collection_id: str = "default") -> bool:
        """Index every supported file under *root* (default: the base path).

        Returns False without doing anything when the repository was
        already indexed or its state was loaded.

        Raises:
            IndexingError: after the walk, if any file failed.
        """
        with self._index_lock:
            self.analyzer.initialize()
            if self._indexed or self.indexer.inited:
                return False

            files = discover_source_files(os.path.abspath(root) if root else self.base_path)
            failures: List[Tuple[str, BaseException]] = []
            chunks = 0
            for info in files:
                try:
                    chunks += self.indexer.index_code_file(info.path, collection_id)
                except Exception as exc:
                    logger.warning("Failed to index %s: %s", info.path, exc)
                    failures.append((info.path, exc))

            logger.info(
                "Indexed %d/%d files (%d chunks) into collection '%s'",
                len(files) - len(failures), len(files), chunks, collection_id,
            )
            if failures:
                raise IndexingError(failures)
            self._indexed = True
            return True

    def search_code(
        self,
        query: str,
        collection_id: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
        min_relevance: Optional[float] = None,
    ) -> List[SearchResult]:
        if min_relevance is None:
            min_relevance = self.settings.min_relevance
        return self.indexer.search_code(query, collection_id, limit, min_relevance)

    def analyze_file_dependencies(self, file_path: str) -> DependencyTree:
        return self.analyzer.analyze_file_dependency_tree(file_path)

    def analyze_function_dependencies(self, file_path: str, function_name: str) -> DependencyTree:
        return self.analyzer.analyze_function_dependency_tree(file_path, function_name)

    def load_from_file(self, code_path: Optional[str] = None, vector_path: Optional[str] = None) -> None:
        """Restore analyzer and/or vector state; empty paths are skipped."""
        if code_path:
            self.indexer.load_from_file(code_path)
        if vector_path:
            self.store.load_from_file(vector_path)

    def save_to_file(self, code_path: Optional[str] = None, vector_path: Optional[str] = None) -> None:
        if code_path:
            self.indexer.save_to_file(code_path)
        if vector_path:
            self.store.save_to_file(vector_path)

    @staticmethod
    def get_supported_languages() -> List[str]:
        return list(SUPPORTED_LANGUAGES)
