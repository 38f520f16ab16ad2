"""Tests for CodeIndexer."""

import json
from pathlib import Path

import pytest

from codemap_cli.analyzer import DependencyAnalyzer
from codemap_cli.chunker import TokenSplitter
from codemap_cli.embeddings import HashEmbedder
from codemap_cli.indexer import CodeIndexer, EmbeddingError, chunk_id
from codemap_cli.models import NodeType
from codemap_cli.vector_store import EmbeddingStore


def _indexer(root: Path, embedder=None, splitter=None) -> CodeIndexer:
    return CodeIndexer(
        embedder or HashEmbedder(),
        DependencyAnalyzer(str(root)),
        EmbeddingStore(),
        splitter,
    )


class TestIndexCodeFile:
    """Tests for indexing single files."""

    def test_stores_chunks_with_metadata(self, sample_repo_path: Path):
        indexer = _indexer(sample_repo_path)
        path = str(sample_repo_path / "app" / "service.py")

        assert indexer.index_code_file(path, "shop") == 1

        record = indexer.store.get_embedding(chunk_id("shop", path, 0))
        assert record.id == f"shop:{path}_0"
        assert record.content == Path(path).read_text()
        assert record.metadata["collection_id"] == "shop"
        assert record.metadata["file_name"] == "service.py"
        assert record.metadata["file_path"] == path
        assert record.metadata["language"] == "python"

        tree = json.loads(record.metadata["dependencies"])
        assert tree["node_type"] == NodeType.FILE.value
        assert [child["name"] for child in tree["children"]] == ["repository.py"]

    def test_relative_path_is_under_base_path(self, sample_repo_path: Path, temp_dir: Path, monkeypatch):
        monkeypatch.chdir(temp_dir)
        indexer = _indexer(sample_repo_path)
        path = str(sample_repo_path / "app" / "service.py")

        assert indexer.index_code_file("app/service.py", "shop") == 1

        record = indexer.store.get_embedding(chunk_id("shop", path, 0))
        assert record.metadata["file_path"] == path
        tree = json.loads(record.metadata["dependencies"])
        assert tree["full_path"] == path
        assert [child["name"] for child in tree["children"]] == ["repository.py"]

    def test_every_chunk_shares_metadata(self, make_repo):
        root = make_repo({"long.py": "x = 1\n" * 10})
        indexer = _indexer(root, splitter=TokenSplitter(chunk_size=8, chunk_overlap=2))
        path = str(root / "long.py")

        count = indexer.index_code_file(path, "c")

        assert count > 1
        records = [indexer.store.get_embedding(chunk_id("c", path, i)) for i in range(count)]
        assert len({r.metadata["dependencies"] for r in records}) == 1

    def test_empty_file_has_no_chunks(self, sample_repo_path: Path):
        indexer = _indexer(sample_repo_path)
        assert indexer.index_code_file(str(sample_repo_path / "app" / "__init__.py"), "c") == 0
        assert indexer.store.count() == 0

    def test_missing_file(self, temp_dir: Path):
        indexer = _indexer(temp_dir)
        with pytest.raises(FileNotFoundError):
            indexer.index_code_file(str(temp_dir / "ghost.go"), "c")

    def test_embedding_failure(self, make_repo, failing_embedder):
        root = make_repo({"bad.py": "def explode():\n    pass\n"})
        indexer = _indexer(root, embedder=failing_embedder)

        with pytest.raises(EmbeddingError, match="model crashed"):
            indexer.index_code_file(str(root / "bad.py"), "c")

    def test_skipped_after_load(self, sample_repo_path: Path, temp_dir: Path):
        indexer = _indexer(sample_repo_path)
        state = temp_dir / "analyzer.json"
        indexer.save_to_file(str(state))

        fresh = _indexer(sample_repo_path)
        fresh.load_from_file(str(state))

        assert fresh.inited
        assert fresh.index_code_file(str(sample_repo_path / "main.go"), "c") == 0
        assert fresh.store.count() == 0


class TestSearchCode:
    """Tests for semantic search over indexed chunks."""

    def test_query_equal_to_content_scores_one(self, sample_repo_path: Path):
        indexer = _indexer(sample_repo_path)
        path = sample_repo_path / "store" / "store.go"
        indexer.index_code_file(str(path), "shop")
        indexer.index_code_file(str(sample_repo_path / "web" / "format.js"), "shop")

        results = indexer.search_code(path.read_text(), "shop", limit=5, min_relevance=0.0)

        top = results[0]
        assert top.relevance == pytest.approx(1.0)
        assert top.file_path == str(path)
        assert top.code == path.read_text()
        assert top.description == "Code from store.go (language: go)"
        assert top.references is not None
        assert top.references.name == "store.go"

    def test_results_limited_to_collection(self, sample_repo_path: Path):
        indexer = _indexer(sample_repo_path)
        path = str(sample_repo_path / "app" / "repository.py")
        indexer.index_code_file(path, "one")
        indexer.index_code_file(path, "two")

        results = indexer.search_code("load orders", "two", limit=10, min_relevance=-1.0)

        assert [r.id for r in results] == [chunk_id("two", path, 0)]

    def test_min_relevance_filters_everything(self, sample_repo_path: Path):
        indexer = _indexer(sample_repo_path)
        indexer.index_code_file(str(sample_repo_path / "web" / "index.js"), "c")
        assert indexer.search_code("completely unrelated words", "c", min_relevance=1.1) == []

    def test_bad_dependency_json_is_ignored(self, sample_repo_path: Path):
        indexer = _indexer(sample_repo_path)
        vector = indexer.embedder.embed_text("render")
        indexer.store.store_embedding(
            "c:x_0", vector, "render", {"collection_id": "c", "file_path": "x.js", "dependencies": "{not json"},
        )

        (result,) = indexer.search_code("render", "c", min_relevance=0.0)

        assert result.references is None
        assert result.description == "Code from x.js (language: unknown)"

    def test_query_embedding_failure(self, sample_repo_path: Path, failing_embedder):
        indexer = _indexer(sample_repo_path, embedder=failing_embedder)
        with pytest.raises(EmbeddingError):
            indexer.search_code("please explode", "c")
