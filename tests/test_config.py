"""Tests for TOML-backed settings."""

from pathlib import Path

import toml

from codemap_cli import config
from codemap_cli.config_manager import (
    CodeMapSettings,
    load_full_config,
    load_settings,
    save_settings,
    set_value,
)


class TestLoadSettings:
    """Tests for reading settings."""

    def test_defaults_without_file(self):
        settings = load_settings()
        assert settings == CodeMapSettings()
        assert settings.chunk_size == config.DEFAULT_CHUNK_SIZE
        assert settings.embedding_model == "hash"

    def test_values_are_coerced(self, temp_dir: Path):
        path = temp_dir / "config.toml"
        path.write_text(
            '[codemap]\n'
            'chunk_size = "1024"\n'
            'min_relevance = 0\n'
            'strict = "yes"\n'
            'max_workers = 4\n'
            'unknown_key = 1\n'
            '\n'
            '[embeddings]\n'
            'model = "bge-base"\n'
        )

        settings = load_settings(path)

        assert settings.chunk_size == 1024
        assert settings.min_relevance == 0.0
        assert settings.strict is True
        assert settings.max_workers == 4
        assert settings.embedding_model == "bge-base"

    def test_invalid_value_keeps_default(self, temp_dir: Path):
        path = temp_dir / "config.toml"
        path.write_text('[codemap]\nchunk_overlap = "many"\n')
        assert load_settings(path).chunk_overlap == config.DEFAULT_CHUNK_OVERLAP

    def test_unreadable_file_is_ignored(self, temp_dir: Path):
        path = temp_dir / "config.toml"
        path.write_text("this is = = not toml [")
        assert load_full_config(path) == {}
        assert load_settings(path) == CodeMapSettings()


class TestSaveSettings:
    """Tests for writing settings."""

    def test_round_trip_preserves_other_sections(self, temp_dir: Path):
        path = temp_dir / "config.toml"
        path.write_text('[extra]\nkeep = true\n')

        save_settings(CodeMapSettings(chunk_size=512, strict=True), path)

        raw = toml.load(path)
        assert raw["extra"] == {"keep": True}
        assert raw["codemap"]["chunk_size"] == 512
        assert "max_workers" not in raw["codemap"]
        assert load_settings(path).strict is True

    def test_set_value(self, temp_dir: Path):
        path = temp_dir / "config.toml"

        set_value("function_max_depth", "7", path)
        set_value("model", "jina-code", path)

        settings = load_settings(path)
        assert settings.function_max_depth == 7
        assert settings.embedding_model == "jina-code"

    def test_clearing_max_workers(self, temp_dir: Path):
        path = temp_dir / "config.toml"
        set_value("max_workers", "8", path)
        set_value("max_workers", "0", path)

        assert load_settings(path).max_workers is None
        assert "max_workers" not in toml.load(path)["codemap"]

    def test_default_path_follows_home(self, codemap_home: Path):
        set_value("strict", "true")
        assert (codemap_home / "config.toml").exists()
