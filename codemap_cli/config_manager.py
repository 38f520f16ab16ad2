"""Configuration manager for CodeMap using TOML files.

The config file lives at ``~/.codemap/config.toml`` (or under
``$CODEMAP_HOME``) and has two sections::

    [codemap]
    chunk_size = 4096
    chunk_overlap = 128
    min_relevance = 0.3
    max_workers = 8
    strict = false

    [embeddings]
    model = "hash"

Missing keys fall back to the defaults in :mod:`codemap_cli.config`.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from . import config

logger = logging.getLogger(__name__)


@dataclass
class CodeMapSettings:
    chunk_size: int = config.DEFAULT_CHUNK_SIZE
    chunk_overlap: int = config.DEFAULT_CHUNK_OVERLAP
    encoding: str = config.DEFAULT_ENCODING
    min_relevance: float = config.DEFAULT_MIN_RELEVANCE
    max_workers: Optional[int] = None
    file_max_depth: int = config.FILE_TREE_MAX_DEPTH
    function_max_depth: int = config.FUNCTION_TREE_MAX_DEPTH
    strict: bool = False
    log_level: str = "WARNING"
    embedding_model: str = config.DEFAULT_EMBEDDING_MODEL


_CODEMAP_KEYS = {f.name for f in fields(CodeMapSettings)} - {"embedding_model"}


def _config_path(path: Optional[Path]) -> Path:
    return path if path is not None else config.CONFIG_FILE


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    cfg_path = _config_path(path)
    if not cfg_path.exists():
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", cfg_path, exc)
        return {}


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw TOML/CLI value to the type of the matching settings field."""
    default = getattr(CodeMapSettings, name, None)
    if name == "max_workers":
        return int(value) if value not in (None, "", 0, "0") else None
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


def load_settings(path: Optional[Path] = None) -> CodeMapSettings:
    """Build :class:`CodeMapSettings` from the config file.

    Unknown keys are ignored and values that cannot be converted keep
    their defaults.
    """
    raw = load_full_config(path)
    settings = CodeMapSettings()

    section = raw.get("codemap", {})
    for key, value in section.items():
        if key not in _CODEMAP_KEYS:
            logger.debug("Unknown [codemap] key '%s' ignored", key)
            continue
        try:
            setattr(settings, key, _coerce(key, value))
        except (TypeError, ValueError):
            logger.warning("Invalid value for [codemap].%s: %r", key, value)

    model = raw.get("embeddings", {}).get("model")
    if model:
        settings.embedding_model = str(model)
    return settings


def save_settings(settings: CodeMapSettings, path: Optional[Path] = None) -> Path:
    """Write *settings* to the config file, preserving other sections."""
    cfg_path = _config_path(path)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    full = load_full_config(cfg_path)

    data = asdict(settings)
    model = data.pop("embedding_model")
    full["codemap"] = {**full.get("codemap", {}), **data}
    # An unset worker count is omitted from the file.
    if full["codemap"].get("max_workers") is None:
        full["codemap"].pop("max_workers", None)
    full["embeddings"] = {**full.get("embeddings", {}), "model": model}

    with open(cfg_path, "w", encoding="utf-8") as f:
        toml.dump(full, f)
    return cfg_path


def set_value(key: str, value: str, path: Optional[Path] = None) -> CodeMapSettings:
    """Update a single setting by name and persist it."""
    name = "embedding_model" if key in ("model", "embedding_model") else key
    if name not in _CODEMAP_KEYS and name != "embedding_model":
        raise ValueError(f"Unknown setting: '{key}'")
    settings = load_settings(path)
    setattr(settings, name, _coerce(name, value))
    save_settings(settings, path)
    return settings
