"""CodeMap: multi-language dependency analysis and semantic code search."""

__version__ = "0.3.0"

from .analyzer import DependencyAnalyzer
from .service import CodeMapService
from .vector_store import EmbeddingStore

__all__ = ["CodeMapService", "DependencyAnalyzer", "EmbeddingStore", "__version__"]
