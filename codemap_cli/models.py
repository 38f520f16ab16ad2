"""Core data models shared by the analyzer, the vector store and the indexer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FileInfo:
    path: str
    extension: str
    language: str


@dataclass(frozen=True)
class ExtractedFunction:
    """A function as returned by a language profile, before analysis."""

    name: str
    body: str


@dataclass(frozen=True)
class FunctionInfo:
    name: str
    full_name: str
    file_path: str
    line_number: int
    calls: List[str] = field(default_factory=list)
    body: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "full_name": self.full_name,
            "file_path": self.file_path,
            "line_number": self.line_number,
            "calls": list(self.calls),
            "body": self.body,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FunctionInfo":
        return cls(
            name=data["name"],
            full_name=data["full_name"],
            file_path=data["file_path"],
            line_number=int(data["line_number"]),
            calls=list(data.get("calls", [])),
            body=data.get("body", ""),
        )


class NodeType(str, Enum):
    FILE = "file"
    FUNCTION = "function"


@dataclass
class DependencyFunction:
    name: str
    line_number: int


@dataclass
class DependencyTree:
    """One node of a file or function dependency tree.

    ``functions`` is only populated for file nodes that were expanded.
    A node flagged ``is_cyclic`` already appears higher up on its own
    root-to-leaf path and is never expanded.
    """

    node_type: NodeType
    name: str
    full_path: str
    line_number: int = 0
    is_cyclic: bool = False
    children: List["DependencyTree"] = field(default_factory=list)
    functions: List[DependencyFunction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_type": self.node_type.value,
            "name": self.name,
            "full_path": self.full_path,
            "line_number": self.line_number,
            "is_cyclic": self.is_cyclic,
            "children": [child.to_dict() for child in self.children],
            "functions": [
                {"name": fn.name, "line_number": fn.line_number} for fn in self.functions
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DependencyTree":
        return cls(
            node_type=NodeType(data["node_type"]),
            name=data["name"],
            full_path=data["full_path"],
            line_number=int(data.get("line_number", 0)),
            is_cyclic=bool(data.get("is_cyclic", False)),
            children=[cls.from_dict(child) for child in data.get("children") or []],
            functions=[
                DependencyFunction(name=fn["name"], line_number=int(fn["line_number"]))
                for fn in data.get("functions") or []
            ],
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: str) -> "DependencyTree":
        return cls.from_dict(json.loads(payload))

    def walk(self):
        """Yield every node of the tree, depth first, root included."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class EmbeddingRecord:
    id: str
    content: str
    metadata: Dict[str, str]
    vector: List[float]
    score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "metadata": dict(self.metadata),
            "vector": list(self.vector),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmbeddingRecord":
        return cls(
            id=data["id"],
            content=data.get("content", ""),
            metadata={str(k): str(v) for k, v in (data.get("metadata") or {}).items()},
            vector=[float(v) for v in data.get("vector") or []],
        )


@dataclass
class SearchResult:
    id: str
    code: str
    description: str
    relevance: float
    file_path: str = ""
    references: Optional[DependencyTree] = None
