"""Language profiles and extension-based dispatch."""

from __future__ import annotations

import os
from typing import Dict, List

from .base import NOT_FOUND, LanguageProfile
from .cpp import CppProfile
from .csharp import CSharpProfile
from .generic import GenericProfile
from .go import GoProfile
from .java import JavaProfile
from .javascript import JavaScriptProfile
from .python import PythonProfile
from .typescript import TypeScriptProfile

_GO = GoProfile()
_JAVASCRIPT = JavaScriptProfile()
_TYPESCRIPT = TypeScriptProfile()
_PYTHON = PythonProfile()
_JAVA = JavaProfile()
_CPP = CppProfile()
_CSHARP = CSharpProfile()
_GENERIC = GenericProfile()

PROFILE_BY_EXTENSION: Dict[str, LanguageProfile] = {
    ".go": _GO,
    ".js": _JAVASCRIPT,
    ".jsx": _JAVASCRIPT,
    ".ts": _TYPESCRIPT,
    ".tsx": _TYPESCRIPT,
    ".py": _PYTHON,
    ".java": _JAVA,
    ".c": _CPP,
    ".cpp": _CPP,
    ".h": _CPP,
    ".hpp": _CPP,
    ".cs": _CSHARP,
}

# Language tags attached to indexed chunks.
LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    ".go": "go",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".java": "java",
    ".c": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".h": "cpp_header",
    ".hpp": "cpp_header",
    ".cs": "csharp",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".rs": "rust",
    ".scala": "scala",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".md": "markdown",
    ".markdown": "markdown",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".xml": "xml",
    ".sql": "sql",
    ".sh": "shell",
    ".bash": "shell",
    ".ps1": "powershell",
}

SUPPORTED_LANGUAGES: List[str] = [
    "go", "javascript", "typescript", "python", "java", "c", "cpp", "csharp",
    "ruby", "php", "swift", "kotlin", "rust", "scala",
]


def get_profile_for_file(path: str) -> LanguageProfile:
    """Return the profile for *path*; unknown extensions get the generic one."""
    ext = os.path.splitext(path)[1].lower()
    return PROFILE_BY_EXTENSION.get(ext, _GENERIC)


def language_for_path(path: str) -> str:
    ext = os.path.splitext(path)[1].lower()
    return LANGUAGE_BY_EXTENSION.get(ext, "unknown")


__all__ = [
    "NOT_FOUND",
    "LanguageProfile",
    "LANGUAGE_BY_EXTENSION",
    "PROFILE_BY_EXTENSION",
    "SUPPORTED_LANGUAGES",
    "get_profile_for_file",
    "language_for_path",
]
