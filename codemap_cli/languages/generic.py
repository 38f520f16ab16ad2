"""Fallback profile for languages without a dedicated one (Ruby, PHP, ...)."""

from __future__ import annotations

import os
import re
from typing import List

from ..models import ExtractedFunction
from .base import C_STYLE_NOISE, LanguageProfile, NOT_FOUND, dedupe, first_existing, is_live, line_of

_NOISE_RE = re.compile(C_STYLE_NOISE.pattern + r"|(?<![\w$])#(?!include)[^\n]*", re.DOTALL)

_IMPORT_RES = (
    re.compile(r'^[ \t]*#[ \t]*include[ \t]*[<"]([^>"\n]+)[>"]', re.MULTILINE),
    re.compile(
        r"""^[ \t]*(?:require|require_relative|require_once|include|include_once|load)\b"""
        r"""\s*\(?\s*["']([^"'\n]+)["']""",
        re.MULTILINE,
    ),
    re.compile(r"^[ \t]*(?:import|using|use)\s+([\w.\\/:]+)", re.MULTILINE),
)
_FUNCTION_RE = re.compile(
    r"^[ \t]*(?:(?:public|private|protected|static|async|export)\s+)*"
    r"(?:def|function|func|fn|sub|proc)\s+(?:self\.)?([\w.?!]+)",
    re.MULTILINE,
)


class GenericProfile(LanguageProfile):
    name = "generic"
    noise_pattern = _NOISE_RE
    keywords = LanguageProfile.keywords | frozenset({
        "def", "end", "elsif", "unless", "until", "foreach", "isset", "empty",
        "array", "list", "echo", "require", "require_once", "include",
    })
    declaration_words = frozenset({"def", "function", "func", "fn", "sub", "proc"})

    def extract_imports(self, content: str) -> List[str]:
        masked = self.mask(content)
        found = []
        for pattern in _IMPORT_RES:
            for m in pattern.finditer(content):
                keyword = m.start() + len(m.group(0)) - len(m.group(0).lstrip())
                if is_live(masked, keyword):
                    found.append((m.start(), m.group(1)))
        found.sort()
        return dedupe(spec.rstrip(";") for _, spec in found)

    def resolve_import_path(self, import_path: str, current_file: str, base_path: str) -> str:
        rel = import_path.replace("\\", "/").lstrip("/")
        ext = os.path.splitext(current_file)[1]
        candidates = []
        for root in (os.path.dirname(current_file), base_path):
            target = os.path.join(root, rel)
            candidates.append(target)
            if ext and not target.endswith(ext):
                candidates.append(target + ext)
        return first_existing(c for c in candidates if os.path.isfile(c))

    def extract_functions(self, content: str) -> List[ExtractedFunction]:
        # Bodies run from one declaration to the next; block syntax varies too
        # much across languages to match it reliably.
        masked = self.mask(content)
        matches = list(_FUNCTION_RE.finditer(masked))
        functions = []
        for i, m in enumerate(matches):
            end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
            functions.append(ExtractedFunction(name=m.group(1), body=content[m.start():end].rstrip()))
        return functions

    def get_function_line_number(self, content: str, function_name: str) -> int:
        masked = self.mask(content)
        for m in _FUNCTION_RE.finditer(masked):
            if m.group(1) == function_name:
                return line_of(masked, m.start(1))
        return NOT_FOUND
