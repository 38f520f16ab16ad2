"""JavaScript language profile (also the base of the TypeScript profile)."""

from __future__ import annotations

import os
import re
from typing import List, Pattern, Tuple

from ..models import ExtractedFunction
from .base import (
    LanguageProfile,
    NOT_FOUND,
    dedupe,
    find_definition_line,
    find_member_line,
    first_existing,
    is_live,
    iter_blocks,
    within,
)

_IMPORT_RE = re.compile(
    r"""\b(?P<kw>import)\s+(?:[\w*${}\s,]+?\s+from\s+)?["'](?P<esm>[^"'\n]+)["']"""
    r"""|\b(?P<kw2>export)\s+(?:\*\s+as\s+[\w$]+|\*|\{[^}]*\})\s+from\s+["'](?P<reexport>[^"'\n]+)["']"""
    r"""|\b(?P<kw3>require)\s*\(\s*["'](?P<require>[^"'\n]+)["']\s*\)"""
    r"""|\b(?P<kw4>import)\s*\(\s*["'](?P<dynamic>[^"'\n]+)["']\s*\)"""
)
_SPEC_GROUPS = (("kw", "esm"), ("kw2", "reexport"), ("kw3", "require"), ("kw4", "dynamic"))

_CLASS_RE = re.compile(r"\bclass\s+([A-Za-z_$][\w$]*)")
_METHOD_MODIFIERS = r"(?:(?:static|async|get|set)\s+)*"


class JavaScriptProfile(LanguageProfile):
    name = "javascript"
    extensions: Tuple[str, ...] = ("", ".js", ".jsx", ".ts", ".tsx")
    builtins = frozenset({
        "console.log", "parseInt", "parseFloat", "setTimeout", "setInterval",
        "clearTimeout", "clearInterval", "encodeURI", "decodeURI",
        "encodeURIComponent", "decodeURIComponent", "isNaN", "isFinite", "eval",
        "alert", "confirm", "prompt", "Math.abs", "Math.ceil", "Math.floor",
        "Math.max", "Math.min", "Math.random", "Math.round", "JSON.parse",
        "JSON.stringify", "Object.keys", "Object.values", "Object.entries",
        "Array.isArray", "Date.now",
    })
    keywords = LanguageProfile.keywords | frozenset({
        "require", "import", "super", "async", "await", "void", "delete", "in",
        "of", "instanceof", "yield", "throw", "new",
    })

    function_patterns: Tuple[Pattern[str], ...] = (
        re.compile(r"\b(?:async\s+)?function\s*\*?\s*([A-Za-z_$][\w$]*)\s*\("),
        re.compile(
            r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*(?:async\s+)?"
            r"(?:function\b\s*\*?\s*[\w$]*\s*\("
            r"|\([^()]*\)\s*=>\s*(?=\{)"
            r"|[A-Za-z_$][\w$]*\s*=>\s*(?=\{))"
        ),
    )
    method_pattern: Pattern[str] = re.compile(
        rf"^[ \t]*{_METHOD_MODIFIERS}\*?\s*([A-Za-z_$#][\w$]*)\s*\(",
        re.MULTILINE,
    )

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def extract_imports(self, content: str) -> List[str]:
        masked = self.mask(content)
        imports = []
        for m in _IMPORT_RE.finditer(content):
            for kw, group in _SPEC_GROUPS:
                if m.group(group) is not None:
                    if is_live(masked, m.start(kw)):
                        imports.append(m.group(group))
                    break
        return dedupe(imports)

    def _probe(self, target: str) -> str:
        candidates = [target + ext for ext in self.extensions]
        candidates += [os.path.join(target, "index" + ext) for ext in self.extensions if ext]
        return first_existing(c for c in candidates if os.path.isfile(c))

    def resolve_import_path(self, import_path: str, current_file: str, base_path: str) -> str:
        if import_path.startswith("."):
            return self._probe(os.path.normpath(os.path.join(os.path.dirname(current_file), import_path)))
        if import_path.startswith("/"):
            return self._probe(os.path.join(base_path, import_path.lstrip("/")))
        # Bare specifiers are registry packages unless the path exists locally.
        return self._probe(os.path.join(base_path, import_path))

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def extract_functions(self, content: str) -> List[ExtractedFunction]:
        masked = self.mask(content)
        found: List[Tuple[int, ExtractedFunction]] = []

        class_spans = []
        for cm, open_idx, close_idx in iter_blocks(masked, _CLASS_RE):
            class_spans.append((cm.start(), close_idx))
            class_name = cm.group(1)
            for mm, m_open, m_close in iter_blocks(masked, self.method_pattern, open_idx + 1, close_idx):
                method = mm.group(1)
                if method in self.keywords:
                    continue
                found.append((mm.start(), ExtractedFunction(
                    name=f"{class_name}.{method}",
                    body=content[m_open:m_close + 1],
                )))

        for pattern in self.function_patterns:
            for fm, f_open, f_close in iter_blocks(masked, pattern):
                if within(fm.start(), class_spans):
                    continue
                found.append((fm.start(), ExtractedFunction(
                    name=fm.group(1),
                    body=content[f_open:f_close + 1],
                )))

        found.sort(key=lambda item: item[0])
        return [fn for _, fn in found]

    def _member_pattern(self, name: str) -> Pattern[str]:
        return re.compile(
            rf"^[ \t]*{_METHOD_MODIFIERS}\*?\s*(?P<name>{re.escape(name)})\s*(?:<[^>]*>\s*)?\(",
            re.MULTILINE,
        )

    def _declaration_patterns(self, name: str) -> List[Pattern[str]]:
        n = re.escape(name)
        return [
            re.compile(rf"\bfunction\s*\*?\s*(?P<name>{n})\s*(?:<[^>]*>\s*)?\("),
            re.compile(rf"\b(?:const|let|var)\s+(?P<name>{n})\b\s*[:=]"),
        ]

    def get_function_line_number(self, content: str, function_name: str) -> int:
        masked = self.mask(content)
        owner, _, name = function_name.rpartition(".")
        if not name:
            return NOT_FOUND
        if owner:
            container = re.compile(rf"\bclass\s+{re.escape(owner)}\b")
            return find_member_line(masked, container, self._member_pattern(name))

        lines = [
            line for line in (find_definition_line(masked, p) for p in self._declaration_patterns(name))
            if line != NOT_FOUND
        ]
        if lines:
            return min(lines)
        return find_member_line(masked, _CLASS_RE, self._member_pattern(name))
