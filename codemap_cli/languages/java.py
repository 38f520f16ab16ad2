"""Java language profile."""

from __future__ import annotations

import os
import re
from typing import List

from ..models import ExtractedFunction
from .base import (
    LanguageProfile,
    NOT_FOUND,
    dedupe,
    find_definition_line,
    find_member_line,
    first_existing,
    iter_blocks,
)

STATIC_PREFIX = "static:"

_IMPORT_RE = re.compile(r"^[ \t]*import\s+(static\s+)?([\w.]+(?:\.\*)?)\s*;", re.MULTILINE)
_TYPE_RE = re.compile(r"\b(?:class|enum|record|interface)\s+(\w+)")
_METHOD_RE = re.compile(
    r"^[ \t]*(?:@\w+(?:\([^)]*\))?\s+)*"
    r"(?:(?:public|protected|private|static|final|abstract|synchronized|native|default|strictfp)\s+)*"
    r"(?:<[^>]*>\s+)?"
    r"(?:[\w.$<>\[\],? ]+?\s+)?"
    r"(\w+)\s*\(",
    re.MULTILINE,
)

_SOURCE_ROOTS = (("src", "main", "java"), ("src",), ())


class JavaProfile(LanguageProfile):
    name = "java"
    builtins = frozenset({
        "System.out.println", "System.out.print", "System.err.println",
        "System.err.print", "String.format", "Integer.parseInt",
        "Double.parseDouble", "Boolean.parseBoolean", "Math.abs", "Math.min",
        "Math.max", "Math.sqrt", "Math.random", "Arrays.toString",
        "Arrays.asList", "Collections.sort", "equals", "toString", "hashCode",
        "clone", "compareTo", "super", "this",
    })
    keywords = LanguageProfile.keywords | frozenset({"new", "throw", "synchronized", "assert"})

    def extract_imports(self, content: str) -> List[str]:
        masked = self.mask(content)
        return dedupe(
            (STATIC_PREFIX if m.group(1) else "") + m.group(2)
            for m in _IMPORT_RE.finditer(masked)
        )

    def resolve_import_path(self, import_path: str, current_file: str, base_path: str) -> str:
        is_static = import_path.startswith(STATIC_PREFIX)
        if is_static:
            import_path = import_path[len(STATIC_PREFIX):]
        if import_path.startswith(("java.", "javax.")):
            return ""

        wildcard = import_path.endswith(".*")
        if wildcard:
            import_path = import_path[:-2]
        rel = import_path.replace(".", os.sep)

        candidates = []
        for parts in _SOURCE_ROOTS:
            target = os.path.join(base_path, *parts, rel)
            if wildcard:
                candidates.append(target)
            candidates.append(target + ".java")
            if is_static:
                # `import static pkg.Owner.member` lives in Owner.java.
                candidates.append(os.path.dirname(target) + ".java")
        return first_existing(candidates)

    def extract_functions(self, content: str) -> List[ExtractedFunction]:
        masked = self.mask(content)
        functions = []
        for tm, open_idx, close_idx in iter_blocks(masked, _TYPE_RE):
            type_name = tm.group(1)
            for mm, m_open, m_close in iter_blocks(masked, _METHOD_RE, open_idx + 1, close_idx):
                method = mm.group(1)
                if method in self.keywords:
                    continue
                if method == type_name:
                    method = "constructor"
                functions.append(ExtractedFunction(
                    name=f"{type_name}.{method}",
                    body=content[m_open:m_close + 1],
                ))
        return functions

    def get_function_line_number(self, content: str, function_name: str) -> int:
        masked = self.mask(content)
        owner, _, name = function_name.rpartition(".")
        if not name:
            return NOT_FOUND
        if owner and name == "constructor":
            name = owner.rsplit(".", 1)[-1]
        member = re.compile(
            rf"^[ \t]*(?:[\w@<>\[\],.?]+[ \t]+)*(?P<name>{re.escape(name)})\s*\(",
            re.MULTILINE,
        )
        if owner:
            container = re.compile(rf"\b(?:class|enum|record|interface)\s+{re.escape(owner.rsplit('.', 1)[-1])}\b")
            return find_member_line(masked, container, member)
        return find_definition_line(masked, member)
