"""Python language profile.

Functions are located by indentation rather than braces.  Only defs that
sit at module level or directly inside (possibly nested) classes are
reported; a def nested in another def is part of its parent's body.
"""

from __future__ import annotations

import os
import re
from typing import Iterator, List, Tuple

from ..models import ExtractedFunction
from .base import LanguageProfile, NOT_FOUND, dedupe, first_existing

_NOISE_RE = re.compile(
    r'"""[\s\S]*?"""'
    r"|'''[\s\S]*?'''"
    r'|"(?:\\.|[^"\\\n])*"'
    r"|'(?:\\.|[^'\\\n])*'"
    r"|#[^\n]*"
)

_IMPORT_RE = re.compile(
    r"^[ \t]*(?:from[ \t]+(?P<module>\.*[\w.]*)[ \t]+import[ \t]+(?P<names>\([^)]*\)|[^\n]+)"
    r"|import[ \t]+(?P<plain>[^\n]+))",
    re.MULTILINE,
)
_DEF_RE = re.compile(r"^([ \t]*)(?:async[ \t]+)?def[ \t]+(\w+)")
_CLASS_RE = re.compile(r"^([ \t]*)class[ \t]+(\w+)")


def _indent(line: str) -> int:
    expanded = line.expandtabs(4)
    return len(expanded) - len(expanded.lstrip())


def _split_names(raw: str) -> List[str]:
    names = []
    for part in raw.strip().strip("()").replace("\\", " ").split(","):
        name = part.strip().split(" as ")[0].strip()
        if name and name != "*":
            names.append(name)
    return names


class PythonProfile(LanguageProfile):
    name = "python"
    noise_pattern = _NOISE_RE
    builtins = frozenset({
        "print", "len", "range", "enumerate", "zip", "map", "filter", "sorted",
        "reversed", "list", "dict", "set", "tuple", "str", "int", "float", "bool",
        "sum", "min", "max", "abs", "all", "any", "open", "input", "super",
    })
    keywords = frozenset({
        "if", "elif", "while", "for", "return", "not", "and", "or", "in", "is",
        "assert", "lambda", "yield", "except", "with", "del", "await", "raise",
    })
    declaration_words = frozenset({"def", "class"})

    def extract_imports(self, content: str) -> List[str]:
        masked = self.mask(content)
        imports = []
        for m in _IMPORT_RE.finditer(masked):
            if m.group("plain") is not None:
                imports.extend(_split_names(m.group("plain")))
                continue
            module = m.group("module")
            if module.strip("."):
                imports.append(module)
            else:
                # `from . import a, b` names sibling modules.
                imports.extend(module + name for name in _split_names(m.group("names")))
        return dedupe(imports)

    def resolve_import_path(self, import_path: str, current_file: str, base_path: str) -> str:
        module = import_path.lstrip(".")
        dots = len(import_path) - len(module)
        rel = module.replace(".", os.sep)

        if dots:
            anchor = os.path.dirname(current_file)
            for _ in range(dots - 1):
                anchor = os.path.dirname(anchor)
            roots = [anchor]
        else:
            roots = [base_path, os.path.join(base_path, "src")]

        candidates = []
        for root in roots:
            target = os.path.join(root, rel) if rel else root
            candidates.append(target + ".py")
            candidates.append(os.path.join(target, "__init__.py"))
        return first_existing(c for c in candidates if os.path.isfile(c))

    def _iter_defs(self, content: str) -> Iterator[Tuple[str, int, int]]:
        """Yield ``(qualified_name, start_line_idx, end_line_idx)`` per def."""
        masked = self.mask(content).split("\n")
        classes: List[Tuple[int, str]] = []
        i = 0
        while i < len(masked):
            line = masked[i]
            if not line.strip():
                i += 1
                continue
            indent = _indent(line)
            while classes and indent <= classes[-1][0]:
                classes.pop()

            cm = _CLASS_RE.match(line)
            if cm:
                classes.append((indent, cm.group(2)))
                i += 1
                continue

            dm = _DEF_RE.match(line)
            if dm:
                end = i + 1
                while end < len(masked):
                    nxt = masked[end]
                    if nxt.strip() and _indent(nxt) <= indent:
                        break
                    end += 1
                yield ".".join([name for _, name in classes] + [dm.group(2)]), i, end
                i = end
                continue
            i += 1

    def extract_functions(self, content: str) -> List[ExtractedFunction]:
        lines = content.split("\n")
        return [
            ExtractedFunction(name=name, body="\n".join(lines[start:end]).rstrip())
            for name, start, end in self._iter_defs(content)
        ]

    def get_function_line_number(self, content: str, function_name: str) -> int:
        fallback = NOT_FOUND
        short = function_name.rsplit(".", 1)[-1]
        for name, start, _ in self._iter_defs(content):
            if name == function_name:
                return start + 1
            if fallback == NOT_FOUND and name.rsplit(".", 1)[-1] == short:
                fallback = start + 1
        return fallback
