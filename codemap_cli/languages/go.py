"""Go language profile."""

from __future__ import annotations

import os
import re
from functools import lru_cache
from typing import List

from ..models import ExtractedFunction
from .base import LanguageProfile, NOT_FOUND, dedupe, find_definition_line, is_live, iter_blocks

_IMPORT_RE = re.compile(
    r'^[ \t]*(?P<kw>import)[ \t]*(?:\((?P<block>[^)]*)\)|(?:[\w.]+[ \t]+)?"(?P<single>[^"]+)")',
    re.MULTILINE,
)
_BLOCK_SPEC_RE = re.compile(r'(?:[\w.]+[ \t]+)?"([^"]+)"')
_MODULE_RE = re.compile(r"^module\s+(\S+)", re.MULTILINE)

_FUNC_RE = re.compile(
    r"^func[ \t]+"
    r"(?:\(\s*(?:\w+\s+)?\*?\s*(?P<recv>\w+)(?:\[[^\]]*\])?\s*\)\s*)?"
    r"(?P<name>\w+)\s*(?:\[[^\]]*\]\s*)?\(",
    re.MULTILINE,
)


@lru_cache(maxsize=64)
def _module_name(base_path: str) -> str:
    """Module path declared in ``go.mod`` at *base_path*, or ``""``."""
    try:
        with open(os.path.join(base_path, "go.mod"), "r", encoding="utf-8", errors="replace") as f:
            m = _MODULE_RE.search(f.read())
    except OSError:
        return ""
    return m.group(1) if m else ""


class GoProfile(LanguageProfile):
    name = "go"
    builtins = frozenset({
        "append", "cap", "close", "complex", "copy", "delete", "imag", "len",
        "make", "new", "panic", "print", "println", "real", "recover",
    })
    keywords = LanguageProfile.keywords | frozenset({
        "func", "go", "defer", "range", "select", "case", "struct", "interface",
        "map", "chan",
    })

    def extract_imports(self, content: str) -> List[str]:
        masked = self.mask(content)
        imports = []
        for m in _IMPORT_RE.finditer(content):
            if not is_live(masked, m.start("kw")):
                continue
            if m.group("block") is not None:
                imports.extend(_BLOCK_SPEC_RE.findall(_strip_comments(m.group("block"))))
            else:
                imports.append(m.group("single"))
        return dedupe(imports)

    def resolve_import_path(self, import_path: str, current_file: str, base_path: str) -> str:
        if import_path.startswith(("./", "../")):
            return os.path.normpath(os.path.join(os.path.dirname(current_file), import_path))

        module = _module_name(base_path)
        if module and (import_path == module or import_path.startswith(module + "/")):
            rel = import_path[len(module):].lstrip("/")
            return os.path.join(base_path, rel) if rel else base_path

        # Packages laid out directly under the repository root.
        local = os.path.join(base_path, import_path)
        if os.path.isdir(local):
            return local
        # Everything else is the standard library or a remote module.
        return ""

    def extract_functions(self, content: str) -> List[ExtractedFunction]:
        masked = self.mask(content)
        functions = []
        for m, open_idx, close_idx in iter_blocks(masked, _FUNC_RE, same_line=True):
            name = m.group("name")
            if m.group("recv"):
                name = f"{m.group('recv')}.{name}"
            functions.append(ExtractedFunction(name=name, body=content[open_idx:close_idx + 1]))
        return functions

    def get_function_line_number(self, content: str, function_name: str) -> int:
        recv, _, name = function_name.rpartition(".")
        if not name:
            return NOT_FOUND
        if recv:
            receiver = rf"\(\s*(?:\w+\s+)?\*?\s*{re.escape(recv)}(?:\[[^\]]*\])?\s*\)\s*"
        else:
            receiver = r"(?:\([^)]*\)\s*)?"
        pattern = re.compile(
            rf"^func[ \t]+{receiver}(?P<name>{re.escape(name)})\s*(?:\[[^\]]*\]\s*)?\(",
            re.MULTILINE,
        )
        return find_definition_line(self.mask(content), pattern)


def _strip_comments(block: str) -> str:
    return re.sub(r"//[^\n]*", "", block)
