"""C and C++ language profile."""

from __future__ import annotations

import os
import re
from typing import List, Tuple

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

_INCLUDE_RE = re.compile(r'^[ \t]*(?P<kw>#)[ \t]*include[ \t]*(?:<(?P<system>[^>\n]+)>|"(?P<local>[^"\n]+)")', re.MULTILINE)
_CLASS_RE = re.compile(r"\b(?:class|struct)\s+(\w+)(?:\s+final)?\s*(?::[^{;()]*)?(?=\{)")
_MEMBER_RE = re.compile(
    r"^[ \t]*(?:(?:virtual|static|inline|explicit|constexpr|friend)\s+)*"
    r"(?:[\w:<>,*&]+[ \t*&]+)*?"
    r"(~?\w+)\s*\(",
    re.MULTILINE,
)
_FUNCTION_RE = re.compile(
    r"^[ \t]*(?:template\s*<[^>]*>\s*)?"
    r"(?:[\w:<>,*&]+[ \t*&]+)*?"
    r"((?:\w+::)*~?\w+)\s*\(",
    re.MULTILINE,
)
_CALL_RE = re.compile(r"((?:[A-Za-z_]\w*\s*(?:::|\.|->)\s*)*[A-Za-z_]\w*)\s*\(")


def _member_name(owner: str, name: str) -> str:
    short = owner.rsplit("::", 1)[-1]
    if name == short:
        name = "constructor"
    elif name == f"~{short}":
        name = "destructor"
    return f"{owner}::{name}"


class CppProfile(LanguageProfile):
    name = "cpp"
    call_pattern = _CALL_RE
    builtins = frozenset({
        "printf", "scanf", "malloc", "free", "calloc", "realloc", "memcpy",
        "memset", "strlen", "strcpy", "strcmp", "strcat", "fopen", "fclose",
        "fread", "fwrite", "fprintf", "fscanf", "std::cout", "std::cin",
        "std::cerr", "std::endl", "std::string", "std::vector", "std::map",
        "std::make_shared", "std::make_unique", "new", "delete", "sizeof",
    })
    keywords = LanguageProfile.keywords | frozenset({
        "return", "throw", "case", "static_cast", "dynamic_cast",
        "reinterpret_cast", "const_cast", "decltype", "alignof", "defined",
    })

    def extract_imports(self, content: str) -> List[str]:
        masked = self.mask(content)
        includes = []
        for m in _INCLUDE_RE.finditer(content):
            if not is_live(masked, m.start("kw")):
                continue
            includes.append(f"<{m.group('system')}>" if m.group("system") else m.group("local"))
        return dedupe(includes)

    def resolve_import_path(self, import_path: str, current_file: str, base_path: str) -> str:
        if import_path.startswith("<"):
            header = os.path.join(base_path, "include", import_path.strip("<>"))
            return os.path.normpath(header) if os.path.isfile(header) else ""
        candidates = [
            os.path.join(os.path.dirname(current_file), import_path),
            os.path.join(base_path, "include", import_path),
            os.path.join(base_path, import_path),
        ]
        return first_existing(c for c in candidates if os.path.isfile(c))

    def extract_functions(self, content: str) -> List[ExtractedFunction]:
        masked = self.mask(content)
        found: List[Tuple[int, ExtractedFunction]] = []

        class_spans = []
        for cm, open_idx, close_idx in iter_blocks(masked, _CLASS_RE):
            class_spans.append((cm.start(), close_idx))
            owner = cm.group(1)
            for mm, m_open, m_close in iter_blocks(masked, _MEMBER_RE, open_idx + 1, close_idx):
                if mm.group(1) in self.keywords:
                    continue
                found.append((mm.start(), ExtractedFunction(
                    name=_member_name(owner, mm.group(1)),
                    body=content[m_open:m_close + 1],
                )))

        for fm, f_open, f_close in iter_blocks(masked, _FUNCTION_RE):
            if within(fm.start(), class_spans):
                continue
            name = fm.group(1)
            if name in self.keywords:
                continue
            owner, sep, member = name.rpartition("::")
            if sep:
                name = _member_name(owner, member)
            found.append((fm.start(), ExtractedFunction(name=name, body=content[f_open:f_close + 1])))

        found.sort(key=lambda item: item[0])
        return [fn for _, fn in found]

    def get_function_line_number(self, content: str, function_name: str) -> int:
        masked = self.mask(content)
        owner, sep, name = function_name.rpartition("::")
        if not name:
            return NOT_FOUND
        if not sep:
            pattern = re.compile(
                rf"^[ \t]*(?:template\s*<[^>]*>\s*)?(?:[\w:<>,*&]+[ \t*&]+)*?(?P<name>{re.escape(name)})\s*\(",
                re.MULTILINE,
            )
            return find_definition_line(masked, pattern)

        short_owner = owner.rsplit("::", 1)[-1]
        if name == "constructor":
            name = short_owner
        elif name == "destructor":
            name = f"~{short_owner}"
        qualified = re.compile(rf"\b{re.escape(short_owner)}\s*::\s*(?P<name>{re.escape(name)})\s*\(")
        line = find_definition_line(masked, qualified)
        if line != NOT_FOUND:
            return line
        container = re.compile(rf"\b(?:class|struct)\s+{re.escape(short_owner)}\b")
        member = re.compile(
            rf"^[ \t]*(?:[\w:<>,*&]+[ \t*&]+)*?(?P<name>{re.escape(name)})\s*\(",
            re.MULTILINE,
        )
        return find_member_line(masked, container, member)
