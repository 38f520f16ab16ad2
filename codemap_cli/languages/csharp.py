"""C# language profile.

Methods are reported as ``Namespace.Class.Method``.  Both block-scoped and
file-scoped namespaces are recognised, and expression-bodied members
(``=> expr;``) count as functions.  Properties are not reported.
"""

from __future__ import annotations

import os
import re
from typing import List, Optional, Tuple

from ..models import ExtractedFunction
from .base import (
    LanguageProfile,
    NOT_FOUND,
    dedupe,
    find_block_start,
    find_member_line,
    find_pattern_line,
    first_existing,
    iter_blocks,
    match_block,
    match_paren,
)

STATIC_PREFIX = "static:"

_USING_RE = re.compile(
    r"^[ \t]*(?:global\s+)?using\s+(?P<static>static\s+)?(?:\w+\s*=\s*)?(?P<target>[\w.]+)\s*;",
    re.MULTILINE,
)
_FILE_NAMESPACE_RE = re.compile(r"^[ \t]*namespace\s+([\w.]+)\s*;", re.MULTILINE)
_BLOCK_NAMESPACE_RE = re.compile(r"\bnamespace\s+([\w.]+)\s*(?=\{)")
_TYPE_RE = re.compile(r"\b(?:class|struct|record|interface)\s+(\w+)")
_METHOD_RE = re.compile(
    r"^[ \t]*(?:\[[^\]\n]*\]\s*)*"
    r"(?:(?:public|private|protected|internal|static|virtual|override|abstract|sealed"
    r"|async|extern|unsafe|new|partial|readonly)\s+)*"
    r"(?:[\w.<>\[\],?]+\s+)?"
    r"(\w+)\s*(?:<[^>]*>)?\s*\(",
    re.MULTILINE,
)
_ARROW_RE = re.compile(r"\s*=>")
_CTOR_CHAIN_RE = re.compile(r"\s*:\s*(?:base|this)\s*\(")

_SOURCE_DIRS = ("src", "source", "Sources", "App_Code")


class CSharpProfile(LanguageProfile):
    name = "csharp"
    builtins = frozenset({
        "Console.WriteLine", "Console.Write", "Console.ReadLine", "Console.Read",
        "string.Format", "int.Parse", "double.Parse", "bool.Parse",
        "Convert.ToInt32", "Convert.ToString", "Convert.ToDouble",
        "Convert.ToBoolean", "Math.Abs", "Math.Min", "Math.Max", "Math.Sqrt",
        "Math.Round", "string.IsNullOrEmpty", "string.IsNullOrWhiteSpace",
        "Enumerable.Where", "Enumerable.Select", "Enumerable.OrderBy",
        "Enumerable.GroupBy", "Enumerable.ToList", "Enumerable.ToArray",
        "List.Add", "List.Remove", "List.Clear", "Dictionary.Add",
        "Dictionary.Remove", "Dictionary.ContainsKey", "Task.Run", "Task.Delay",
        "Task.WhenAll", "Task.WhenAny", "Task.FromResult", "Equals", "ToString",
        "GetHashCode", "GetType",
    })
    keywords = LanguageProfile.keywords | frozenset({
        "new", "throw", "using", "lock", "foreach", "nameof", "typeof", "default",
        "checked", "unchecked", "fixed", "base", "this",
    })

    def extract_imports(self, content: str) -> List[str]:
        masked = self.mask(content)
        return dedupe(
            (STATIC_PREFIX if m.group("static") else "") + m.group("target")
            for m in _USING_RE.finditer(masked)
        )

    def resolve_import_path(self, import_path: str, current_file: str, base_path: str) -> str:
        if import_path.startswith(STATIC_PREFIX):
            import_path = import_path[len(STATIC_PREFIX):]
        root_ns = import_path.split(".", 1)[0]
        if root_ns in ("System", "Microsoft"):
            return ""

        rel = import_path.replace(".", os.sep)
        # Projects usually drop the root namespace from their folder layout.
        trimmed = import_path.split(".", 1)[1].replace(".", os.sep) if "." in import_path else ""
        roots = [os.path.dirname(current_file), base_path]
        roots += [os.path.join(base_path, d) for d in _SOURCE_DIRS]

        candidates = []
        for root in roots:
            for path in (rel, trimmed):
                if path:
                    candidates.append(os.path.join(root, path))
                    candidates.append(os.path.join(root, path) + ".cs")
        return first_existing(candidates)

    def _namespace_at(self, index: int, file_ns: str, blocks: List[Tuple[str, int, int]]) -> str:
        # Innermost enclosing block namespace wins; nested ones are dotted.
        names = [name for name, start, stop in blocks if start <= index <= stop]
        return ".".join(names) if names else file_ns

    def _member_end(self, masked: str, paren_idx: int, limit: int) -> Optional[Tuple[int, int]]:
        """Body span ``(start, end)`` after the parameter list, or None."""
        close_paren = match_paren(masked, paren_idx)
        arrow = _ARROW_RE.match(masked, close_paren + 1)
        if arrow:
            end = masked.find(";", arrow.end(), limit)
            return (arrow.end(), end if end != -1 else limit)
        pos = close_paren + 1
        chain = _CTOR_CHAIN_RE.match(masked, pos)
        if chain:
            pos = match_paren(masked, chain.end() - 1) + 1
        brace = find_block_start(masked, pos)
        if brace is None or brace >= limit:
            return None
        return (brace, match_block(masked, brace))

    def extract_functions(self, content: str) -> List[ExtractedFunction]:
        masked = self.mask(content)
        file_ns_match = _FILE_NAMESPACE_RE.search(masked)
        file_ns = file_ns_match.group(1) if file_ns_match else ""
        blocks = [
            (m.group(1), m.start(), close)
            for m, _, close in _iter_all_blocks(masked, _BLOCK_NAMESPACE_RE)
        ]

        functions = []
        for tm, open_idx, close_idx in iter_blocks(masked, _TYPE_RE):
            namespace = self._namespace_at(tm.start(), file_ns, blocks)
            owner = f"{namespace}.{tm.group(1)}" if namespace else tm.group(1)

            pos = open_idx + 1
            while pos < close_idx:
                mm = _METHOD_RE.search(masked, pos, close_idx)
                if mm is None:
                    break
                span = self._member_end(masked, mm.end() - 1, close_idx)
                if span is None:
                    pos = mm.end()
                    continue
                start, end = span
                pos = end + 1
                if mm.group(1) in self.keywords:
                    continue
                functions.append(ExtractedFunction(
                    name=f"{owner}.{mm.group(1)}",
                    body=content[start:end + 1].strip(),
                ))
        return functions

    def get_function_line_number(self, content: str, function_name: str) -> int:
        masked = self.mask(content)
        parts = function_name.split(".")
        name = parts[-1]
        if not name:
            return NOT_FOUND
        member = re.compile(
            rf"^[ \t]*(?:[\w.<>\[\],?]+[ \t]+)*(?P<name>{re.escape(name)})\s*(?:<[^>]*>)?\s*"
            r"\([^;{}]*?\)\s*(?::\s*(?:base|this)\s*\([^)]*\)\s*)?(?:where[^{;]*)?(?:\{|=>)",
            re.MULTILINE,
        )
        if len(parts) > 1:
            container = re.compile(rf"\b(?:class|struct|record|interface)\s+{re.escape(parts[-2])}\b")
            return find_member_line(masked, container, member, finder=find_pattern_line)
        return find_pattern_line(masked, member)


def _iter_all_blocks(masked: str, header):
    """Like :func:`iter_blocks` but also descends into each matched block."""
    for m in header.finditer(masked):
        open_idx = find_block_start(masked, m.end())
        if open_idx is None:
            continue
        yield m, open_idx, match_block(masked, open_idx)
