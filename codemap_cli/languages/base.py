"""Language profile interface and the lexical helpers shared by all profiles.

Profiles never build a syntax tree.  They work on a *masked* copy of the
source in which comments and string literals are blanked out character
for character, so offsets and line numbers in the masked text are the
same as in the original.  Blocks are then located by brace matching
(C-family languages) or indentation (Python).
"""

from __future__ import annotations

import os
import re
from abc import ABC, abstractmethod
from typing import Callable, FrozenSet, Iterable, Iterator, List, Optional, Pattern, Sequence, Tuple

from ..models import ExtractedFunction

NOT_FOUND = -1

# Comments and string/char/template literals of C-like languages.
C_STYLE_NOISE = re.compile(
    r"//[^\n]*"
    r"|/\*.*?\*/"
    r'|"(?:\\.|[^"\\\n])*"'
    r"|'(?:\\.|[^'\\\n])*'"
    r"|`(?:\\.|[^`\\])*`",
    re.DOTALL,
)

_BRACE_RE = re.compile(r"[{}]")
_PAREN_RE = re.compile(r"[()]")
_BLOCK_SCAN_RE = re.compile(r"[()\[\]{};\n]")
_NON_NEWLINE_RE = re.compile(r"[^\n]")
_WHITESPACE_RE = re.compile(r"\s+")

# `interface{}` / `struct{}` in a signature are types, not the body.
_INLINE_TYPE_WORDS = ("interface", "struct")

DEFAULT_CALL_PATTERN = re.compile(r"([A-Za-z_$][\w$]*(?:\s*\.\s*[A-Za-z_$][\w$]*)*)\s*\(")


# ===================================================================
# Text helpers
# ===================================================================

def blank_out(text: str, pattern: Pattern[str]) -> str:
    """Replace every match of *pattern* with spaces, keeping newlines."""
    return pattern.sub(lambda m: _NON_NEWLINE_RE.sub(" ", m.group(0)), text)


def line_of(text: str, index: int) -> int:
    """1-based line number of character *index* in *text*."""
    return text.count("\n", 0, max(0, index)) + 1


def match_block(text: str, open_idx: int) -> int:
    """Index of the brace closing the block opened at *open_idx*.

    Unbalanced input yields ``len(text)`` so callers always get a slice.
    """
    depth = 0
    for m in _BRACE_RE.finditer(text, open_idx):
        if m.group() == "{":
            depth += 1
        else:
            depth -= 1
            if depth == 0:
                return m.start()
    return len(text)


def find_block_start(
    text: str,
    pos: int,
    same_line: bool = False,
    depth: int = 0,
) -> Optional[int]:
    """Find the ``{`` opening the body of a declaration whose header ends at *pos*.

    Parenthesised and bracketed groups are skipped.  A ``;`` at depth zero
    means the declaration has no body (a prototype or an expression), and
    with *same_line* a newline at depth zero means the same.
    """
    while True:
        m = _BLOCK_SCAN_RE.search(text, pos)
        if m is None:
            return None
        char, idx = m.group(), m.start()
        pos = idx + 1
        if char in "([":
            depth += 1
        elif char in ")]":
            depth = max(0, depth - 1)
        elif depth:
            continue
        elif char == "{":
            if text[max(0, idx - 16):idx].rstrip().endswith(_INLINE_TYPE_WORDS):
                pos = match_block(text, idx) + 1
                continue
            return idx
        elif char == ";":
            return None
        elif same_line:
            return None


def iter_blocks(
    masked: str,
    header: Pattern[str],
    start: int = 0,
    end: Optional[int] = None,
    same_line: bool = False,
) -> Iterator[Tuple["re.Match[str]", int, int]]:
    """Yield ``(header_match, open_idx, close_idx)`` for each braced declaration.

    Scanning resumes after each block, so declarations nested inside a
    matched block are not reported separately.
    """
    end = len(masked) if end is None else end
    pos = start
    while pos < end:
        m = header.search(masked, pos, end)
        if m is None:
            return
        depth = 1 if masked[m.end() - 1:m.end()] == "(" else 0
        open_idx = find_block_start(masked, m.end(), same_line=same_line, depth=depth)
        if open_idx is None or open_idx >= end:
            pos = m.end()
            continue
        close_idx = match_block(masked, open_idx)
        yield m, open_idx, close_idx
        pos = close_idx + 1


def match_paren(text: str, open_idx: int) -> int:
    """Index of the ``)`` closing the ``(`` at *open_idx*, or ``len(text)``."""
    depth = 0
    for m in _PAREN_RE.finditer(text, open_idx):
        if m.group() == "(":
            depth += 1
        else:
            depth -= 1
            if depth == 0:
                return m.start()
    return len(text)


def _match_line(masked: str, m: "re.Match[str]") -> int:
    # Patterns with a `name` group report the line of the name itself.
    if "name" in m.re.groupindex:
        return line_of(masked, m.start("name"))
    return line_of(masked, m.end())


def find_pattern_line(masked: str, pattern: Pattern[str], start: int = 0, end: Optional[int] = None) -> int:
    """Line number where *pattern* first matches."""
    m = pattern.search(masked, start, len(masked) if end is None else end)
    return _match_line(masked, m) if m else NOT_FOUND


def find_definition_line(masked: str, pattern: Pattern[str], start: int = 0, end: Optional[int] = None) -> int:
    """Like :func:`find_pattern_line` but only counts matches followed by a body."""
    end = len(masked) if end is None else end
    for m in pattern.finditer(masked, start, end):
        depth = 1 if masked[m.end() - 1:m.end()] == "(" else 0
        if find_block_start(masked, m.end(), depth=depth) is not None:
            return _match_line(masked, m)
    return NOT_FOUND


def find_member_line(
    masked: str,
    container: Pattern[str],
    member: Pattern[str],
    finder: Callable[..., int] = find_definition_line,
) -> int:
    """Line of *member* inside the braced body of the first matching *container*."""
    for cm in container.finditer(masked):
        open_idx = find_block_start(masked, cm.end())
        if open_idx is None:
            continue
        close_idx = match_block(masked, open_idx)
        line = finder(masked, member, open_idx, close_idx)
        if line != NOT_FOUND:
            return line
    return NOT_FOUND


def within(index: int, spans: Sequence[Tuple[int, int]]) -> bool:
    return any(start <= index <= stop for start, stop in spans)


def first_existing(candidates: Iterable[str]) -> str:
    """First candidate that exists on disk, or ``""``."""
    for candidate in candidates:
        if candidate and os.path.exists(candidate):
            return os.path.normpath(candidate)
    return ""


def is_live(masked: str, index: int) -> bool:
    """True when *index* is code, not inside a comment or string literal."""
    return index < len(masked) and not masked[index].isspace()


def dedupe(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(item for item in items if item))


# ===================================================================
# Profile interface
# ===================================================================

class LanguageProfile(ABC):
    """Best-effort, pattern-based extraction for one language.

    No method raises on malformed input; empty lists, ``""`` and
    :data:`NOT_FOUND` are the degraded results.
    """

    name: str = "generic"
    noise_pattern: Pattern[str] = C_STYLE_NOISE
    call_pattern: Pattern[str] = DEFAULT_CALL_PATTERN
    builtins: FrozenSet[str] = frozenset()
    keywords: FrozenSet[str] = frozenset({
        "if", "for", "while", "switch", "catch", "return", "sizeof", "typeof",
        "function", "else", "do",
    })
    # Words that introduce a declaration rather than a call: `def foo(`.
    declaration_words: FrozenSet[str] = frozenset({"function", "func"})

    def mask(self, text: str) -> str:
        return blank_out(text, self.noise_pattern)

    @abstractmethod
    def extract_imports(self, content: str) -> List[str]:
        """Return raw import specifiers in source order."""

    @abstractmethod
    def extract_functions(self, content: str) -> List[ExtractedFunction]:
        """Return function definitions with their raw bodies."""

    def extract_function_calls(self, body: str) -> List[str]:
        """Return the distinct call names in *body*, minus builtins and keywords."""
        masked = self.mask(body)
        calls: List[str] = []
        seen = set()
        for m in self.call_pattern.finditer(masked):
            name = _WHITESPACE_RE.sub("", m.group(1))
            if name in seen or name in self.keywords or name in self.builtins:
                continue
            preceding = masked[max(0, m.start() - 16):m.start()].split()
            if preceding and preceding[-1] in self.declaration_words:
                continue
            seen.add(name)
            calls.append(name)
        return calls

    @abstractmethod
    def resolve_import_path(self, import_path: str, current_file: str, base_path: str) -> str:
        """Map an import specifier to a local path, or ``""`` when it has none."""

    @abstractmethod
    def get_function_line_number(self, content: str, function_name: str) -> int:
        """1-based declaration line of *function_name*, or :data:`NOT_FOUND`."""
