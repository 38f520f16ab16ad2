"""TypeScript language profile.

Extends the JavaScript profile with generic functions, typed arrow
functions and declaration files.  Interface members and type aliases
have no body and are deliberately not reported as functions.
"""

from __future__ import annotations

import re

from .javascript import JavaScriptProfile, _METHOD_MODIFIERS

_TS_MODIFIERS = (
    r"(?:(?:public|private|protected|readonly|static|async|override|abstract|get|set)\s+)*"
)


class TypeScriptProfile(JavaScriptProfile):
    name = "typescript"
    extensions = ("", ".ts", ".tsx", ".d.ts", ".js", ".jsx")

    function_patterns = (
        re.compile(r"\b(?:async\s+)?function\s*\*?\s*([A-Za-z_$][\w$]*)\s*(?:<[^>]*>\s*)?\("),
        re.compile(
            r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*(?::\s*[^=;]+?)?=\s*(?:async\s+)?"
            r"(?:function\b\s*\*?\s*[\w$]*\s*(?:<[^>]*>\s*)?\("
            r"|(?:<[^>]*>\s*)?\([^()]*\)\s*(?::\s*[^=;{]+?)?=>\s*(?=\{)"
            r"|[A-Za-z_$][\w$]*\s*=>\s*(?=\{))"
        ),
    )
    method_pattern = re.compile(
        rf"^[ \t]*{_TS_MODIFIERS}{_METHOD_MODIFIERS}\*?\s*([A-Za-z_$#][\w$]*)\s*(?:<[^>]*>\s*)?\(",
        re.MULTILINE,
    )

    def _member_pattern(self, name):
        return re.compile(
            rf"^[ \t]*{_TS_MODIFIERS}\*?\s*(?P<name>{re.escape(name)})\s*(?:<[^>]*>\s*)?\(",
            re.MULTILINE,
        )
