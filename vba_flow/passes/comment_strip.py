"""
CommentStripPass
================

Removes VBA comments while keeping the line list index-aligned.

VBA comment rules handled here:
  * A line whose first token is ``'`` or the ``Rem`` keyword is a comment
    line and becomes empty.
  * An apostrophe later on the line starts an inline comment, unless it sits
    inside a string literal.  String literals are tracked with a light
    boundary heuristic: the line is split at ``"`` characters and only the
    even-indexed segments (outside any literal) are searched.  Doubled quotes
    (``""``) inside a literal produce an empty odd/even pair and keep the
    parity correct.

The stripped comment text is kept in :attr:`comments` so the control-flow
builder can attach it to the node created for that line.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional

_REM_RE = re.compile(r"^\s*Rem(?:\s|$)", re.IGNORECASE)


class CommentStripPass:
    """Strips full-line and inline comments, recording what was removed."""

    def __init__(self) -> None:
        #: 0-based line index -> comment text (without the marker)
        self.comments: Dict[int, str] = {}

    def run(self, lines: List[str]) -> List[str]:
        """
        Strip comments from every line.

        Returns
        -------
        List[str]
            Same-length list with comments removed and trailing blanks trimmed.
        """
        self.comments = {}
        result: List[str] = []
        for idx, line in enumerate(lines):
            code, comment = self.split_comment(line)
            if comment:
                self.comments[idx] = comment
            result.append(code)
        return result

    @staticmethod
    def split_comment(line: str) -> tuple[str, Optional[str]]:
        """Return ``(code, comment)`` for a single physical line."""
        stripped = line.lstrip()
        if stripped.startswith("'"):
            return "", stripped[1:].strip() or None
        if _REM_RE.match(line):
            return "", stripped[3:].strip() or None

        segments = line.split('"')
        for i in range(0, len(segments), 2):
            pos = segments[i].find("'")
            if pos < 0:
                continue
            code = '"'.join(segments[:i] + [segments[i][:pos]])
            comment = '"'.join([segments[i][pos + 1:]] + segments[i + 1:])
            return code.rstrip(), comment.strip() or None
        return line, None
