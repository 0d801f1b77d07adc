"""
LineContinuationCollapsePass
============================

Collapses VBA continuation sequences into single logical lines.

VBA line continuation rules:
  * A statement is continued onto the next physical line by ending the line
    with a space followed by an underscore (`` _``).
  * Any number of consecutive lines may be chained this way.

Unlike a plain join, this pass keeps the output **index-aligned** with the
input: the merged statement is stored on the *head* line and every absorbed
line is replaced by an empty string.  Downstream passes therefore keep using
the original 1-based source line numbers without a line map.

A continuation marker on the very last line has nothing to absorb; the line
is passed through unmodified.
"""
from __future__ import annotations

import re
from typing import List

_CONTINUATION_RE = re.compile(r"(?:^|\s)_$")


class LineContinuationCollapsePass:
    """Joins VBA continuation lines into their head line."""

    def run(self, lines: List[str]) -> List[str]:
        """
        Collapse continuation lines.

        Parameters
        ----------
        lines:
            Source lines, comments already stripped.

        Returns
        -------
        List[str]
            Same-length list; absorbed lines are empty.
        """
        result = list(lines)
        i = 0
        while i < len(result):
            head = i
            while self._is_continued(result[head]) and i + 1 < len(result):
                merged = result[head].rstrip()[:-1].rstrip()
                i += 1
                tail = result[i].strip()
                result[head] = f"{merged} {tail}" if merged else tail
                result[i] = ""
            i += 1
        return result

    @staticmethod
    def _is_continued(line: str) -> bool:
        return bool(_CONTINUATION_RE.search(line.rstrip()))
