"""
SanitisePass
============

Light-weight sanitisation of VBA source lines prior to structural parsing.

Currently performs:
  * Removal of a leading UTF-8 byte-order mark on the first line (the VBE
    export and many editors disagree on whether to write one).
  * Trailing-whitespace and stray carriage-return removal; leading
    indentation is preserved for readability of node labels downstream.
"""
from __future__ import annotations

from typing import List

_BOM = "\ufeff"


class SanitisePass:
    """Sanitises source lines for structural parsing."""

    def run(self, lines: List[str]) -> List[str]:
        """
        Apply sanitisation to all lines.

        Parameters
        ----------
        lines:
            Raw module lines (newlines already split off).

        Returns
        -------
        List[str]
            Sanitised lines (same length list; no lines are dropped).
        """
        result = [self._sanitise(line) for line in lines]
        if result and result[0].startswith(_BOM):
            result[0] = result[0][len(_BOM):]
        return result

    @staticmethod
    def _sanitise(line: str) -> str:
        return line.rstrip()
