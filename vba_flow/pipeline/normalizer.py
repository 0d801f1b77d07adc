"""
LineNormalizer
==============

Orchestrates the VBA line-level passes and returns logical statement lines.

Pipeline stages:

1. :class:`~vba_flow.passes.sanitise.SanitisePass`
   – Strip trailing whitespace and a leading byte-order mark.
2. :class:`~vba_flow.passes.comment_strip.CommentStripPass`
   – Remove ``'`` / ``Rem`` comments outside string literals.
3. :class:`~vba_flow.passes.line_continuation.LineContinuationCollapsePass`
   – Merge `` _`` continuation sequences into their head line.

The output list is always the same length as the input, so index ``i`` still
refers to source line ``i + 1``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from ..passes.comment_strip import CommentStripPass
from ..passes.line_continuation import LineContinuationCollapsePass
from ..passes.sanitise import SanitisePass


@dataclass
class NormalizedSource:
    """Logical lines of one module plus the comments stripped from them."""

    lines: List[str]
    comments: Dict[int, str] = field(default_factory=dict)  # 1-based line -> text


class LineNormalizer:
    """Runs the comment / continuation passes over a module's raw lines."""

    def normalize(self, lines: List[str]) -> NormalizedSource:
        lines = SanitisePass().run(lines)

        stripper = CommentStripPass()
        lines = stripper.run(lines)

        lines = LineContinuationCollapsePass().run(lines)

        comments = {idx + 1: text for idx, text in stripper.comments.items()}
        return NormalizedSource(lines=lines, comments=comments)

    def normalize_text(self, source: str) -> NormalizedSource:
        """Convenience wrapper for source supplied as a single string."""
        return self.normalize(source.splitlines())
