"""
ProcedureBlockPass
==================

Slices a normalised VBA module into procedure blocks.

Grouping rules:

+-------------------------------------------------+------------------------------+
| Condition                                       | Action                       |
+=================================================+==============================+
| Outside a body, line matches the header pattern | **Open new block**           |
+-------------------------------------------------+------------------------------+
| Inside a body, line matches the header pattern  | Ignored (VBA has no nested   |
|                                                 | procedure declarations)      |
+-------------------------------------------------+------------------------------+
| Inside a body, ``End Sub|Function|Property``    | **Close block**              |
+-------------------------------------------------+------------------------------+
| Inside a body, anything else                    | Append to body               |
+-------------------------------------------------+------------------------------+
| Outside a body, anything else                   | Module-level declaration,    |
|                                                 | skipped                      |
+-------------------------------------------------+------------------------------+

``start_line`` / ``end_line`` are 1-based and include the header and footer.
A block still open at end-of-file is closed on the last line.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..pipeline.keywords import PROC_FOOTER_RE, PROC_HEADER_RE, normalise_kind

logger = logging.getLogger(__name__)


@dataclass
class ProcedureBlock:
    """Raw slice of one procedure: header data plus numbered body lines."""

    name: str
    kind: str
    start_line: int
    end_line: int
    header: str
    body: List[Tuple[int, str]] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"ProcedureBlock(name={self.name!r}, kind={self.kind!r}, "
            f"lines={self.start_line}-{self.end_line})"
        )


class ProcedureBlockPass:
    """Partitions normalised module lines into :class:`ProcedureBlock` objects."""

    def run(self, lines: List[str]) -> List[ProcedureBlock]:
        """
        Process normalised lines (index-aligned with the source file).

        Returns
        -------
        List[ProcedureBlock]
            Blocks in source order.
        """
        blocks: List[ProcedureBlock] = []
        current: Optional[ProcedureBlock] = None

        for idx, line in enumerate(lines):
            line_no = idx + 1
            if current is None:
                m = PROC_HEADER_RE.match(line)
                if m:
                    current = ProcedureBlock(
                        name=m.group(2),
                        kind=normalise_kind(m.group(1)),
                        start_line=line_no,
                        end_line=line_no,
                        header=line.strip(),
                    )
                continue

            if PROC_FOOTER_RE.match(line):
                current.end_line = line_no
                blocks.append(current)
                current = None
                continue

            if PROC_HEADER_RE.match(line):
                logger.debug(
                    "Ignoring header on line %d inside %s", line_no, current.name
                )
                continue

            if line.strip():
                current.body.append((line_no, line))

        if current is not None:
            logger.debug("Procedure %s has no footer; closing at EOF", current.name)
            current.end_line = max(len(lines), current.start_line)
            blocks.append(current)

        return blocks
