"""
ControlFlowBuilder
==================

Turns one :class:`~vba_flow.passes.procedure_block.ProcedureBlock` into a
:class:`~vba_flow.models.Procedure` control-flow graph.

The walk is a single forward fold over classified line-events.  Each handler
receives the *cursor* (the pending ``(node_id, edge_label)`` sources the next
node must be connected from) and returns the new cursor.  The cursor usually
holds one entry; it is empty after an unconditional exit and may hold several
entries after a loop closes that had ``Exit Do`` / ``Exit For`` breaks.

Open constructs live on one explicit stack of tagged frames:

==========  =====================================  ==========================
Kind        Opened by                              Closed by
==========  =====================================  ==========================
``if``      ``If … Then``                          ``End If``
``do``      ``Do [While|Until …]``                 ``Loop [While|Until …]``
``while``   ``While …``                            ``Wend``
``for``     ``For …`` / ``For Each …``             ``Next [var[, var …]]``
``select``  ``Select Case …``                      ``End Select``
``with``    ``With …``                             ``End With``
==========  =====================================  ==========================

A terminator pops the nearest frame of its own kind, discarding any
mismatched frames above it.  A terminator with no frame of its kind is
ignored and the stack is left intact.  Frames still open when the body ends
are dropped without emitting anything.

Node ids are ``L<line>`` for the first node placed on a source line and
``L<line>_<k>`` for the k-th extra node on that line, so the same input
always yields the same ids.
"""
from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..models import CallSite, Edge, LoopSpan, Node, Procedure
from ..passes.procedure_block import ProcedureBlock
from ..pipeline.symbol_table import SymbolTable
from .statements import (
    CallCandidate,
    Statement,
    classify,
    declared_locals,
    find_call_candidates,
    parameter_names,
)

logger = logging.getLogger(__name__)

Pending = Tuple[str, str]        # (source node id, label of the edge to emit)
Cursor = Tuple[Pending, ...]

_ON_ERROR_GOTO_RE = re.compile(r"^On\s+Error\s+GoTo\s+([^\W\d]\w*|[1-9]\d*)$", re.IGNORECASE)

# Do-header keyword -> label of the edge into the loop body
_DO_BODY_LABEL = {"While": "Yes", "Until": "No", None: ""}


@dataclass
class _Frame:
    """One open construct on the builder's stack."""

    kind: str                   # if | do | while | for | select | with
    head_id: str
    line: int
    tails: List[Pending] = field(default_factory=list)
    current_id: str = ""        # last cond of an If chain
    has_else: bool = False
    opened: bool = False        # a Case arm has been seen
    breaks: List[Pending] = field(default_factory=list)


class ControlFlowBuilder:
    """
    Builds procedure CFGs for one module.

    Parameters
    ----------
    symbol_table:
        Project-wide table used to resolve call targets.  Read-only.
    module_name:
        Declared name of the module the procedures belong to; unqualified
        calls prefer procedures of this module.
    """

    def __init__(self, symbol_table: SymbolTable, module_name: str) -> None:
        self.symbol_table = symbol_table
        self.module_name = module_name
        self._handlers: Dict[str, Callable[[Statement, int, Cursor], Cursor]] = {
            "if_inline": self._on_if_inline,
            "if": self._on_if,
            "elseif": self._on_elseif,
            "else": self._on_else,
            "end_if": self._on_end_if,
            "do": self._on_do,
            "loop": self._on_loop,
            "while": self._on_while,
            "wend": self._on_wend,
            "for": self._on_for,
            "next": self._on_next,
            "select": self._on_select,
            "case": self._on_case,
            "end_select": self._on_end_select,
            "with": self._on_with,
            "end_with": self._on_end_with,
            "goto": self._on_goto,
            "label": self._on_label,
            "exit_loop": self._on_exit_loop,
            "exit": self._on_exit,
            "statement": self._on_statement,
        }
        self._reset(None, {})

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(
        self,
        block: ProcedureBlock,
        comments: Optional[Dict[int, str]] = None,
    ) -> Procedure:
        """
        Build the CFG of *block*.

        Parameters
        ----------
        block:
            Procedure slice produced by the segmenter.
        comments:
            Optional ``line -> comment text`` map; the first node placed on a
            line carries that line's comment.
        """
        proc = Procedure(
            name=block.name,
            kind=block.kind,
            start_line=block.start_line,
            end_line=block.end_line,
        )
        self._reset(proc, comments or {})
        self._locals = frozenset(
            name.lower()
            for name in parameter_names(block.header)
            + [n for _, text in block.body for n in declared_locals(text)]
        )

        start = self._add_node("start", f"{block.kind} {block.name}", block.start_line)
        self._start_id = start.id
        cursor: Cursor = ((start.id, ""),)

        for line_no, text in block.body:
            stmt = classify(text)
            cursor = self._handlers[stmt.kind](stmt, line_no, cursor)

        if self._stack:
            logger.debug(
                "%s: dropping %d unterminated construct(s): %s",
                block.name,
                len(self._stack),
                ", ".join(f"{f.kind}@{f.line}" for f in self._stack),
            )
        for key, sources in self._pending_jumps.items():
            logger.debug(
                "%s: GoTo target %r never declared (from %s)",
                block.name, key, ", ".join(sources),
            )

        if cursor:
            end_word = block.kind.split()[0]
            end = self._add_node("end", f"End {end_word}", block.end_line)
            self._connect(cursor, end.id)

        logger.debug("Built %r", proc)
        return proc

    # ------------------------------------------------------------------
    # Graph primitives
    # ------------------------------------------------------------------

    def _reset(self, proc: Optional[Procedure], comments: Dict[int, str]) -> None:
        self._proc = proc
        self._comments = comments
        self._line_counts: Dict[int, int] = defaultdict(int)
        self._stack: List[_Frame] = []
        self._labels: Dict[str, str] = {}
        self._pending_jumps: Dict[str, List[str]] = defaultdict(list)
        self._locals: frozenset[str] = frozenset()
        self._start_id = ""

    def _add_node(self, type_: str, text: str, line: int) -> Node:
        count = self._line_counts[line]
        self._line_counts[line] = count + 1
        node = Node(
            id=f"L{line}" if count == 0 else f"L{line}_{count}",
            type=type_,
            text=text,
            source_line=line,
            comment=self._comments.get(line) if count == 0 else None,
        )
        self._proc.nodes.append(node)
        return node

    def _add_edge(self, src: str, dst: str, label: str = "") -> None:
        self._proc.edges.append(Edge(src=src, dst=dst, label=label))

    def _connect(self, cursor: Cursor, dst: str) -> None:
        for src, label in cursor:
            self._add_edge(src, dst, label)

    def _chain(self, type_: str, text: str, line: int, cursor: Cursor) -> Node:
        node = self._add_node(type_, text, line)
        self._connect(cursor, node.id)
        return node

    # ------------------------------------------------------------------
    # Frame stack
    # ------------------------------------------------------------------

    def _nearest(self, kind: str) -> Optional[int]:
        for idx in range(len(self._stack) - 1, -1, -1):
            if self._stack[idx].kind == kind:
                return idx
        return None

    def _top(self, kind: str, line: int) -> Optional[_Frame]:
        """Nearest *kind* frame, with any mismatched frames above it discarded."""
        idx = self._nearest(kind)
        if idx is None:
            logger.debug("Line %d: no open %s construct; ignoring", line, kind)
            return None
        if idx != len(self._stack) - 1:
            dropped = self._stack[idx + 1:]
            logger.debug(
                "Line %d: discarding unclosed %s",
                line, ", ".join(f"{f.kind}@{f.line}" for f in dropped),
            )
            del self._stack[idx + 1:]
        return self._stack[idx]

    def _pop(self, kind: str, line: int) -> Optional[_Frame]:
        frame = self._top(kind, line)
        if frame is not None:
            self._stack.pop()
        return frame

    # ------------------------------------------------------------------
    # If / ElseIf / Else / End If
    # ------------------------------------------------------------------

    def _on_if(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        cond = self._chain("cond", f"If {stmt.parts['cond']}?", line, cursor)
        self._stack.append(_Frame("if", cond.id, line, current_id=cond.id))
        return ((cond.id, "Yes"),)

    def _on_elseif(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        frame = self._top("if", line)
        if frame is None:
            return cursor
        frame.tails.extend(cursor)
        cond = self._chain(
            "cond", f"ElseIf {stmt.parts['cond']}?", line, ((frame.current_id, "No"),)
        )
        frame.current_id = cond.id
        return ((cond.id, "Yes"),)

    def _on_else(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        frame = self._top("if", line)
        if frame is None:
            return cursor
        if frame.has_else:
            logger.debug("Line %d: second Else in one If; ignoring", line)
            return cursor
        frame.tails.extend(cursor)
        frame.has_else = True
        return ((frame.current_id, "No"),)

    def _on_end_if(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        frame = self._pop("if", line)
        if frame is None:
            return cursor
        frame.tails.extend(cursor)
        if not frame.has_else:
            frame.tails.append((frame.current_id, "No"))
        join = self._add_node("join", "End If", line)
        self._connect(tuple(frame.tails), join.id)
        return ((join.id, ""),)

    def _on_if_inline(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        cond = self._chain("cond", f"If {stmt.parts['cond']}?", line, cursor)
        tails = list(self._emit_inline(stmt.parts["then"], line, ((cond.id, "Yes"),)))
        else_stmt = stmt.parts["else"]
        if else_stmt is not None:
            tails.extend(self._emit_inline(else_stmt, line, ((cond.id, "No"),)))
        else:
            tails.append((cond.id, "No"))
        if not tails:
            return ()
        join = self._add_node("join", "End If", line)
        self._connect(tuple(tails), join.id)
        return ((join.id, ""),)

    def _emit_inline(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        """Emit the statement after a one-line ``Then`` / ``Else``."""
        if stmt.kind in ("goto", "exit", "exit_loop", "statement"):
            return self._handlers[stmt.kind](stmt, line, cursor)
        return self._on_statement(stmt, line, cursor)

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    def _open_loop(
        self, kind: str, text: str, body_label: str, line: int, cursor: Cursor
    ) -> Cursor:
        head = self._chain("loop", text, line, cursor)
        self._stack.append(_Frame(kind, head.id, line))
        return ((head.id, body_label),)

    def _close_loop(
        self, kind: str, text: str, back_label: str, line: int, cursor: Cursor
    ) -> Cursor:
        frame = self._pop(kind, line)
        if frame is None:
            return cursor
        end = self._chain("loopEnd", text, line, cursor)
        self._add_edge(end.id, frame.head_id, back_label)
        self._proc.loop_spans.append(
            LoopSpan(
                head_id=frame.head_id,
                end_id=end.id,
                start_line=frame.line,
                end_line=line,
            )
        )
        return ((end.id, ""),) + tuple(frame.breaks)

    def _on_do(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        keyword = stmt.parts["keyword"]
        text = f"Do {keyword} {stmt.parts['cond']}" if keyword else "Do"
        return self._open_loop("do", text, _DO_BODY_LABEL[keyword], line, cursor)

    def _on_loop(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        keyword = stmt.parts["keyword"]
        text = f"Loop {keyword} {stmt.parts['cond']}" if keyword else "Loop End"
        return self._close_loop("do", text, "loop", line, cursor)

    def _on_while(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        return self._open_loop("while", f"While {stmt.parts['cond']}", "Yes", line, cursor)

    def _on_wend(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        return self._close_loop("while", "Wend", "loop", line, cursor)

    def _on_for(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        return self._open_loop("for", stmt.text, "", line, cursor)

    def _on_next(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        # ``Next i, j`` closes one For frame per listed variable.
        for _ in range(max(1, len(stmt.parts["vars"]))):
            cursor = self._close_loop("for", "For Next End", "next", line, cursor)
        return cursor

    def _on_exit_loop(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        kind = stmt.parts["loop"].lower()
        idx = self._nearest(kind)
        if idx is None:
            logger.debug("Line %d: %s outside any %s loop", line, stmt.text, kind)
            return self._on_statement(stmt, line, cursor)
        brk = self._chain("op", stmt.text, line, cursor)
        self._stack[idx].breaks.append((brk.id, "exit"))
        return ()

    # ------------------------------------------------------------------
    # Select Case
    # ------------------------------------------------------------------

    def _on_select(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        switch = self._chain("switch", stmt.text, line, cursor)
        self._stack.append(_Frame("select", switch.id, line))
        # Nothing flows until the first Case arm.
        return ()

    def _on_case(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        frame = self._top("select", line)
        if frame is None:
            return cursor
        if frame.opened:
            frame.tails.extend(cursor)
        frame.opened = True
        label = stmt.parts["label"]
        case = self._chain("case", f"Case {label}", line, ((frame.head_id, label),))
        return ((case.id, ""),)

    def _on_end_select(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        frame = self._pop("select", line)
        if frame is None:
            return cursor
        if frame.opened:
            frame.tails.extend(cursor)
        else:
            frame.tails.append((frame.head_id, ""))
        join = self._add_node("join", "End Select", line)
        self._connect(tuple(frame.tails), join.id)
        return ((join.id, ""),)

    # ------------------------------------------------------------------
    # With
    # ------------------------------------------------------------------

    def _on_with(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        block = self._chain("block", stmt.text, line, cursor)
        self._stack.append(_Frame("with", block.id, line))
        return ((block.id, ""),)

    def _on_end_with(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        if self._pop("with", line) is None:
            return cursor
        join = self._chain("join", "End With", line, cursor)
        return ((join.id, ""),)

    # ------------------------------------------------------------------
    # GoTo / labels / exits
    # ------------------------------------------------------------------

    def _jump(self, src_id: str, label: str) -> None:
        key = label.lower()
        if key in self._labels:
            self._add_edge(src_id, self._labels[key], "goto")
        else:
            self._pending_jumps[key].append(src_id)

    def _on_goto(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        node = self._chain("goto", stmt.text, line, cursor)
        self._jump(node.id, stmt.parts["label"])
        return ()

    def _on_label(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        name = stmt.parts["label"]
        node = self._add_node("label", name, line)
        # A label starts a new chain; only the procedure entry falls into it.
        if cursor == ((self._start_id, ""),):
            self._connect(cursor, node.id)
        key = name.lower()
        self._labels[key] = node.id
        for src in self._pending_jumps.pop(key, []):
            self._add_edge(src, node.id, "goto")
        cursor = ((node.id, ""),)
        rest = stmt.parts.get("rest")
        if rest is not None:
            cursor = self._handlers[rest.kind](rest, line, cursor)
        return cursor

    def _on_exit(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        self._chain("end", stmt.text, line, cursor)
        return ()

    # ------------------------------------------------------------------
    # Plain statements and call sites
    # ------------------------------------------------------------------

    def _on_statement(self, stmt: Statement, line: int, cursor: Cursor) -> Cursor:
        sites = self._call_sites(stmt.text, line)
        node = self._chain("call" if sites else "op", stmt.text, line, cursor)
        self._proc.calls.extend(sites)
        m = _ON_ERROR_GOTO_RE.match(stmt.text)
        if m:
            self._jump(node.id, m.group(1))
        return ((node.id, ""),)

    def _call_sites(self, text: str, line: int) -> List[CallSite]:
        sites: List[CallSite] = []
        seen = set()
        for cand in find_call_candidates(text, self._locals):
            resolved = self._resolve(cand)
            if resolved is None:
                continue
            target, ok = resolved
            if target.lower() in seen:
                continue
            seen.add(target.lower())
            sites.append(CallSite(target=target, resolved=ok, source_line=line))
        return sites

    def _resolve(self, cand: CallCandidate) -> Optional[Tuple[str, bool]]:
        """
        ``(target, resolved)`` for one candidate, or ``None`` when the shape
        turns out not to be a procedure call (object member access, or a
        statement-form word that no module declares).
        """
        table = self.symbol_table
        if cand.qualifier:
            module = table.find_module(cand.qualifier)
            if module is None:
                if cand.form != "call":
                    return None
                return f"{cand.qualifier}.{cand.name}", False
            proc = table.declares(module, cand.name)
            if proc is not None:
                return f"{module}.{proc}", True
            return f"{module}.{cand.name}", False

        hit = table.find_declaring_module(cand.name, prefer=self.module_name)
        if hit is not None:
            return f"{hit[0]}.{hit[1]}", True
        if cand.form == "statement":
            return None
        return cand.name, False
