"""
mermaid.py
==========

Render a :class:`~vba_flow.models.CFGDocument` as Mermaid flowcharts: one
per procedure plus one for the call graph.

The builder's output is a flat, structure-agnostic node/edge list, so the
renderer re-derives what it needs for a readable drawing:

* **Loop terminators** – nodes of type ``loopEnd``, or ``join`` nodes whose
  text is a loop-end text (``Loop End``, ``For Next End``, ``Wend``,
  ``Loop While …``), paired with their header through ``loopSpans`` or the
  terminator's back-edge.
* **Branch labels** – an unlabelled edge out of a ``cond`` node gets "Yes"
  if its target is the first non-join successor by source line and "No" if
  it is the last (or a join).  Both are swapped for ``If Not …``.
* **Back-edges** – an edge from inside a loop span back to the header is
  redirected to the span's terminator; the terminator → header edge is drawn
  dashed.

Node shapes
-----------

=========  ======================  =========================================
Type       Mermaid                 Meaning
=========  ======================  =========================================
start/end  ``id(["…"])``           Procedure entry / exit
cond       ``id{"…"}``             If / ElseIf condition
loop       ``id{{"…"}}``           Do / While / For header
loopEnd    ``id[/"…"\\]``           Loop / Wend / Next
join       ``id((" "))``           Re-convergence point
switch     ``id{"…"}``             Select Case
case       ``id[/"…"/]``           Case arm
call       ``id[["…"]]``           Statement with call sites
label      ``id>"…"]``             GoTo anchor
goto       ``id[\\"…"\\]``           GoTo
block      ``id("…")``             With
op         ``id["…"]``             Anything else
=========  ======================  =========================================

Identifiers are restricted to ``[A-Za-z0-9_]``; any other character becomes
``_<hex>_``.  Labels keep non-Latin text verbatim; only characters that are
structural in Mermaid are replaced with entity codes (``#40;`` …).
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set, Tuple, Union

from ..models import CFGDocument, Edge, InvalidDocumentError, LoopSpan, Node, Procedure

logger = logging.getLogger(__name__)

_SHAPES: Dict[str, Tuple[str, str]] = {
    "start":   ('(["', '"])'),
    "end":     ('(["', '"])'),
    "cond":    ('{"', '"}'),
    "loop":    ('{{"', '"}}'),
    "loopEnd": ('[/"', '"\\]'),
    "join":    ('(("', '"))'),
    "switch":  ('{"', '"}'),
    "case":    ('[/"', '"/]'),
    "call":    ('[["', '"]]'),
    "label":   ('>"', '"]'),
    "goto":    ('[\\"', '"\\]'),
    "block":   ('("', '")'),
    "op":      ('["', '"]'),
    "spacer":  ('(("', '"))'),
}

_CLASS_OF = {
    "start": "terminal",
    "end": "terminal",
    "cond": "decision",
    "switch": "decision",
    "loop": "loop",
    "loopEnd": "loop",
    "call": "call",
}

_CLASS_DEFS = [
    "    classDef terminal fill:#2E86AB,color:#fff,stroke:#1a5276",
    "    classDef decision fill:#F5B041,color:#000,stroke:#9a7d0a",
    "    classDef loop     fill:#27AE60,color:#fff,stroke:#1e8449",
    "    classDef call     fill:#8E44AD,color:#fff,stroke:#5b2c6f",
]

_LOOP_END_TEXTS = {"loop end", "for next end", "wend"}
_NEGATED_COND_RE = re.compile(r"^(?:Else)?If\s+Not\b", re.IGNORECASE)

# Only characters Mermaid treats as delimiters inside a node / edge label.
_LABEL_ESCAPES = {
    '"': "#quot;",
    "(": "#40;",
    ")": "#41;",
    "[": "#91;",
    "]": "#93;",
    "{": "#123;",
    "}": "#125;",
    "|": "#124;",
}


def sanitize_id(raw: str) -> str:
    """``Module1.Main`` -> ``Module1_2e_Main``; letters, digits and ``_`` pass."""
    return re.sub(r"[^A-Za-z0-9_]", lambda m: f"_{ord(m.group()):x}_", raw)


def escape_label(text: str) -> str:
    return "".join(_LABEL_ESCAPES.get(ch, ch) for ch in text)


def is_loop_terminator(node: Node) -> bool:
    if node.type == "loopEnd":
        return True
    if node.type != "join":
        return False
    text = node.text.strip().lower()
    return text in _LOOP_END_TEXTS or text.startswith("loop ")


@dataclass
class RenderedDiagrams:
    """Mermaid text per procedure (in document order) plus the call graph."""

    module_name: str
    procedures: Dict[str, str] = field(default_factory=dict)
    call_graph: str = ""

    def render_markdown(self, title: str = "") -> str:
        """All diagrams as one Markdown page with fenced ``mermaid`` blocks."""
        out: List[str] = [f"# {title or self.module_name}", ""]
        for name, text in self.procedures.items():
            out += [f"## {name}", "", "```mermaid", text.rstrip("\n"), "```", ""]
        if self.call_graph:
            out += ["## Call graph", "", "```mermaid", self.call_graph.rstrip("\n"), "```", ""]
        return "\n".join(out)


class MermaidRenderer:
    """
    Renders CFG documents as Mermaid ``flowchart`` text.

    Parameters
    ----------
    direction:
        Flowchart direction (``TD``, ``LR``, …).
    max_label:
        Labels longer than this are cut and end in ``...``.
    """

    def __init__(self, direction: str = "TD", max_label: int = 80) -> None:
        self.direction = direction
        self.max_label = max(4, max_label)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def render_document(self, document: Union[CFGDocument, Dict[str, Any], None]) -> RenderedDiagrams:
        """
        Render every procedure and the call graph of *document*.

        Raises
        ------
        InvalidDocumentError
            When *document* is missing or is not a well-formed CFG document.
        """
        if document is None:
            raise InvalidDocumentError("No CFG document to render")
        if not isinstance(document, CFGDocument):
            document = CFGDocument.from_dict(document)

        result = RenderedDiagrams(module_name=document.module_name)
        for proc in document.procedures:
            key = proc.name
            if key in result.procedures:
                # Property Get / Let / Set of one property share a name
                key = f"{proc.name} ({proc.kind})"
            result.procedures[key] = self.render_procedure(
                proc, title=f"{document.module_name}.{proc.name}"
            )
        result.call_graph = self.render_call_graph(
            document.call_graph, title=f"{document.module_name} call graph"
        )
        return result

    def render_procedure(self, proc: Procedure, title: str = "") -> str:
        nodes: Dict[str, Node] = {n.id: n for n in proc.nodes}
        spans = self._loop_spans(proc, nodes)
        cond_labels = self._resolve_cond_labels(proc, nodes)

        lines: List[str] = self._header(title or proc.name)
        for node in proc.nodes:
            lines.append(self._node_line(node))
        lines.append("")

        emitted: Set[str] = set()

        def _emit(line: str) -> None:
            if line not in emitted:
                emitted.add(line)
                lines.append(line)

        back_edges = {(s.end_id, s.head_id) for s in spans}
        for idx, edge in enumerate(proc.edges):
            if edge.src not in nodes or edge.dst not in nodes:
                logger.warning(
                    "%s: edge %s -> %s references an unknown node; skipped",
                    proc.name, edge.src, edge.dst,
                )
                continue
            label = cond_labels.get(idx, edge.label)
            if (edge.src, edge.dst) in back_edges:
                _emit(self._edge_line(edge.src, edge.dst, label or "loop", dashed=True))
                continue
            dst = self._redirect(edge, nodes, spans)
            _emit(self._edge_line(edge.src, dst, label))

        # Spans whose terminator lost its back-edge still get one.
        drawn = {(e.src, e.dst) for e in proc.edges}
        for span in spans:
            if (span.end_id, span.head_id) not in drawn:
                _emit(self._edge_line(span.end_id, span.head_id, "loop", dashed=True))

        lines.append("")
        lines.extend(_CLASS_DEFS)
        return "\n".join(lines) + "\n"

    def render_call_graph(self, call_graph: Dict[str, Any], title: str = "") -> str:
        """
        Render the ``callGraph`` member of a document.

        Unresolved targets are drawn dashed, with an ``unresolved`` edge
        annotation.
        """
        try:
            raw_nodes = list(call_graph.get("nodes", []))
            raw_edges = list(call_graph.get("edges", []))
            graph_nodes = [(str(n["id"]), bool(n.get("resolved", True))) for n in raw_nodes]
            graph_edges = [
                (str(e["from"]), str(e["to"]), bool(e.get("resolved", True)))
                for e in raw_edges
            ]
        except (AttributeError, KeyError, TypeError) as exc:
            raise InvalidDocumentError(f"Malformed call graph: {exc}") from exc

        lines: List[str] = self._header(title or "Call graph")
        for node_id, resolved in graph_nodes:
            suffix = "" if resolved else ":::unresolved"
            lines.append(f'    {sanitize_id(node_id)}["{self._label(node_id)}"]{suffix}')
        lines.append("")

        emitted: Set[str] = set()
        for src, dst, resolved in graph_edges:
            if resolved:
                line = f"    {sanitize_id(src)} --> {sanitize_id(dst)}"
            else:
                line = f'    {sanitize_id(src)} -.->|"unresolved"| {sanitize_id(dst)}'
            if line not in emitted:
                emitted.add(line)
                lines.append(line)

        lines.append("")
        lines.append(
            "    classDef unresolved fill:#E74C3C,color:#fff,stroke:#922b21,stroke-dasharray:5 5"
        )
        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------
    # Structure re-derivation
    # ------------------------------------------------------------------

    def _loop_spans(self, proc: Procedure, nodes: Dict[str, Node]) -> List[LoopSpan]:
        """Builder spans that check out, plus spans found from back-edges."""
        spans: List[LoopSpan] = []
        seen: Set[Tuple[str, str]] = set()

        for span in proc.loop_spans:
            if span.head_id not in nodes or span.end_id not in nodes:
                logger.warning(
                    "%s: loop span %s..%s references an unknown node; skipped",
                    proc.name, span.head_id, span.end_id,
                )
                continue
            if (span.head_id, span.end_id) not in seen:
                seen.add((span.head_id, span.end_id))
                spans.append(span)

        for edge in proc.edges:
            src, dst = nodes.get(edge.src), nodes.get(edge.dst)
            if src is None or dst is None:
                continue
            if is_loop_terminator(src) and dst.type == "loop" and (dst.id, src.id) not in seen:
                seen.add((dst.id, src.id))
                spans.append(LoopSpan(dst.id, src.id, dst.source_line, src.source_line))
        return spans

    @staticmethod
    def _redirect(edge: Edge, nodes: Dict[str, Node], spans: List[LoopSpan]) -> str:
        """Target of *edge* after re-entry edges are moved to the terminator."""
        src = nodes[edge.src]
        for span in spans:
            if edge.dst != span.head_id or edge.src in (span.head_id, span.end_id):
                continue
            if span.start_line <= src.source_line <= span.end_line:
                return span.end_id
        return edge.dst

    @staticmethod
    def _resolve_cond_labels(proc: Procedure, nodes: Dict[str, Node]) -> Dict[int, str]:
        """Edge index -> "Yes" / "No" for unlabelled edges leaving a condition."""
        resolved: Dict[int, str] = {}
        outgoing: Dict[str, List[int]] = {}
        for idx, edge in enumerate(proc.edges):
            src = nodes.get(edge.src)
            if src is not None and src.type == "cond" and edge.dst in nodes:
                outgoing.setdefault(edge.src, []).append(idx)

        for cond_id, indices in outgoing.items():
            unlabeled = [i for i in indices if not proc.edges[i].label]
            if not unlabeled:
                continue
            yes, no = ("No", "Yes") if _NEGATED_COND_RE.match(nodes[cond_id].text) else ("Yes", "No")
            branch = sorted(
                (i for i in indices if nodes[proc.edges[i].dst].type != "join"),
                key=lambda i: (nodes[proc.edges[i].dst].source_line, i),
            )
            first = branch[0] if branch else None
            last = branch[-1] if len(branch) > 1 else None
            for i in unlabeled:
                if i == first:
                    resolved[i] = yes
                elif i == last or nodes[proc.edges[i].dst].type == "join":
                    resolved[i] = no
        return resolved

    # ------------------------------------------------------------------
    # Text helpers
    # ------------------------------------------------------------------

    def _header(self, title: str) -> List[str]:
        return [
            "---",
            f'title: "{escape_label(title)}"',
            "---",
            f"flowchart {self.direction}",
        ]

    def _label(self, text: str) -> str:
        text = re.sub(r"\s+", " ", text or "").strip()
        if len(text) > self.max_label:
            text = text[: self.max_label - 3].rstrip() + "..."
        return escape_label(text)

    def _node_line(self, node: Node) -> str:
        shape = "loopEnd" if is_loop_terminator(node) else node.type
        opening, closing = _SHAPES.get(shape, _SHAPES["op"])
        if shape in ("join", "spacer"):
            label = " "
        else:
            label = self._label(node.text)
            if node.comment:
                label += "<br/>' " + self._label(node.comment)
        css = _CLASS_OF.get(shape)
        suffix = f":::{css}" if css else ""
        return f"    {sanitize_id(node.id)}{opening}{label}{closing}{suffix}"

    def _edge_line(self, src: str, dst: str, label: str, dashed: bool = False) -> str:
        arrow = "-.->" if dashed else "-->"
        if label:
            return f'    {sanitize_id(src)} {arrow}|"{escape_label(label)}"| {sanitize_id(dst)}'
        return f"    {sanitize_id(src)} {arrow} {sanitize_id(dst)}"


def parse_back_edges(mermaid: str) -> List[Tuple[str, str]]:
    """
    ``(terminator id, header id)`` pairs of the dashed back-edges in
    rendered flowchart text, in order of appearance.
    """
    pattern = re.compile(r'^\s*(\w+) -\.->\|"[^"]*"\| (\w+)\s*$')
    pairs: List[Tuple[str, str]] = []
    for line in mermaid.splitlines():
        m = pattern.match(line)
        if m:
            pairs.append((m.group(1), m.group(2)))
    return pairs
