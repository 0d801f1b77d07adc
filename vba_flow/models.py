"""
Core data models for the VBA flow analyser.

Everything the pipeline hands to an external collaborator is a tree of these
dataclasses; :meth:`CFGDocument.to_dict` flattens it into mapping / list
primitives only, so the result can be written straight to JSON.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Error kinds
# ---------------------------------------------------------------------------


class VbaFlowError(Exception):
    """Base class for the hard failures that abort a run."""


class DirectoryNotFoundError(VbaFlowError, FileNotFoundError):
    """The project folder handed to the symbol-table scan does not exist."""


class ModuleFileNotFoundError(VbaFlowError, FileNotFoundError):
    """The target module file does not exist."""


class InvalidDocumentError(VbaFlowError, ValueError):
    """The renderer was given a missing or malformed CFG document."""


# ---------------------------------------------------------------------------
# Node / edge types
# ---------------------------------------------------------------------------

NODE_TYPES = frozenset(
    {
        "start",    # Procedure entry
        "end",      # Procedure exit (footer, Exit Sub, Err.Raise, End …)
        "op",       # Plain statement
        "cond",     # If / ElseIf condition
        "loop",     # Do / While / For header
        "loopEnd",  # Loop / Wend / Next terminator
        "join",     # Synthesised re-convergence point
        "switch",   # Select Case
        "case",     # Case / Case Else arm
        "call",     # Statement containing one or more call sites
        "label",    # Line label (GoTo anchor)
        "goto",     # GoTo statement
        "block",    # With block header
        "spacer",   # Layout-only node
    }
)


@dataclass
class Node:
    """A single execution point in a procedure's control-flow graph."""

    id: str
    type: str
    text: str
    source_line: int
    comment: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "text": self.text,
            "sourceLine": self.source_line,
        }
        if self.comment:
            data["comment"] = self.comment
        return data


@dataclass
class Edge:
    """A directed, optionally labelled, control-flow edge."""

    src: str
    dst: str
    label: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.src, "to": self.dst, "label": self.label}


@dataclass
class CallSite:
    """One call expression found inside a procedure body."""

    target: str           # "Module.Proc" when resolved, else the name as written
    resolved: bool
    source_line: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "resolved": self.resolved,
            "sourceLine": self.source_line,
        }


@dataclass
class LoopSpan:
    """Header / terminator pair of one matched loop."""

    head_id: str
    end_id: str
    start_line: int
    end_line: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headId": self.head_id,
            "endId": self.end_id,
            "startLine": self.start_line,
            "endLine": self.end_line,
        }


@dataclass
class UnresolvedCall:
    """
    A call site whose target no module of the project declares.

    Collected by :class:`~vba_flow.pipeline.vba_analysis.VbaAnalysis` and
    exposed via ``analysis.unresolved_calls``.
    """

    target: str          # Name as written, e.g. "Foo" or "Helpers.Foo"
    caller: str          # Qualified caller, e.g. "Module1.Main"
    source_line: int
    source_file: str     # Empty when the module came from a string

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "caller": self.caller,
            "sourceLine": self.source_line,
            "sourceFile": self.source_file,
        }

    def __str__(self) -> str:
        where = f"{Path(self.source_file).name}:" if self.source_file else "line "
        return f"{self.target:<20} called from {self.caller} ({where}{self.source_line})"


# ---------------------------------------------------------------------------
# Procedure
# ---------------------------------------------------------------------------


@dataclass
class Procedure:
    """
    The control-flow graph of one ``Sub`` / ``Function`` / ``Property``.

    ``loop_spans`` is a convenience index produced by the builder; the
    renderer re-derives span membership from node types and lines.
    """

    name: str
    kind: str             # Sub | Function | Property Get | Property Let | Property Set
    start_line: int
    end_line: int
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    calls: List[CallSite] = field(default_factory=list)
    loop_spans: List[LoopSpan] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"Procedure(name={self.name!r}, kind={self.kind!r}, "
            f"nodes={len(self.nodes)}, edges={len(self.edges)}, "
            f"calls={len(self.calls)})"
        )

    def node(self, node_id: str) -> Optional[Node]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "calls": [c.to_dict() for c in self.calls],
            "loopSpans": [s.to_dict() for s in self.loop_spans],
        }


# ---------------------------------------------------------------------------
# CFGDocument – the final output unit
# ---------------------------------------------------------------------------


@dataclass
class CFGDocument:
    """All procedure graphs of one module plus the project call graph."""

    module_name: str
    procedures: List[Procedure]
    call_graph: Dict[str, Any] = field(
        default_factory=lambda: {"nodes": [], "edges": []}
    )

    def __repr__(self) -> str:
        return (
            f"CFGDocument(module={self.module_name!r}, "
            f"procedures={len(self.procedures)})"
        )

    def procedure(self, name: str) -> Optional[Procedure]:
        lowered = name.lower()
        for proc in self.procedures:
            if proc.name.lower() == lowered:
                return proc
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "moduleName": self.module_name,
            "procedures": [p.to_dict() for p in self.procedures],
            "callGraph": self.call_graph,
        }

    def to_json_str(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Any) -> CFGDocument:
        """
        Rebuild a document from its ``to_dict`` form.

        Raises
        ------
        InvalidDocumentError
            When *data* is not a mapping or a required key / field is missing
            or has the wrong primitive type.
        """
        if not isinstance(data, dict):
            raise InvalidDocumentError(
                f"CFG document must be a mapping, got {type(data).__name__}"
            )
        try:
            module_name = data["moduleName"]
            raw_procs = data["procedures"]
            if not isinstance(module_name, str) or not isinstance(raw_procs, list):
                raise TypeError("moduleName must be a string, procedures a list")
            procedures = [_procedure_from_dict(p) for p in raw_procs]
            call_graph = data.get("callGraph") or {"nodes": [], "edges": []}
            if not isinstance(call_graph, dict):
                raise TypeError("callGraph must be a mapping")
            call_graph = dict(call_graph)
            call_graph.setdefault("nodes", [])
            call_graph.setdefault("edges", [])
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise InvalidDocumentError(f"Malformed CFG document: {exc}") from exc
        return cls(module_name=module_name, procedures=procedures, call_graph=call_graph)


def _node_type(value: Any) -> str:
    if value not in NODE_TYPES:
        raise ValueError(f"unknown node type {value!r}")
    return value


def _procedure_from_dict(data: Dict[str, Any]) -> Procedure:
    return Procedure(
        name=str(data["name"]),
        kind=str(data.get("kind", "Sub")),
        start_line=int(data.get("startLine", 0)),
        end_line=int(data.get("endLine", 0)),
        nodes=[
            Node(
                id=str(n["id"]),
                type=_node_type(n["type"]),
                text=str(n.get("text", "")),
                source_line=int(n.get("sourceLine", 0)),
                comment=n.get("comment"),
            )
            for n in data["nodes"]
        ],
        edges=[
            Edge(src=str(e["from"]), dst=str(e["to"]), label=str(e.get("label", "")))
            for e in data["edges"]
        ],
        calls=[
            CallSite(
                target=str(c["target"]),
                resolved=bool(c["resolved"]),
                source_line=int(c.get("sourceLine", 0)),
            )
            for c in data.get("calls", [])
        ],
        loop_spans=[
            LoopSpan(
                head_id=str(s["headId"]),
                end_id=str(s["endId"]),
                start_line=int(s.get("startLine", 0)),
                end_line=int(s.get("endLine", 0)),
            )
            for s in data.get("loopSpans", [])
        ],
    )
