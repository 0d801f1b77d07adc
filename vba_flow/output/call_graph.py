"""
call_graph.py
=============

Folds the call-site records of every procedure of a module into a
project-level **call graph**.

Graph semantics
---------------
* **Nodes** – qualified procedure names ``Module.Proc``.  Every procedure of
  the analysed module is a node even when it makes no calls; every call
  target is a node too.  An unresolved bare target keeps its name as
  written (``Foo``) so the diagram can still show it.
* **Edges** – one directed edge per call site (caller → callee).  Two call
  sites between the same pair are both kept, each with its own
  ``resolved`` flag and ``sourceLine``.

The graph is held in a :class:`networkx.MultiDiGraph`, which keeps parallel
edges and insertion order.

Outputs
-------
* **dict** – the ``callGraph`` member of a CFG document.
* **DOT** (Graphviz) – ``dot -Tsvg -o calls.svg calls.dot``.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

import networkx as nx

from ..models import Procedure

logger = logging.getLogger(__name__)

_FILL = {
    "resolved":   "#27AE60",   # emerald green
    "unresolved": "#E74C3C",   # alizarin red
}
_EDGE_COLOR = {
    "resolved":   "#444444",
    "unresolved": "#E74C3C",
}


def _status(resolved: bool) -> str:
    return "resolved" if resolved else "unresolved"


class CallGraph:
    """Caller → callee multigraph for one analysed module."""

    def __init__(self, module_name: str, graph: nx.MultiDiGraph) -> None:
        self.module_name = module_name
        self.graph = graph

    def __repr__(self) -> str:
        return (
            f"CallGraph(module={self.module_name!r}, "
            f"nodes={self.graph.number_of_nodes()}, "
            f"edges={self.graph.number_of_edges()})"
        )

    def unresolved_targets(self) -> List[str]:
        """Node ids of call targets no module declares, in first-seen order."""
        return [n for n, data in self.graph.nodes(data=True) if not data["resolved"]]

    def callees(self, qualified_name: str) -> List[str]:
        """Distinct direct callees of *qualified_name* (empty when unknown)."""
        if qualified_name not in self.graph:
            return []
        return list(dict.fromkeys(self.graph.successors(qualified_name)))

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [
                {"id": node, "module": data["module"], "resolved": data["resolved"]}
                for node, data in self.graph.nodes(data=True)
            ],
            "edges": [
                {
                    "from": src,
                    "to": dst,
                    "resolved": data["resolved"],
                    "sourceLine": data["source_line"],
                }
                for src, dst, data in self.graph.edges(data=True)
            ],
        }

    def to_dot(self, title: str = "") -> str:
        """Render the call graph as a Graphviz DOT string."""
        title = title or f"{self.module_name} Call Graph"
        lines: List[str] = [
            f'digraph "{_dot_escape(self.module_name)}_calls" {{',
            f'    label="{_dot_escape(title)}";',
            '    labelloc=t;',
            '    rankdir=LR;',
            '    node [fontname="Courier New", fontsize=11, shape=box, style=filled, fontcolor=white];',
            '    edge [fontname="Courier New", fontsize=9];',
            '',
        ]

        for node, data in self.graph.nodes(data=True):
            status = _status(data["resolved"])
            style = "filled" if data["resolved"] else "filled,dashed"
            label = _dot_escape(node)
            if not data["resolved"]:
                label += "\\n[UNRESOLVED]"
            lines.append(
                f'    "{_dot_escape(node)}" [label="{label}", '
                f'style="{style}", fillcolor="{_FILL[status]}"];'
            )

        lines.append('')

        for src, dst, data in self.graph.edges(data=True):
            status = _status(data["resolved"])
            style = "solid" if data["resolved"] else "dashed"
            lines.append(
                f'    "{_dot_escape(src)}" -> "{_dot_escape(dst)}" '
                f'[label="L{data["source_line"]}", color="{_EDGE_COLOR[status]}", style={style}];'
            )

        lines.append('}')
        return '\n'.join(lines) + '\n'


def _dot_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------


class CallGraphAssembler:
    """Builds a :class:`CallGraph` from the procedures of one module."""

    def assemble(self, module_name: str, procedures: Iterable[Procedure]) -> CallGraph:
        procedures = list(procedures)
        graph = nx.MultiDiGraph()

        for proc in procedures:
            graph.add_node(f"{module_name}.{proc.name}", module=module_name, resolved=True)

        for proc in procedures:
            caller = f"{module_name}.{proc.name}"
            for site in proc.calls:
                if site.target not in graph:
                    module, sep, _ = site.target.rpartition(".")
                    graph.add_node(
                        site.target,
                        module=module if sep else "",
                        resolved=site.resolved,
                    )
                elif site.resolved and not graph.nodes[site.target]["resolved"]:
                    graph.nodes[site.target]["resolved"] = True
                graph.add_edge(
                    caller,
                    site.target,
                    resolved=site.resolved,
                    source_line=site.source_line,
                )

        logger.debug("Assembled call graph for %s: %d node(s), %d edge(s)",
                     module_name, graph.number_of_nodes(), graph.number_of_edges())
        return CallGraph(module_name, graph)
