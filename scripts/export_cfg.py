"""
export_cfg.py
=============

Generate control-flow and call-graph files for every module of a VBA project
folder.

For each module the script produces, under ``<output-dir>/<Module>/``:

* ``cfg.json``        – the CFG document (nodes, edges, calls, loop spans,
  call graph)
* ``<Procedure>.mmd`` – one Mermaid flowchart per procedure
* ``callgraph.mmd``   – Mermaid call graph of the module
* ``callgraph.dot``   – the same call graph as Graphviz DOT

All modules are resolved against one symbol table built from the folder.

Usage
-----
    python scripts/export_cfg.py \\
        --project-dir tests/fixtures/project \\
        --output-dir outputs/cfg

Render the call graph to SVG (requires Graphviz installed)
----------------------------------------------------------
    dot -Tsvg outputs/cfg/Module1/callgraph.dot -o outputs/cfg/Module1/callgraph.svg
"""
from __future__ import annotations

import argparse
import logging
import re
import subprocess
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from vba_flow.models import CFGDocument
from vba_flow.output.call_graph import CallGraphAssembler
from vba_flow.output.mermaid import MermaidRenderer
from vba_flow.pipeline.vba_analysis import VbaAnalysis


def _safe_filename(name: str, fallback: str = "Module") -> str:
    """Keep letters, digits, ``-`` and ``.``; everything else becomes ``_``."""
    safe = re.sub(r"[^A-Za-z0-9\-.]", "_", name)
    safe = re.sub(r"_+", "_", safe).strip("_")
    return safe or fallback


def _try_render_svg(dot_path: Path) -> None:
    """Try to render the DOT file to SVG via Graphviz if available."""
    try:
        svg_path = dot_path.with_suffix(".svg")
        subprocess.run(
            ["dot", "-Tsvg", str(dot_path), "-o", str(svg_path)],
            check=True,
            capture_output=True,
        )
        print(f"    rendered {svg_path}")
    except (FileNotFoundError, subprocess.CalledProcessError):
        pass  # Graphviz not installed


def export_one(
    doc: CFGDocument,
    output_dir: Path,
    renderer: MermaidRenderer,
    render_svg: bool,
) -> None:
    dest = output_dir / _safe_filename(doc.module_name)
    dest.mkdir(parents=True, exist_ok=True)

    n_calls = sum(len(p.calls) for p in doc.procedures)
    n_unresolved = sum(1 for p in doc.procedures for c in p.calls if not c.resolved)
    print(f"  module  : {doc.module_name}")
    print(f"  procs   : {len(doc.procedures)}  calls: {n_calls}  unresolved: {n_unresolved}")

    # --- Write JSON ---
    json_path = dest / "cfg.json"
    json_path.write_text(doc.to_json_str(), encoding="utf-8")
    print(f"  wrote   : {json_path}")

    # --- Write Mermaid ---
    diagrams = renderer.render_document(doc)
    seen: dict[str, int] = {}
    for name, text in diagrams.procedures.items():
        base = _safe_filename(name, fallback="Procedure")
        # Distinct names can collide after sanitisation
        if base in seen:
            seen[base] += 1
            base = f"{base}_{seen[base]}"
        else:
            seen[base] = 0
        mmd_path = dest / f"{base}.mmd"
        mmd_path.write_text(text, encoding="utf-8")
        print(f"  wrote   : {mmd_path}")

    cg_path = dest / "callgraph.mmd"
    cg_path.write_text(diagrams.call_graph, encoding="utf-8")
    print(f"  wrote   : {cg_path}")

    # --- Write DOT ---
    call_graph = CallGraphAssembler().assemble(doc.module_name, doc.procedures)
    dot_path = dest / "callgraph.dot"
    dot_path.write_text(call_graph.to_dot(), encoding="utf-8")
    print(f"  wrote   : {dot_path}")
    if render_svg:
        _try_render_svg(dot_path)


def main() -> None:
    p = argparse.ArgumentParser(
        description="Export VBA control-flow graphs (JSON / Mermaid / DOT)"
    )
    p.add_argument("--project-dir", "-p", required=True, metavar="DIR",
                   help="Folder of exported .bas / .cls / .frm files")
    p.add_argument("--output-dir", "-o", default="outputs/cfg", metavar="DIR")
    p.add_argument("--encoding", default="utf-8")
    p.add_argument("--workers", type=int, default=1, metavar="N")
    p.add_argument("--render-svg", action="store_true",
                   help="Attempt to auto-render DOT → SVG via Graphviz")
    p.add_argument("--verbose", "-v", action="store_true")
    args = p.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    out = Path(args.output_dir)
    out.mkdir(parents=True, exist_ok=True)

    analysis = VbaAnalysis(
        project_dir=args.project_dir,
        encoding=args.encoding,
        max_workers=args.workers,
    )
    renderer = MermaidRenderer()
    for name, doc in analysis.analyze_project().items():
        print(f"\n=== {name} ===")
        export_one(doc, out, renderer, render_svg=args.render_svg)


if __name__ == "__main__":
    main()
