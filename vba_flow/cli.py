"""
VBA Flow – command-line interface
=================================

Usage
-----
::

    python -m vba_flow.cli MODULE [OPTIONS]

Options
-------
--project-dir, -p     Folder of sibling modules used to resolve calls
                      (default: the folder of MODULE).
--format, -f          ``json`` (default), ``mermaid``, ``markdown`` or
                      ``callgraph-dot``.
--procedure NAME      Only emit the diagram of one procedure (mermaid).
--output, -o          Output file path (default: stdout).
--encoding            Encoding of the module files (default: utf-8).
--workers N           Threads used for the symbol-table scan.
--verbose, -v         Enable DEBUG logging.

Examples
--------
::

    python -m vba_flow.cli modules/Module1.bas
    python -m vba_flow.cli modules/Module1.bas -f markdown -o Module1.md
    python -m vba_flow.cli Sheet1.cls -p ./modules -f mermaid --procedure Main
    python -m vba_flow.cli Module1.bas --encoding cp1252 -f callgraph-dot
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .models import VbaFlowError
from .output.mermaid import MermaidRenderer
from .pipeline.vba_analysis import VbaAnalysis


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vba_flow",
        description="VBA Flow – control-flow graphs and call graphs for VBA modules",
    )
    p.add_argument("module", help="Exported VBA module file (.bas / .cls / .frm)")
    p.add_argument(
        "--project-dir", "-p",
        default="",
        metavar="DIR",
        help="Folder of sibling module files used to resolve call targets",
    )
    p.add_argument(
        "--format", "-f",
        choices=["json", "mermaid", "markdown", "callgraph-dot"],
        default="json",
        help="Output format (default: json)",
    )
    p.add_argument(
        "--procedure",
        default="",
        metavar="NAME",
        help="With --format mermaid, emit only this procedure's flowchart",
    )
    p.add_argument(
        "--output", "-o",
        default="-",
        metavar="FILE",
        help="Output file (default: stdout)",
    )
    p.add_argument(
        "--encoding",
        default="utf-8",
        help="Text encoding of the module files (default: utf-8)",
    )
    p.add_argument(
        "--workers",
        type=int,
        default=1,
        metavar="N",
        help="Threads for the symbol-table scan (default: 1)",
    )
    p.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    analysis = VbaAnalysis(
        project_dir=args.project_dir,
        encoding=args.encoding,
        max_workers=args.workers,
    )

    try:
        doc = analysis.analyze_file(args.module)
        output_text = _render(doc, analysis, args)
    except VbaFlowError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if output_text is None:
        print(f"error: no procedure named {args.procedure!r} in {doc.module_name}",
              file=sys.stderr)
        return 1

    if args.output == "-":
        print(output_text)
    else:
        Path(args.output).write_text(output_text, encoding="utf-8")
        print(f"Output written to {args.output}", file=sys.stderr)

    _report_unresolved(analysis)
    return 0


def _render(doc, analysis: VbaAnalysis, args: argparse.Namespace) -> str | None:
    fmt = args.format
    if fmt == "json":
        return doc.to_json_str()
    if fmt == "callgraph-dot":
        return analysis.call_graph.to_dot()

    renderer = MermaidRenderer()
    if fmt == "mermaid" and args.procedure:
        proc = doc.procedure(args.procedure)
        if proc is None:
            return None
        return renderer.render_procedure(proc, title=f"{doc.module_name}.{proc.name}")

    diagrams = renderer.render_document(doc)
    if fmt == "markdown":
        return diagrams.render_markdown()
    return "\n".join(list(diagrams.procedures.values()) + [diagrams.call_graph])


# ---------------------------------------------------------------------------
# Helper: report unresolved calls to stderr
# ---------------------------------------------------------------------------

def _report_unresolved(analysis: VbaAnalysis) -> None:
    missing = analysis.unresolved_calls
    if not missing:
        return
    print(
        f"\nWARNING: {len(missing)} unresolved call"
        f"{'' if len(missing) == 1 else 's'}:",
        file=sys.stderr,
    )
    for call in missing:
        print(f"  [UNRESOLVED] {call}", file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
