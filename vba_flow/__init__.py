"""
VBA Flow
========

Static control-flow analysis for exported VBA modules (``.bas``, ``.cls``,
``.frm``).  For every ``Sub`` / ``Function`` / ``Property`` of a module it
builds a control-flow graph, resolves call sites against the procedures
declared by the sibling modules of the project folder, and renders both the
per-procedure graphs and the call graph as Mermaid flowcharts.

Quick start
-----------
>>> from vba_flow import VbaAnalysis, MermaidRenderer
>>> analysis = VbaAnalysis(project_dir="./modules")
>>> doc = analysis.analyze_file("./modules/Module1.bas")
>>> for proc in doc.procedures:
...     print(proc.name, len(proc.nodes), len(proc.calls))
>>> print(MermaidRenderer().render_document(doc).render_markdown())
"""

from .models import (
    CallSite,
    CFGDocument,
    DirectoryNotFoundError,
    Edge,
    InvalidDocumentError,
    LoopSpan,
    ModuleFileNotFoundError,
    Node,
    Procedure,
    UnresolvedCall,
    VbaFlowError,
)
from .builder.flow_builder import ControlFlowBuilder
from .output.call_graph import CallGraph, CallGraphAssembler
from .output.mermaid import MermaidRenderer, RenderedDiagrams
from .pipeline.symbol_table import SymbolTable, SymbolTableBuilder
from .pipeline.vba_analysis import VbaAnalysis

__version__ = "0.1.0"
__all__ = [
    "CallSite",
    "CFGDocument",
    "DirectoryNotFoundError",
    "Edge",
    "InvalidDocumentError",
    "LoopSpan",
    "ModuleFileNotFoundError",
    "Node",
    "Procedure",
    "UnresolvedCall",
    "VbaFlowError",
    "ControlFlowBuilder",
    "CallGraph",
    "CallGraphAssembler",
    "MermaidRenderer",
    "RenderedDiagrams",
    "SymbolTable",
    "SymbolTableBuilder",
    "VbaAnalysis",
]
