"""
VbaAnalysis
===========

Full VBA module analysis pipeline.

Combines :class:`~vba_flow.pipeline.symbol_table.SymbolTableBuilder`
(project-wide procedure names), :class:`~vba_flow.pipeline.normalizer.LineNormalizer`
and :class:`~vba_flow.passes.procedure_block.ProcedureBlockPass` (procedure
slicing), :class:`~vba_flow.builder.flow_builder.ControlFlowBuilder` (one CFG
per procedure) and :class:`~vba_flow.output.call_graph.CallGraphAssembler`
into one :class:`~vba_flow.models.CFGDocument`.

The symbol table is always complete before the first procedure is built.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..builder.flow_builder import ControlFlowBuilder
from ..models import CFGDocument, ModuleFileNotFoundError, UnresolvedCall
from ..output.call_graph import CallGraph, CallGraphAssembler
from ..passes.procedure_block import ProcedureBlockPass
from .keywords import MODULE_EXTENSIONS
from .normalizer import LineNormalizer
from .symbol_table import SymbolTable, SymbolTableBuilder, module_name_of

logger = logging.getLogger(__name__)


class VbaAnalysis:
    """
    High-level facade for VBA control-flow analysis.

    Parameters
    ----------
    project_dir:
        Folder holding the sibling module files used to resolve calls.  When
        empty, :meth:`analyze_file` uses the folder of the target file and
        :meth:`analyze_text` resolves against the analysed module only.
    encoding:
        Text encoding of the module files.
    extensions:
        File suffixes treated as modules.
    max_workers:
        Thread count for the symbol-table scan (1 = serial).
    """

    def __init__(
        self,
        project_dir: str = "",
        encoding: str = "utf-8",
        extensions: Sequence[str] = MODULE_EXTENSIONS,
        max_workers: int = 1,
    ) -> None:
        self.project_dir = project_dir
        self.encoding = encoding
        self._table_builder = SymbolTableBuilder(
            encoding=encoding, extensions=extensions, max_workers=max_workers
        )
        self._normalizer = LineNormalizer()
        self._segmenter = ProcedureBlockPass()
        self._assembler = CallGraphAssembler()
        #: Call graph of the most recently analysed module.
        self.call_graph: Optional[CallGraph] = None
        #: Populated by every ``analyze_*`` call – one entry per call site
        #: whose target could not be resolved.
        self.unresolved_calls: List[UnresolvedCall] = []

    # ------------------------------------------------------------------
    # Primary API
    # ------------------------------------------------------------------

    def build_symbol_table(self, directory: str | Path) -> SymbolTable:
        """Scan *directory* (raises ``DirectoryNotFoundError`` when missing)."""
        return self._table_builder.build(directory)

    def analyze_file(self, file_path: str | Path) -> CFGDocument:
        """
        Analyse a single exported module file.

        Parameters
        ----------
        file_path:
            Path to a ``.bas`` / ``.cls`` / ``.frm`` file.

        Returns
        -------
        CFGDocument

        Raises
        ------
        ModuleFileNotFoundError
            If *file_path* does not exist.
        DirectoryNotFoundError
            If the configured ``project_dir`` does not exist.
        """
        path = Path(file_path)
        if not path.is_file():
            raise ModuleFileNotFoundError(f"Module file not found: {path}")

        table = self.build_symbol_table(self.project_dir or path.parent)
        return self._analyze_path(path, table)

    def analyze_text(
        self,
        source: str,
        module_name: str = "",
        symbol_table: Optional[SymbolTable] = None,
    ) -> CFGDocument:
        """
        Analyse VBA source supplied as a **string**.

        Parameters
        ----------
        source:
            Module text.
        module_name:
            Used when the text carries no ``Attribute VB_Name`` line
            (default ``Module1``).
        symbol_table:
            Pre-built table; otherwise ``project_dir`` is scanned when set.
        """
        if symbol_table is None:
            symbol_table = (
                self.build_symbol_table(self.project_dir)
                if self.project_dir
                else SymbolTable()
            )
        raw = source.splitlines()
        name = module_name_of(raw, module_name or "Module1")
        return self._analyze_lines(raw, name, symbol_table, source_file="")

    def analyze_project(self, directory: str | Path = "") -> Dict[str, CFGDocument]:
        """
        Analyse every module file of a project folder against one shared
        symbol table.

        Returns
        -------
        Dict[str, CFGDocument]
            Module name -> document, in sorted file order.
        """
        folder = Path(directory or self.project_dir or ".")
        table = self.build_symbol_table(folder)
        unresolved: List[UnresolvedCall] = []
        results: Dict[str, CFGDocument] = {}
        for path in self._table_builder.module_files(folder):
            doc = self._analyze_path(path, table)
            unresolved.extend(self.unresolved_calls)
            results[doc.module_name] = doc
        self.unresolved_calls = unresolved
        return results

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _analyze_path(self, path: Path, table: SymbolTable) -> CFGDocument:
        logger.info("Analysing %s", path)
        raw = path.read_text(encoding=self.encoding, errors="replace").splitlines()
        name = module_name_of(raw, path.stem)
        return self._analyze_lines(raw, name, table, source_file=str(path))

    def _analyze_lines(
        self,
        raw: List[str],
        module_name: str,
        table: SymbolTable,
        source_file: str,
    ) -> CFGDocument:
        normalised = self._normalizer.normalize(raw)
        blocks = self._segmenter.run(normalised.lines)

        # The analysed module may not be among the scanned files (string
        # input, or a file outside project_dir); its own procedures must
        # still resolve.  Work on a copy so a shared table stays untouched.
        table = SymbolTable(table.as_mapping())
        table.add(module_name, [b.name for b in blocks])

        builder = ControlFlowBuilder(table, module_name)
        procedures = [builder.build(b, normalised.comments) for b in blocks]
        self.call_graph = self._assembler.assemble(module_name, procedures)

        self.unresolved_calls = [
            UnresolvedCall(
                target=site.target,
                caller=f"{module_name}.{proc.name}",
                source_line=site.source_line,
                source_file=source_file,
            )
            for proc in procedures
            for site in proc.calls
            if not site.resolved
        ]
        if self.unresolved_calls:
            logger.warning(
                "%s: %d unresolved call%s",
                module_name,
                len(self.unresolved_calls),
                "" if len(self.unresolved_calls) == 1 else "s",
            )

        logger.info("%s: %d procedure(s)", module_name, len(procedures))
        return CFGDocument(
            module_name=module_name,
            procedures=procedures,
            call_graph=self.call_graph.to_dict(),
        )
