"""
SymbolTable / SymbolTableBuilder
================================

Maps every module of a VBA project folder to the set of procedure names it
declares.  The table is built once per run, before any control-flow builder
consults it, and is read-only afterwards.

Lookups are case-insensitive (VBA identifiers are) while the declared
spelling is preserved for display.  When two modules declare the same name
the linear scan over modules in sorted order decides; this is a heuristic,
not a proof-carrying resolver.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..models import DirectoryNotFoundError
from .keywords import MODULE_EXTENSIONS, MODULE_NAME_RE, PROC_HEADER_RE
from .normalizer import LineNormalizer

logger = logging.getLogger(__name__)


class SymbolTable:
    """
    Module name -> declared procedure names.

    Parameters
    ----------
    modules:
        Optional initial mapping (e.g. from a previous scan or a test).
    """

    def __init__(self, modules: Optional[Dict[str, Iterable[str]]] = None) -> None:
        # lower(module) -> declared module spelling
        self._module_names: Dict[str, str] = {}
        # lower(module) -> {lower(proc): declared proc spelling}
        self._procs: Dict[str, Dict[str, str]] = {}
        for module, names in (modules or {}).items():
            self.add(module, names)

    # ------------------------------------------------------------------
    # Mutation (build phase only)
    # ------------------------------------------------------------------

    def add(self, module: str, names: Iterable[str]) -> None:
        """Merge *names* into the entry for *module*."""
        key = module.lower()
        self._module_names.setdefault(key, module)
        procs = self._procs.setdefault(key, {})
        for name in names:
            procs.setdefault(name.lower(), name)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def module_names(self) -> List[str]:
        """Declared module names in sorted (case-insensitive) order."""
        return [self._module_names[k] for k in sorted(self._module_names)]

    def find_module(self, name: str) -> Optional[str]:
        """Declared spelling of module *name*, or ``None`` if unknown."""
        return self._module_names.get(name.lower())

    def declares(self, module: str, proc: str) -> Optional[str]:
        """Declared spelling of *proc* in *module*, or ``None``."""
        return self._procs.get(module.lower(), {}).get(proc.lower())

    def find_declaring_module(
        self, proc: str, prefer: str = ""
    ) -> Optional[Tuple[str, str]]:
        """
        Locate the module declaring *proc*.

        *prefer* (the calling module) wins when it declares the name;
        otherwise modules are scanned in sorted order and the first match is
        returned as ``(module, proc)`` in declared spelling.
        """
        if prefer:
            hit = self.declares(prefer, proc)
            if hit is not None:
                return self.find_module(prefer) or prefer, hit
        for key in sorted(self._procs):
            hit = self._procs[key].get(proc.lower())
            if hit is not None:
                return self._module_names[key], hit
        return None

    def as_mapping(self) -> Dict[str, Set[str]]:
        """Plain ``module -> set(procedure names)`` view."""
        return {
            self._module_names[k]: set(v.values()) for k, v in self._procs.items()
        }

    def to_dict(self) -> Dict[str, List[str]]:
        return {m: sorted(names) for m, names in sorted(self.as_mapping().items())}

    def __contains__(self, module: str) -> bool:
        return module.lower() in self._module_names

    def __len__(self) -> int:
        return len(self._module_names)

    def __repr__(self) -> str:
        total = sum(len(v) for v in self._procs.values())
        return f"SymbolTable(modules={len(self)}, procedures={total})"


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


def module_name_of(lines: Sequence[str], fallback: str) -> str:
    """Read ``Attribute VB_Name = "..."``; fall back to *fallback*."""
    for line in lines:
        m = MODULE_NAME_RE.match(line)
        if m:
            return m.group(1)
    return fallback


def declared_procedures(lines: Sequence[str]) -> List[str]:
    """Names of every procedure header in normalised *lines*, in order."""
    names: List[str] = []
    for line in lines:
        m = PROC_HEADER_RE.match(line)
        if m and m.group(2) not in names:
            names.append(m.group(2))
    return names


class SymbolTableBuilder:
    """
    Scans a project folder and builds a :class:`SymbolTable`.

    Parameters
    ----------
    encoding:
        Text encoding of the exported module files.  VBE exports use the
        system ANSI code page, so ``cp1252`` / ``cp932`` are common choices.
    extensions:
        File suffixes treated as modules (compared case-insensitively).
    max_workers:
        Files are scanned independently; values above 1 use a thread pool.
        Results are always merged serially in sorted file order.
    """

    def __init__(
        self,
        encoding: str = "utf-8",
        extensions: Sequence[str] = MODULE_EXTENSIONS,
        max_workers: int = 1,
    ) -> None:
        self.encoding = encoding
        self.extensions = tuple(e.lower() for e in extensions)
        self.max_workers = max(1, max_workers)
        self._normalizer = LineNormalizer()

    def build(self, directory: str | Path) -> SymbolTable:
        """
        Build the table for every module file directly inside *directory*.

        Raises
        ------
        DirectoryNotFoundError
            If *directory* does not exist or is not a directory.
        """
        folder = Path(directory)
        if not folder.is_dir():
            raise DirectoryNotFoundError(f"Project directory not found: {folder}")

        files = self.module_files(folder)
        logger.info("Scanning %d module file(s) in %s", len(files), folder)

        if self.max_workers > 1 and len(files) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                scanned = list(pool.map(self.scan_file, files))
        else:
            scanned = [self.scan_file(f) for f in files]

        table = SymbolTable()
        for module, names in scanned:
            table.add(module, names)
        logger.info("Symbol table: %r", table)
        return table

    def module_files(self, folder: Path) -> List[Path]:
        return sorted(
            f
            for f in folder.iterdir()
            if f.is_file() and f.suffix.lower() in self.extensions
        )

    def scan_file(self, path: Path) -> Tuple[str, List[str]]:
        """
        Return ``(module_name, declared procedure names)`` for one file.

        A file that cannot be read contributes an empty name list under its
        file stem instead of aborting the scan.
        """
        try:
            text = path.read_text(encoding=self.encoding, errors="replace")
        except (OSError, UnicodeError) as exc:
            logger.warning("Could not read %s (%s); contributing no symbols", path, exc)
            return path.stem, []
        return self.scan_text(text, fallback_name=path.stem)

    def scan_text(self, source: str, fallback_name: str) -> Tuple[str, List[str]]:
        raw = source.splitlines()
        module = module_name_of(raw, fallback_name)
        normalised = self._normalizer.normalize(raw)
        return module, declared_procedures(normalised.lines)
