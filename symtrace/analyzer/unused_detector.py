"""Unused export detection - exported symbols no entry root can reach."""
import fnmatch
import posixpath
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Sequence

from .module_model import Symbol
from .snapshot import GraphSnapshot
from .trace_engine import Direction, TraceEngine

DEFAULT_ENTRY_PATTERNS = ('index.*', 'main.*')


def entry_roots_from_patterns(snapshot: GraphSnapshot,
                              patterns: Sequence[str] = DEFAULT_ENTRY_PATTERNS) -> List[Symbol]:
    """Every declaration of modules whose file name matches one of ``patterns``."""
    roots: List[Symbol] = []
    for module_path in sorted(snapshot.modules):
        file_name = posixpath.basename(module_path)
        if any(fnmatch.fnmatch(file_name, pattern) for pattern in patterns):
            roots.extend(snapshot.module_symbols(module_path))
    return roots


class UnusedExportDetector:
    """Report exported Symbols outside the forward closure of the entry roots.

    A namespace object used as a whole value reaches every export of its module,
    so such exports are never reported even when only some are really read.
    """

    def __init__(self, snapshot: GraphSnapshot):
        self.snapshot = snapshot
        self.engine = TraceEngine(snapshot)

    def detect(self, entry_roots: Iterable[Symbol]) -> List[Symbol]:
        """Sorted exported Symbols unreachable from ``entry_roots``."""
        reachable = self.engine.forward_closure(entry_roots, Direction.DEPENDENCIES)
        return sorted(symbol for symbol in self.snapshot.exported_symbols if symbol not in reachable)

    def get_unused_stats(self, entry_roots: Iterable[Symbol]) -> dict:
        """Get statistics about unused exports.

        Returns:
            Dictionary with totals, percentage, per-extension counts and the symbols
        """
        unused = self.detect(entry_roots)
        total = len(self.snapshot.exported_symbols)

        by_extension: Dict[str, int] = {}
        for symbol in unused:
            ext = PurePosixPath(symbol.module_path).suffix
            by_extension[ext] = by_extension.get(ext, 0) + 1

        return {
            'total_exports': total,
            'unused_count': len(unused),
            'unused_percentage': (len(unused) / total * 100) if total > 0 else 0,
            'by_extension': by_extension,
            'unused': unused,
        }
