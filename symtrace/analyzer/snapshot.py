"""Immutable graph snapshots and the store that swaps them."""
import hashlib
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

import networkx as nx

from .errors import SymtraceError
from .module_model import SourceModule, Symbol

Edge = Tuple[Symbol, Symbol]


@dataclass(frozen=True)
class GraphSnapshot:
    """One consistent view of the dependency graph.

    Nodes are canonical Symbols; an edge ``(a, b)`` means the body of ``a``
    references ``b``. The networkx graph is frozen, so readers can share it
    across threads.
    """
    project_root: str
    graph: nx.DiGraph
    modules: Mapping[str, SourceModule]
    edges: Tuple[Edge, ...]
    errors: Tuple[SymtraceError, ...] = ()
    symbol_to_routes: Mapping[Symbol, Tuple[str, ...]] = field(default_factory=dict)
    translation_usage: Mapping[str, Tuple[Symbol, ...]] = field(default_factory=dict)
    exported_symbols: Mapping[Symbol, Tuple[str, ...]] = field(default_factory=dict)
    generation: int = 0

    def __post_init__(self):
        if not nx.is_frozen(self.graph):
            object.__setattr__(self, 'graph', nx.freeze(self.graph))
        for name in ('modules', 'symbol_to_routes', 'translation_usage', 'exported_symbols'):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    @classmethod
    def empty(cls, project_root: str = ".") -> 'GraphSnapshot':
        return cls(project_root=str(project_root), graph=nx.DiGraph(), modules={}, edges=())

    def fingerprint(self) -> str:
        """SHA-256 of the ordered edge list; equal for identical input."""
        digest = hashlib.sha256()
        for consumer, dependency in self.edges:
            digest.update(f"{consumer}\t{dependency}\n".encode('utf-8'))
        return digest.hexdigest()

    def has_symbol(self, symbol: Symbol) -> bool:
        return symbol in self.graph

    def is_dangling(self, symbol: Symbol) -> bool:
        return bool(self.graph.nodes[symbol].get('dangling')) if symbol in self.graph else False

    def module_symbols(self, module_path: str) -> List[Symbol]:
        module = self.modules.get(module_path)
        if module is None:
            return []
        return [Symbol(module_path, decl.name) for decl in module.declarations]

    def dependencies(self, symbol: Symbol) -> List[Symbol]:
        return list(self.graph.successors(symbol)) if symbol in self.graph else []

    def used_by(self, symbol: Symbol) -> List[Symbol]:
        return list(self.graph.predecessors(symbol)) if symbol in self.graph else []

    def errors_by_severity(self, severity: str) -> List[SymtraceError]:
        return [error for error in self.errors if error.severity == severity]

    def stats(self) -> Dict[str, int]:
        dangling = sum(1 for _, data in self.graph.nodes(data=True) if data.get('dangling'))
        return {
            'modules': len(self.modules),
            'symbols': self.graph.number_of_nodes() - dangling,
            'dangling_symbols': dangling,
            'edges': len(self.edges),
            'routes': len({route for routes in self.symbol_to_routes.values() for route in routes}),
            'translation_keys': len(self.translation_usage),
            'errors': len(self.errors_by_severity('error')),
            'warnings': len(self.errors_by_severity('warning')),
        }


class SnapshotStore:
    """Holds the current snapshot; ``swap`` replaces it atomically.

    Readers keep whatever snapshot they took, so a rebuild never shows them a
    half-updated graph.
    """

    def __init__(self, snapshot: Optional[GraphSnapshot] = None):
        self._lock = threading.Lock()
        self._current = snapshot or GraphSnapshot.empty()

    @property
    def current(self) -> GraphSnapshot:
        with self._lock:
            return self._current

    def swap(self, snapshot: GraphSnapshot) -> GraphSnapshot:
        """Install ``snapshot`` and return the one it replaced."""
        with self._lock:
            previous, self._current = self._current, snapshot
        return previous
