"""Symbol-level dependency graph builder using NetworkX.

Building runs in two phases. Extraction (parse, module tables, per-declaration
references, routes and translation keys) touches one module at a time and runs
on a thread pool. Resolution and the merge into one global graph run afterwards
in sorted module order, so the edge list is identical for identical input no
matter how many workers ran or in which order modules were ingested.
"""
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import networkx as nx

from .errors import ParseError, ResolutionError, SymtraceError
from .extractor import ModuleExtractor
from .i18n import DEFAULT_LABELS_NAME, DEFAULT_TRANSLATE_FUNCTION, TranslationCollector
from .module_model import DynamicImport, Reference, SourceModule, Symbol, Usage, DEFAULT_EXPORT
from .resolver import SymbolResolver
from .routes import DEFAULT_ROUTE_FILES, RouteCollector
from .snapshot import Edge, GraphSnapshot, SnapshotStore

logger = logging.getLogger(__name__)


def default_workers() -> int:
    return min(8, os.cpu_count() or 1)


class DependencyGraphBuilder:
    """Build the global consumer -> dependency graph of canonical Symbols."""

    def __init__(self, project_root: str | Path = ".", specifier_resolver=None,
                 workers: Optional[int] = None,
                 route_files: Iterable[str] = DEFAULT_ROUTE_FILES,
                 labels_name: str = DEFAULT_LABELS_NAME,
                 translate_function: str = DEFAULT_TRANSLATE_FUNCTION,
                 store: Optional[SnapshotStore] = None):
        """Initialize graph builder.

        Args:
            project_root: Root directory reported with query results
            specifier_resolver: Object with ``resolve(importer, specifier)``
                returning a module path or None; None uses specifiers verbatim
            workers: Extraction threads (default: min(8, cpu count))
            route_files: File names treated as route tables
            labels_name: Module-scope name of the translated label object
            translate_function: Function wrapping the label object literal
            store: Snapshot store updated by ``rebuild``
        """
        self.project_root = str(project_root)
        self.workers = workers or default_workers()
        self.extractor = ModuleExtractor(
            specifier_resolver,
            route_collector=RouteCollector(route_files),
            translation_collector=TranslationCollector(labels_name, translate_function),
        )
        self.store = store or SnapshotStore(GraphSnapshot.empty(self.project_root))
        self._sources: Dict[str, bytes | str] = {}
        self._lock = threading.Lock()
        self._generation = 0

    # -- ingestion ---------------------------------------------------------

    def ingest(self, module_path: str, source_text: bytes | str):
        """Add or replace one module; takes effect on the next build."""
        with self._lock:
            self._sources[module_path] = source_text

    def ingest_many(self, modules: Iterable[Tuple[str, bytes | str]]):
        with self._lock:
            for module_path, source_text in modules:
                self._sources[module_path] = source_text

    def ingest_files(self, file_paths: Iterable[str | Path]) -> int:
        """Read files from disk and ingest them under their resolved POSIX path.

        Returns:
            Number of files ingested (unreadable files are skipped)
        """
        count = 0
        for file_path in file_paths:
            path = Path(file_path)
            try:
                with open(path, 'rb') as f:
                    source = f.read()
            except OSError as e:
                logger.warning("Skipping unreadable file %s: %s", path, e)
                continue
            self.ingest(path.resolve().as_posix(), source)
            count += 1
        return count

    def remove(self, module_path: str) -> bool:
        with self._lock:
            return self._sources.pop(module_path, None) is not None

    @property
    def module_paths(self) -> List[str]:
        with self._lock:
            return sorted(self._sources)

    # -- building ----------------------------------------------------------

    def build(self) -> GraphSnapshot:
        """Build a new snapshot from the currently ingested modules.

        Per-module problems (syntax errors, unresolved specifiers, export cycles,
        ambiguous wildcards) are recorded in ``GraphSnapshot.errors``; they never
        abort the build.
        """
        with self._lock:
            sources = sorted(self._sources.items())
            self._generation += 1
            generation = self._generation

        modules, errors = self._extract_all(sources)
        resolver = SymbolResolver(modules)
        graph = nx.DiGraph()
        edges: List[Edge] = []

        for module in modules.values():
            exported = module.exported_locals()
            for decl in module.declarations:
                graph.add_node(Symbol(module.module_path, decl.name), kind=decl.kind,
                               line=decl.start_line, exported=decl.name in exported, dangling=False)

        for module in modules.values():
            for decl in module.declarations:
                consumer = Symbol(module.module_path, decl.name)
                targets: Dict[Symbol, None] = {}
                for usage in decl.references:
                    for target in self._resolve_usage(resolver, module, usage, errors):
                        targets.setdefault(target)
                for target in targets:
                    if target == consumer:
                        continue
                    if target not in graph:
                        graph.add_node(target, dangling=True)
                    graph.add_edge(consumer, target)
                    edges.append((consumer, target))

        # flattening records wildcard cycles, including modules nobody imports from
        for module in modules.values():
            if module.wildcard_exports:
                resolver.export_names(module.module_path)

        for error in resolver.recorded_errors():
            errors.setdefault(self._error_key(error), error)

        snapshot = GraphSnapshot(
            project_root=self.project_root,
            graph=graph,
            modules=modules,
            edges=tuple(edges),
            errors=tuple(sorted(errors.values(), key=lambda e: e.sort_key())),
            symbol_to_routes=self._collect_routes(resolver, modules, errors),
            translation_usage=self._collect_translations(modules),
            exported_symbols=self._collect_exports(modules),
            generation=generation,
        )
        logger.info("Built graph generation %d: %d modules, %d symbols, %d edges, %d problems",
                    generation, len(modules), graph.number_of_nodes(), len(edges), len(snapshot.errors))
        return snapshot

    def rebuild(self) -> GraphSnapshot:
        """Build and atomically install a new snapshot in the store."""
        snapshot = self.build()
        self.store.swap(snapshot)
        return snapshot

    # -- phases ------------------------------------------------------------

    def _extract_one(self, item: Tuple[str, bytes | str]) -> SourceModule | ParseError:
        module_path, source_text = item
        try:
            module = self.extractor.extract_module(module_path, source_text)
            # force the lazy reference sets while still on this worker
            for decl in module.declarations:
                decl.references
            return module
        except ParseError as e:
            return e
        except RecursionError:
            return ParseError(module_path, detail="nesting too deep")

    def _extract_all(self, sources: List[Tuple[str, bytes | str]]) -> Tuple[Dict[str, SourceModule], Dict]:
        errors: Dict[Tuple, SymtraceError] = {}
        modules: Dict[str, SourceModule] = {}

        if self.workers > 1 and len(sources) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                results = list(pool.map(self._extract_one, sources))
        else:
            results = [self._extract_one(item) for item in sources]

        for (module_path, _), result in zip(sources, results):
            if isinstance(result, ParseError):
                logger.warning("Excluding %s: %s", module_path, result.message)
                errors.setdefault(self._error_key(result), result)
                continue
            logger.debug("Extracted %s: %d declarations", module_path, len(result.declarations))
            modules[module_path] = result
            for diagnostic in result.diagnostics:
                errors.setdefault(self._error_key(diagnostic), diagnostic)
        return modules, errors

    @staticmethod
    def _error_key(error: SymtraceError) -> Tuple:
        return (type(error).__name__, error.module_path, error.message)

    def _resolve_usage(self, resolver: SymbolResolver, module: SourceModule, usage: Usage,
                       errors: Dict) -> Tuple[Symbol, ...]:
        try:
            if isinstance(usage, DynamicImport):
                return resolver.resolve_members(resolver.resolve_export(usage.specifier, DEFAULT_EXPORT))
            if isinstance(usage, Reference):
                targets = resolver.resolve_binding(module.module_path, usage.name)
                return resolver.resolve_members(targets, usage.members)
        except ResolutionError as e:
            if self._error_key(e) not in errors:
                logger.warning("%s: %s", e.module_path, e.message)
                errors[self._error_key(e)] = e
        return ()

    def _collect_routes(self, resolver: SymbolResolver, modules: Dict[str, SourceModule],
                        errors: Dict) -> Dict[Symbol, Tuple[str, ...]]:
        routes: Dict[Symbol, Dict[str, None]] = {}
        for module in modules.values():
            for route in module.routes:
                for usage in route.usages:
                    for symbol in self._resolve_usage(resolver, module, usage, errors):
                        if not resolver.is_dangling(symbol):
                            routes.setdefault(symbol, {}).setdefault(route.path)
        return {symbol: tuple(paths) for symbol, paths in sorted(routes.items())}

    def _collect_translations(self, modules: Dict[str, SourceModule]) -> Dict[str, Tuple[Symbol, ...]]:
        usage: Dict[str, Dict[Symbol, None]] = {}
        for module in modules.values():
            for decl_name, keys in module.translation_usage.items():
                for key in keys:
                    usage.setdefault(key, {}).setdefault(Symbol(module.module_path, decl_name))
        return {key: tuple(symbols) for key, symbols in sorted(usage.items())}

    def _collect_exports(self, modules: Dict[str, SourceModule]) -> Dict[Symbol, Tuple[str, ...]]:
        exported = {}
        for module in modules.values():
            for local, names in module.exported_locals().items():
                exported[Symbol(module.module_path, local)] = names
        return dict(sorted(exported.items()))
