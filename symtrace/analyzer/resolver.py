"""Cross-module symbol resolution.

Follows export tables (named, default, re-export, wildcard and namespace entries)
from the name an importer sees to the declaration that defines it. Results are
memoized per ``(module_path, name)``; export cycles raise ResolutionError instead
of recursing forever.
"""
import logging
import threading
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .errors import AmbiguousExportError, ResolutionError, SymtraceError
from .module_model import (
    DEFAULT_EXPORT,
    DefaultExport,
    DefaultImport,
    NamedExport,
    NamedImport,
    NamespaceImport,
    NamespaceReExport,
    NamespaceTarget,
    ReExport,
    SourceModule,
    Symbol,
    Target,
)

logger = logging.getLogger(__name__)

Key = Tuple[str, str]


def _ordered(targets: Iterable[Target]) -> Tuple[Target, ...]:
    # Symbols first, then namespaces, each sorted
    unique = set(targets)
    symbols = sorted(t for t in unique if isinstance(t, Symbol))
    namespaces = sorted(t for t in unique if isinstance(t, NamespaceTarget))
    return tuple(symbols) + tuple(namespaces)


class SymbolResolver:
    """Resolve exported and module-scope names to canonical Symbols.

    One resolver serves one immutable set of modules; build a new one for a new
    snapshot instead of invalidating entries.
    """

    def __init__(self, modules: Mapping[str, SourceModule]):
        self.modules = modules
        self._lock = threading.RLock()
        self._export_cache: Dict[Key, Tuple[Target, ...]] = {}
        self._failures: Dict[Key, ResolutionError] = {}
        self._names_cache: Dict[str, Tuple[str, ...]] = {}
        self._escape_cache: Dict[str, Tuple[Symbol, ...]] = {}
        self._recorded: Dict[Tuple[str, Optional[str], str], SymtraceError] = {}
        self.dangling: Set[Symbol] = set()

    # -- public API ----------------------------------------------------------

    def resolve_export(self, module_path: str, name: str) -> Tuple[Target, ...]:
        """Origins of ``name`` as exported by ``module_path``.

        Raises:
            ResolutionError: If the export chain leads back to itself
        """
        with self._lock:
            return self._resolve_export(module_path, name, ())

    def resolve_binding(self, module_path: str, local_name: str) -> Tuple[Target, ...]:
        """Origins of a module-scope name (declaration or import alias)."""
        with self._lock:
            return self._resolve_binding(module_path, local_name, ())

    def resolve_members(self, targets: Iterable[Target], members: Sequence[str] = ()) -> Tuple[Symbol, ...]:
        """Apply a static member chain to resolved targets.

        ``Ns.a.b`` walks into namespace targets one member at a time. A namespace
        left with no member to read is used as a whole value and escapes to every
        export of its module. Members read from a plain Symbol stay on that Symbol.
        """
        with self._lock:
            result: Dict[Symbol, None] = {}
            for target in targets:
                for symbol in self._apply_members(target, tuple(members)):
                    result.setdefault(symbol)
            return tuple(sorted(result))

    def export_names(self, module_path: str) -> Tuple[str, ...]:
        """Sorted names of the flattened export table (explicit plus wildcard)."""
        with self._lock:
            return self._export_names(module_path)

    def flattened_exports(self, module_path: str) -> Dict[str, Tuple[Target, ...]]:
        """Flattened export table: every visible name mapped to its origins."""
        with self._lock:
            table = {}
            for name in self._export_names(module_path):
                try:
                    table[name] = self._resolve_export(module_path, name, ())
                except ResolutionError as e:
                    self._record(e)
            return table

    def is_dangling(self, symbol: Symbol) -> bool:
        return symbol in self.dangling

    def recorded_errors(self) -> List[SymtraceError]:
        with self._lock:
            return sorted(self._recorded.values(), key=lambda e: e.sort_key())

    # -- resolution --------------------------------------------------------

    def _record(self, error: SymtraceError):
        self._recorded.setdefault((type(error).__name__, error.module_path, error.message), error)

    def _dangling(self, module_path: str, name: str) -> Symbol:
        symbol = Symbol(module_path, name)
        self.dangling.add(symbol)
        return symbol

    def _resolve_export(self, module_path: str, name: str, stack: Tuple[Key, ...]) -> Tuple[Target, ...]:
        key = (module_path, name)
        cached = self._export_cache.get(key)
        if cached is not None:
            return cached
        if key in self._failures:
            raise self._failures[key]
        if key in stack:
            chain = stack[stack.index(key):] + (key,)
            raise ResolutionError(module_path, name, chain)

        module = self.modules.get(module_path)
        if module is None:
            result: Tuple[Target, ...] = (self._dangling(module_path, name),)
        else:
            try:
                result = self._resolve_in_module(module, name, stack + (key,))
            except ResolutionError as e:
                self._failures[key] = e
                raise
        self._export_cache[key] = result
        return result

    def _resolve_in_module(self, module: SourceModule, name: str, stack: Tuple[Key, ...]) -> Tuple[Target, ...]:
        entry = module.exports.get(name)
        if isinstance(entry, (NamedExport, DefaultExport)):
            return self._resolve_binding(module.module_path, entry.local_name, stack)
        if isinstance(entry, ReExport):
            return self._resolve_export(entry.source_module, entry.imported_name, stack)
        if isinstance(entry, NamespaceReExport):
            return (NamespaceTarget(entry.source_module),)

        # default is never re-exported through `export *`
        if name == DEFAULT_EXPORT or not module.wildcard_exports:
            return (self._dangling(module.module_path, name),)

        targets, unknown = self._wildcard_origins(module, name, stack)
        if not targets:
            if unknown:
                return _ordered(self._dangling(source, name) for source in unknown)
            return (self._dangling(module.module_path, name),)
        result = _ordered(targets)
        if len(result) > 1:
            error = AmbiguousExportError(module.module_path, name, [str(t) for t in result])
            logger.warning("%s: %s", module.module_path, error.message)
            self._record(error)
        return result

    def _wildcard_origins(self, module: SourceModule, name: str,
                          stack: Tuple[Key, ...]) -> Tuple[List[Target], List[str]]:
        """Targets for ``name`` among the modules reachable through `export *`.

        A module exporting ``name`` explicitly shadows its own wildcards, so the walk
        stops there. Wildcard cycles are cut by the visited set, not the resolution
        stack. Unparsed modules reached on the way are returned separately.
        """
        targets: List[Target] = []
        unknown: List[str] = []
        visited = {module.module_path}
        queue = [w.source_module for w in module.wildcard_exports]
        while queue:
            source = queue.pop(0)
            if source in visited:
                continue
            visited.add(source)
            source_module = self.modules.get(source)
            if source_module is None:
                unknown.append(source)
            elif name in source_module.exports:
                targets.extend(self._resolve_export(source, name, stack))
            else:
                queue.extend(w.source_module for w in source_module.wildcard_exports)
        return targets, unknown

    def _resolve_binding(self, module_path: str, local_name: str, stack: Tuple[Key, ...]) -> Tuple[Target, ...]:
        module = self.modules.get(module_path)
        if module is None:
            return (self._dangling(module_path, local_name),)
        if module.has_declaration(local_name):
            return (Symbol(module_path, local_name),)
        entry = module.imports.get(local_name)
        if isinstance(entry, NamespaceImport):
            return (NamespaceTarget(entry.source_module),)
        if isinstance(entry, (NamedImport, DefaultImport)):
            return self._resolve_export(entry.source_module, entry.imported_name, stack)
        return ()

    def _export_names(self, module_path: str) -> Tuple[str, ...]:
        cached = self._names_cache.get(module_path)
        if cached is not None:
            return cached
        module = self.modules.get(module_path)
        if module is None:
            return ()

        names: Set[str] = set(module.exports)
        # Union of explicit names over every module reachable through `export *`
        visited = {module_path}
        parents: Dict[str, str] = {}
        queue = [(w.source_module, module_path) for w in module.wildcard_exports]
        while queue:
            source, via = queue.pop(0)
            if source == module_path:
                self._record_wildcard_cycle(module_path, via, parents)
                continue
            if source in visited:
                continue
            visited.add(source)
            parents[source] = via
            source_module = self.modules.get(source)
            if source_module is None:
                continue
            names.update(n for n in source_module.exports if n != DEFAULT_EXPORT)
            queue.extend((w.source_module, source) for w in source_module.wildcard_exports)

        result = tuple(sorted(names))
        self._names_cache[module_path] = result
        return result

    def _record_wildcard_cycle(self, module_path: str, via: str, parents: Dict[str, str]):
        hops = [via]
        while hops[-1] != module_path:
            hops.append(parents[hops[-1]])
        chain = [(hop, '*') for hop in reversed(hops)] + [(module_path, '*')]
        error = ResolutionError(module_path, '*', chain)
        logger.warning("%s: %s", module_path, error.message)
        self._record(error)

    # -- members and namespace escape -------------------------------------

    def _apply_members(self, target: Target, members: Tuple[str, ...]) -> Tuple[Symbol, ...]:
        if isinstance(target, Symbol):
            return (target,)
        if not members:
            return self._escape(target.module_path)
        try:
            inner = self._resolve_export(target.module_path, members[0], ())
        except ResolutionError as e:
            self._record(e)
            return ()
        result: List[Symbol] = []
        for next_target in inner:
            result.extend(self._apply_members(next_target, members[1:]))
        return tuple(result)

    def _escape(self, module_path: str) -> Tuple[Symbol, ...]:
        """Every Symbol reachable through the namespace object of ``module_path``."""
        cached = self._escape_cache.get(module_path)
        if cached is not None:
            return cached
        if module_path not in self.modules:
            return (self._dangling(module_path, '*'),)

        symbols: Dict[Symbol, None] = {}
        visited: Set[str] = set()
        pending = [module_path]
        while pending:
            current = pending.pop(0)
            if current in visited:
                continue
            visited.add(current)
            for name in self._export_names(current):
                if name == DEFAULT_EXPORT:
                    continue
                try:
                    targets = self._resolve_export(current, name, ())
                except ResolutionError as e:
                    self._record(e)
                    continue
                for target in targets:
                    if isinstance(target, Symbol):
                        symbols.setdefault(target)
                    elif target.module_path in self.modules:
                        pending.append(target.module_path)
                    else:
                        symbols.setdefault(self._dangling(target.module_path, '*'))

        result = tuple(sorted(symbols))
        self._escape_cache[module_path] = result
        return result
