"""Source Unit Model: per-module declarations, export table and import table.

A SourceModule is built once from one file's text and never patched in place;
re-ingesting a file replaces the whole object.
"""
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from tree_sitter import Node

from .errors import SymtraceError

DEFAULT_EXPORT = 'default'

# Synthetic declaration holding top-level statements (render calls, side effects)
MODULE_BODY = '<module>'


@dataclass(frozen=True, order=True)
class Symbol:
    """Canonical identity of a declaration after aliases and re-exports are resolved."""
    module_path: str
    name: str

    def __str__(self) -> str:
        return f"{self.module_path}:{self.name}"

    def to_dict(self) -> dict:
        return {'module_path': self.module_path, 'symbol_name': self.name}

    @classmethod
    def parse(cls, text: str) -> 'Symbol':
        """Parse ``module_path:name``; a bare module path means its default export."""
        module_path, sep, name = text.rpartition(':')
        if not sep or not module_path:
            return cls(text, DEFAULT_EXPORT)
        return cls(module_path, name)


@dataclass(frozen=True, order=True)
class NamespaceTarget:
    """A whole module exposed as a single value (``import * as ns``, ``export * as ns``)."""
    module_path: str

    def __str__(self) -> str:
        return f"{self.module_path}:*"


Target = Union[Symbol, NamespaceTarget]


# Export table entries

@dataclass(frozen=True)
class NamedExport:
    local_name: str
    exported_name: str


@dataclass(frozen=True)
class DefaultExport:
    local_name: str

    @property
    def exported_name(self) -> str:
        return DEFAULT_EXPORT


@dataclass(frozen=True)
class ReExport:
    """``export { imported as exported } from 'source'``."""
    source_module: str
    imported_name: str
    exported_name: str
    resolved: bool = True


@dataclass(frozen=True)
class WildcardReExport:
    source_module: str
    resolved: bool = True


@dataclass(frozen=True)
class NamespaceReExport:
    source_module: str
    namespace_name: str
    resolved: bool = True

    @property
    def exported_name(self) -> str:
        return self.namespace_name


ExportEntry = Union[NamedExport, DefaultExport, ReExport, NamespaceReExport]


# Import table entries

@dataclass(frozen=True)
class NamedImport:
    source_module: str
    imported_name: str
    local_alias: str
    resolved: bool = True


@dataclass(frozen=True)
class DefaultImport:
    source_module: str
    local_alias: str
    resolved: bool = True

    @property
    def imported_name(self) -> str:
        return DEFAULT_EXPORT


@dataclass(frozen=True)
class NamespaceImport:
    source_module: str
    local_alias: str
    resolved: bool = True


ImportEntry = Union[NamedImport, DefaultImport, NamespaceImport]


# Usage facts produced by the extractor

@dataclass(frozen=True)
class Reference:
    """Use of a module-scope binding, with the static member chain read from it.

    ``Ns.a.b`` gives ``Reference('Ns', ('a', 'b'))``; any other use of ``Ns``
    (passed around, spread, computed access) gives ``Reference('Ns')``.
    """
    name: str
    members: Tuple[str, ...] = ()

    @property
    def is_bare(self) -> bool:
        return not self.members


@dataclass(frozen=True)
class DynamicImport:
    """``import('specifier')`` with a literal specifier; uses the default export."""
    specifier: str


Usage = Union[Reference, DynamicImport]


class Declaration:
    """A named module-scope binding with a body.

    The direct references of the body are computed on first access and cached.
    """

    def __init__(self, name: str, kind: str, nodes: Sequence[Node],
                 extract: Callable[[Sequence[Node]], Tuple[Usage, ...]]):
        self.name = name
        self.kind = kind
        self.nodes = tuple(nodes)
        self._extract = extract

    @property
    def start_line(self) -> int:
        return self.nodes[0].start_point[0] + 1 if self.nodes else 0

    @cached_property
    def references(self) -> Tuple[Usage, ...]:
        return self._extract(self.nodes)

    def merged_with(self, nodes: Sequence[Node]) -> 'Declaration':
        return Declaration(self.name, self.kind, self.nodes + tuple(nodes), self._extract)

    def __repr__(self) -> str:
        return f"Declaration({self.name!r}, kind={self.kind!r}, line={self.start_line})"


@dataclass(frozen=True)
class RouteDefinition:
    """One entry of a route table: URL path and the usages rendering it."""
    path: str
    usages: Tuple[Usage, ...]

    @property
    def bindings(self) -> Tuple[str, ...]:
        return tuple(usage.name for usage in self.usages if isinstance(usage, Reference))


@dataclass(frozen=True)
class SourceModule:
    module_path: str
    declarations: Tuple[Declaration, ...]
    exports: Mapping[str, ExportEntry]
    wildcard_exports: Tuple[WildcardReExport, ...]
    imports: Mapping[str, ImportEntry]
    routes: Tuple[RouteDefinition, ...] = ()
    # declaration name -> translation keys it reads
    translation_usage: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    diagnostics: Tuple[SymtraceError, ...] = ()
    tree: Any = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'exports', MappingProxyType(dict(self.exports)))
        object.__setattr__(self, 'imports', MappingProxyType(dict(self.imports)))
        object.__setattr__(self, 'translation_usage', MappingProxyType(dict(self.translation_usage)))
        index: Dict[str, Declaration] = {decl.name: decl for decl in self.declarations}
        object.__setattr__(self, '_declaration_index', MappingProxyType(index))

    def declaration(self, name: str) -> Optional[Declaration]:
        return self._declaration_index.get(name)

    def has_declaration(self, name: str) -> bool:
        return name in self._declaration_index

    @property
    def bindings(self) -> frozenset:
        """Every module-scope name: declarations plus import aliases."""
        return frozenset(self._declaration_index) | frozenset(self.imports)

    def exported_locals(self) -> Dict[str, Tuple[str, ...]]:
        """Local declaration name -> external names it is exported under."""
        exported: Dict[str, Tuple[str, ...]] = {}
        for name, entry in self.exports.items():
            if isinstance(entry, (NamedExport, DefaultExport)) and self.has_declaration(entry.local_name):
                exported[entry.local_name] = exported.get(entry.local_name, ()) + (name,)
        return exported
