"""SourceModule construction from parsed syntax trees."""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from tree_sitter import Node, Tree

from .errors import DuplicateExportError, NotFoundSpecifier, SymtraceError
from .i18n import LabelTree, TranslationCollector
from .module_model import (
    DEFAULT_EXPORT,
    MODULE_BODY,
    Declaration,
    DefaultExport,
    DefaultImport,
    DynamicImport,
    ExportEntry,
    ImportEntry,
    NamedExport,
    NamedImport,
    NamespaceImport,
    NamespaceReExport,
    ReExport,
    SourceModule,
    Usage,
    WildcardReExport,
)
from .parser import node_text, parse_module, string_value
from .routes import RouteCollector
from .usage_extractor import UsageExtractor, pattern_names

logger = logging.getLogger(__name__)

DECLARATION_KINDS = {
    'function_declaration': 'function',
    'generator_function_declaration': 'function',
    'class_declaration': 'class',
    'abstract_class_declaration': 'class',
    'interface_declaration': 'interface',
    'type_alias_declaration': 'type',
    'enum_declaration': 'enum',
}

VARIABLE_DECLARATIONS = ('lexical_declaration', 'variable_declaration')

# Top-level statements that never run code worth tracking
IGNORED_STATEMENTS = frozenset({'comment', 'empty_statement', 'hash_bang_line', 'function_signature'})


def _name_or_string(node: Node) -> str:
    return string_value(node) if node.type == 'string' else node_text(node)


class _ModuleBuilder:
    """Mutable tables for one module while its top level is walked."""

    def __init__(self, module_path: str, resolve):
        self.module_path = module_path
        self._resolve = resolve
        self.declarations: Dict[str, Declaration] = {}
        self.exports: Dict[str, ExportEntry] = {}
        self.wildcards: List[WildcardReExport] = []
        self.imports: Dict[str, ImportEntry] = {}
        self.diagnostics: List[SymtraceError] = []
        self.declarators: Dict[str, Node] = {}
        self.module_body: List[Node] = []
        self.default_value: Optional[Node] = None
        self._resolved: Dict[str, Tuple[str, bool]] = {}

    def source(self, specifier: str) -> Tuple[str, bool]:
        if specifier not in self._resolved:
            target = self._resolve(self.module_path, specifier)
            if target is None:
                self.diagnostics.append(NotFoundSpecifier(self.module_path, specifier))
                self._resolved[specifier] = (specifier, False)
            else:
                self._resolved[specifier] = (target, True)
        return self._resolved[specifier]

    def declare(self, name: str, kind: str, nodes: Sequence[Node], extract):
        existing = self.declarations.get(name)
        if existing is not None:
            self.declarations[name] = existing.merged_with(nodes)
        else:
            self.declarations[name] = Declaration(name, kind, nodes, extract)

    def export(self, name: str, entry: ExportEntry):
        if name in self.exports:
            self.diagnostics.append(DuplicateExportError(self.module_path, name))
            return
        self.exports[name] = entry


class ModuleExtractor:
    """Turn one module's text into an immutable SourceModule.

    Import and export specifiers go through ``specifier_resolver.resolve(importer,
    specifier)``; without a resolver the specifier is taken as the module path.
    """

    def __init__(self, specifier_resolver=None, route_collector: Optional[RouteCollector] = None,
                 translation_collector: Optional[TranslationCollector] = None):
        self.specifier_resolver = specifier_resolver
        self.route_collector = route_collector or RouteCollector()
        self.translation_collector = translation_collector or TranslationCollector()

    def _resolve_specifier(self, importer: str, specifier: str) -> Optional[str]:
        if self.specifier_resolver is None:
            return specifier
        return self.specifier_resolver.resolve(importer, specifier)

    def extract_module(self, module_path: str, source_text: bytes | str) -> SourceModule:
        """Parse and extract one module.

        Raises:
            ParseError: If the text has syntax errors
        """
        tree = parse_module(module_path, source_text)
        return self.build_module(module_path, tree)

    def build_module(self, module_path: str, tree: Tree) -> SourceModule:
        builder = _ModuleBuilder(module_path, self._resolve_specifier)
        usage_extractor: Optional[UsageExtractor] = None

        def extract(nodes: Sequence[Node]) -> Tuple[Usage, ...]:
            usages = usage_extractor.extract(nodes)
            return tuple(self._resolve_dynamic(builder, usage) for usage in usages)

        for node in tree.root_node.named_children:
            self._visit_top_level(builder, node, extract)

        # Module-scope bindings are known only after the whole top level is read
        usage_extractor = UsageExtractor(set(builder.declarations) | set(builder.imports))

        if builder.module_body:
            builder.declare(MODULE_BODY, 'module', builder.module_body, extract)

        labels: Optional[LabelTree] = None
        labels_declarator = builder.declarators.get(self.translation_collector.labels_name)
        if labels_declarator is not None:
            labels = self.translation_collector.labels_from_declarator(labels_declarator)

        routes = ()
        if self.route_collector.is_route_module(module_path):
            table = self._route_table(builder)
            if table is not None:
                routes = self.route_collector.collect(table, extract)
                logger.debug("%s: %d routes", module_path, len(routes))

        declarations = tuple(builder.declarations.values())
        translation_usage = {}
        if labels is not None:
            translation_usage = self.translation_collector.usage(labels, declarations)

        return SourceModule(
            module_path=module_path,
            declarations=declarations,
            exports=builder.exports,
            wildcard_exports=tuple(builder.wildcards),
            imports=builder.imports,
            routes=routes,
            translation_usage=translation_usage,
            diagnostics=tuple(builder.diagnostics),
            tree=tree,
        )

    def _resolve_dynamic(self, builder: _ModuleBuilder, usage: Usage) -> Usage:
        if isinstance(usage, DynamicImport):
            target, _ = builder.source(usage.specifier)
            return DynamicImport(target)
        return usage

    def _route_table(self, builder: _ModuleBuilder) -> Optional[Node]:
        value = builder.default_value
        if value is None:
            return None
        if value.type == 'identifier':
            # export default routes;
            declarator = builder.declarators.get(node_text(value))
            return declarator.child_by_field_name('value') if declarator is not None else None
        return value

    # -- top level ---------------------------------------------------------

    def _visit_top_level(self, builder: _ModuleBuilder, node: Node, extract):
        if node.type == 'import_statement':
            self._visit_import(builder, node)
        elif node.type == 'export_statement':
            self._visit_export(builder, node, extract)
        elif node.type == 'ambient_declaration':
            for child in node.named_children:
                self._declare(builder, child, extract)
        elif node.type in IGNORED_STATEMENTS:
            return
        elif not self._declare(builder, node, extract):
            builder.module_body.append(node)

    def _declare(self, builder: _ModuleBuilder, node: Node, extract) -> List[str]:
        """Add the declarations made by ``node``; returns the declared names."""
        if node.type in VARIABLE_DECLARATIONS:
            names = []
            for declarator in node.named_children:
                if declarator.type != 'variable_declarator':
                    continue
                name_node = declarator.child_by_field_name('name')
                if name_node is None:
                    continue
                for name in pattern_names(name_node):
                    builder.declare(name, 'variable', [declarator], extract)
                    builder.declarators.setdefault(name, declarator)
                    names.append(name)
            return names
        kind = DECLARATION_KINDS.get(node.type)
        if kind is None:
            return []
        name_node = node.child_by_field_name('name')
        if name_node is None:
            return []
        name = node_text(name_node)
        builder.declare(name, kind, [node], extract)
        return [name]

    def _visit_import(self, builder: _ModuleBuilder, node: Node):
        source_node = node.child_by_field_name('source')
        if source_node is None:
            return
        clause = next((child for child in node.named_children if child.type == 'import_clause'), None)
        if clause is None:
            # side-effect import, binds nothing
            return

        source, resolved = builder.source(string_value(source_node))
        for child in clause.named_children:
            if child.type == 'identifier':
                alias = node_text(child)
                builder.imports[alias] = DefaultImport(source, alias, resolved)
            elif child.type == 'namespace_import':
                for ns_child in child.named_children:
                    if ns_child.type == 'identifier':
                        alias = node_text(ns_child)
                        builder.imports[alias] = NamespaceImport(source, alias, resolved)
            elif child.type == 'named_imports':
                for specifier in child.named_children:
                    if specifier.type != 'import_specifier':
                        continue
                    name_node = specifier.child_by_field_name('name')
                    alias_node = specifier.child_by_field_name('alias')
                    if name_node is None:
                        continue
                    imported = _name_or_string(name_node)
                    alias = node_text(alias_node) if alias_node is not None else imported
                    if imported == DEFAULT_EXPORT:
                        builder.imports[alias] = DefaultImport(source, alias, resolved)
                    else:
                        builder.imports[alias] = NamedImport(source, imported, alias, resolved)

    def _visit_export(self, builder: _ModuleBuilder, node: Node, extract):
        is_default = any(child.type == 'default' for child in node.children)
        declaration = node.child_by_field_name('declaration')
        value = node.child_by_field_name('value')
        source_node = node.child_by_field_name('source')

        if declaration is not None:
            names = self._declare(builder, declaration, extract)
            if is_default and names:
                builder.export(DEFAULT_EXPORT, DefaultExport(names[0]))
            else:
                for name in names:
                    builder.export(name, NamedExport(name, name))
            return

        if is_default and value is not None:
            builder.default_value = value
            if value.type == 'identifier':
                builder.export(DEFAULT_EXPORT, DefaultExport(node_text(value)))
            else:
                # anonymous default export: `export default () => ...`, `export default {...}`
                builder.declare(DEFAULT_EXPORT, 'default', [value], extract)
                builder.export(DEFAULT_EXPORT, DefaultExport(DEFAULT_EXPORT))
            return

        if source_node is not None:
            self._visit_re_export(builder, node, string_value(source_node))
            return

        for clause in node.named_children:
            if clause.type != 'export_clause':
                continue
            for local, exported in self._export_specifiers(clause):
                if exported == DEFAULT_EXPORT:
                    builder.export(DEFAULT_EXPORT, DefaultExport(local))
                else:
                    builder.export(exported, NamedExport(local, exported))

    def _visit_re_export(self, builder: _ModuleBuilder, node: Node, specifier: str):
        source, resolved = builder.source(specifier)
        clause = next((child for child in node.named_children if child.type == 'export_clause'), None)
        namespace = next((child for child in node.named_children if child.type == 'namespace_export'), None)
        if namespace is not None:
            names = [child for child in namespace.named_children if child.type in ('identifier', 'string')]
            if names:
                name = _name_or_string(names[0])
                builder.export(name, NamespaceReExport(source, name, resolved))
        elif clause is not None:
            for imported, exported in self._export_specifiers(clause):
                builder.export(exported, ReExport(source, imported, exported, resolved))
        else:
            builder.wildcards.append(WildcardReExport(source, resolved))

    def _export_specifiers(self, clause: Node) -> List[Tuple[str, str]]:
        pairs = []
        for specifier in clause.named_children:
            if specifier.type != 'export_specifier':
                continue
            name_node = specifier.child_by_field_name('name')
            alias_node = specifier.child_by_field_name('alias')
            if name_node is None:
                continue
            local = _name_or_string(name_node)
            exported = _name_or_string(alias_node) if alias_node is not None else local
            pairs.append((local, exported))
        return pairs
