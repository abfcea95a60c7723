"""Tests for SourceModule construction: declarations, export and import tables."""
import pytest

from conftest import extract_module
from symtrace.analyzer.errors import DuplicateExportError, NotFoundSpecifier, ParseError
from symtrace.analyzer.module_model import (
    MODULE_BODY,
    DefaultExport,
    DefaultImport,
    NamedExport,
    NamedImport,
    NamespaceImport,
    NamespaceReExport,
    ReExport,
    Symbol,
    WildcardReExport,
)

KNOWN = ('src/a.js', 'src/b.js', 'src/lib/index.js')


class TestImportTable:
    """Import statements become discriminated entries keyed by local alias."""

    def test_default_named_and_namespace_imports(self):
        module = extract_module("""
            import A, { b, c as d } from './a';
            import * as Lib from './lib';
        """, known=KNOWN)

        assert module.imports['A'] == DefaultImport('src/a.js', 'A')
        assert module.imports['b'] == NamedImport('src/a.js', 'b', 'b')
        assert module.imports['d'] == NamedImport('src/a.js', 'c', 'd')
        assert module.imports['Lib'] == NamespaceImport('src/lib/index.js', 'Lib')

    def test_named_default_import_is_a_default_import(self):
        module = extract_module("import { default as Thing } from './a';", known=KNOWN)
        assert module.imports['Thing'] == DefaultImport('src/a.js', 'Thing')

    def test_unresolved_specifier_is_recorded_not_fatal(self):
        module = extract_module("import React from 'react';", known=KNOWN)

        entry = module.imports['React']
        assert entry.source_module == 'react'
        assert entry.resolved is False
        assert any(isinstance(d, NotFoundSpecifier) for d in module.diagnostics), \
            "Unresolved specifier should be recorded as NotFoundSpecifier"

    def test_side_effect_import_binds_nothing(self):
        module = extract_module("import './a';", known=KNOWN)
        assert dict(module.imports) == {}
        assert module.diagnostics == ()


class TestExportTable:
    """Export forms map external names to their specs."""

    def test_declaration_exports(self):
        module = extract_module("""
            export function useThing() {}
            export class Widget {}
            export const A = 1, B = 2;
        """)

        assert module.exports['useThing'] == NamedExport('useThing', 'useThing')
        assert module.exports['Widget'] == NamedExport('Widget', 'Widget')
        assert module.exports['A'] == NamedExport('A', 'A')
        assert module.exports['B'] == NamedExport('B', 'B')
        assert [d.name for d in module.declarations] == ['useThing', 'Widget', 'A', 'B']

    def test_export_clause_aliasing(self):
        module = extract_module("""
            const X = 1;
            export { X as Y, X };
        """)

        assert module.exports['Y'] == NamedExport('X', 'Y')
        assert module.exports['X'] == NamedExport('X', 'X')

    def test_named_default_export(self):
        module = extract_module("export default function Page() { return null; }")

        assert module.exports['default'] == DefaultExport('Page')
        assert module.has_declaration('Page')

    def test_anonymous_default_export_gets_synthetic_declaration(self):
        module = extract_module("export default () => null;")

        assert module.exports['default'] == DefaultExport('default')
        assert module.declaration('default').kind == 'default'

    def test_default_export_of_identifier(self):
        module = extract_module("""
            const Page = () => null;
            export default Page;
        """)
        assert module.exports['default'] == DefaultExport('Page')
        assert not module.has_declaration('default')

    def test_re_exports(self):
        module = extract_module("""
            export { a, b as c } from './a';
            export { default as B } from './b';
            export * from './lib';
            export * as Ns from './a';
        """, known=KNOWN)

        assert module.exports['a'] == ReExport('src/a.js', 'a', 'a')
        assert module.exports['c'] == ReExport('src/a.js', 'b', 'c')
        assert module.exports['B'] == ReExport('src/b.js', 'default', 'B')
        assert module.exports['Ns'] == NamespaceReExport('src/a.js', 'Ns')
        assert module.wildcard_exports == (WildcardReExport('src/lib/index.js'),)

    def test_duplicate_export_keeps_first(self):
        module = extract_module("""
            const X = 1;
            const Z = 2;
            export { X as Y };
            export { Z as Y };
        """)

        assert module.exports['Y'] == NamedExport('X', 'Y')
        assert any(isinstance(d, DuplicateExportError) for d in module.diagnostics)


class TestDeclarations:
    """Module-scope declarations and their bodies."""

    def test_top_level_destructuring_declares_each_name(self):
        module = extract_module("""
            import * as Icons from './a';
            const { Home, Search: Find } = Icons;
        """, known=KNOWN)

        assert module.has_declaration('Home')
        assert module.has_declaration('Find')
        assert not module.has_declaration('Search')

    def test_top_level_statements_form_module_body(self):
        module = extract_module("""
            import App from './a';
            render(App, document.getElementById('root'));
        """, known=KNOWN)

        body = module.declaration(MODULE_BODY)
        assert body is not None, "Top-level statements should be collected"
        assert [r.name for r in body.references] == ['App']

    def test_typescript_declarations(self):
        module = extract_module("""
            export interface Props { size: Size }
            export type Size = 'sm' | 'lg';
            export enum Color { Red, Blue }
        """, module_path='src/types.ts')

        kinds = {d.name: d.kind for d in module.declarations}
        assert kinds == {'Props': 'interface', 'Size': 'type', 'Color': 'enum'}
        refs = module.declaration('Props').references
        assert [r.name for r in refs] == ['Size']

    def test_exported_locals(self):
        module = extract_module("""
            const A = 1;
            export { A, A as B };
            export default A;
        """)
        assert module.exported_locals() == {'A': ('A', 'B', 'default')}


def test_syntax_error_raises_parse_error():
    """Malformed text raises ParseError carrying the module path."""
    with pytest.raises(ParseError) as exc_info:
        extract_module("export const = ;", module_path='src/broken.js')

    assert exc_info.value.module_path == 'src/broken.js'
    assert exc_info.value.line == 1


def test_symbol_parse_round_trip():
    symbol = Symbol.parse('src/a.js:Thing')
    assert symbol == Symbol('src/a.js', 'Thing')
    assert str(symbol) == 'src/a.js:Thing'
    assert Symbol.parse('src/a.js') == Symbol('src/a.js', 'default')
