"""Tests for cross-module resolution of re-export chains."""
import textwrap

import pytest

from symtrace.analyzer.errors import AmbiguousExportError, ResolutionError
from symtrace.analyzer.extractor import ModuleExtractor
from symtrace.analyzer.module_model import NamespaceTarget, Symbol
from symtrace.analyzer.path_resolver import InMemorySpecifierResolver
from symtrace.analyzer.resolver import SymbolResolver


def make_resolver(files: dict) -> SymbolResolver:
    extractor = ModuleExtractor(InMemorySpecifierResolver(files))
    modules = {
        path: extractor.extract_module(path, textwrap.dedent(text))
        for path, text in files.items()
    }
    return SymbolResolver(modules)


def test_named_export_resolves_to_declaration():
    resolver = make_resolver({'a.js': "export function foo() {}"})
    assert resolver.resolve_export('a.js', 'foo') == (Symbol('a.js', 'foo'),)


def test_alias_and_default_resolve_to_same_origin():
    """`export { X as Y }` and `export default X` both name the origin X."""
    resolver = make_resolver({'a.js': """
        const X = 1;
        export { X as Y };
        export default X;
    """})
    assert resolver.resolve_export('a.js', 'Y') == (Symbol('a.js', 'X'),)
    assert resolver.resolve_export('a.js', 'default') == (Symbol('a.js', 'X'),)


def test_re_export_chain_through_imports():
    resolver = make_resolver({
        'c.js': "export const foo = 1;",
        'b.js': "import { foo as bar } from './c';\nexport { bar };",
        'a.js': "export { bar as baz } from './b';",
    })
    assert resolver.resolve_export('a.js', 'baz') == (Symbol('c.js', 'foo'),)


def test_wildcard_re_export_is_transitive():
    resolver = make_resolver({
        'c.js': "export const foo = 1;",
        'b.js': "export * from './c';",
        'a.js': "export * from './b';",
    })
    table = resolver.flattened_exports('a.js')
    assert table == {'foo': (Symbol('c.js', 'foo'),)}


def test_explicit_export_shadows_wildcard():
    resolver = make_resolver({
        'b.js': "export const foo = 1;",
        'a.js': "export * from './b';\nexport const foo = 2;",
    })
    assert resolver.resolve_export('a.js', 'foo') == (Symbol('a.js', 'foo'),)


def test_wildcard_never_re_exports_default():
    resolver = make_resolver({
        'b.js': "export default function B() {}\nexport const other = 1;",
        'a.js': "export * from './b';",
    })
    assert resolver.export_names('a.js') == ('other',)
    result = resolver.resolve_export('a.js', 'default')
    assert result == (Symbol('a.js', 'default'),)
    assert resolver.is_dangling(result[0])


def test_ambiguous_wildcards_fan_out():
    resolver = make_resolver({
        'x.js': "export const dup = 1;",
        'y.js': "export const dup = 2;",
        'a.js': "export * from './x';\nexport * from './y';",
    })
    assert resolver.resolve_export('a.js', 'dup') == (Symbol('x.js', 'dup'), Symbol('y.js', 'dup'))

    warnings = [e for e in resolver.recorded_errors() if isinstance(e, AmbiguousExportError)]
    assert len(warnings) == 1
    assert warnings[0].module_path == 'a.js'
    assert warnings[0].severity == 'warning'


def test_same_origin_through_two_wildcards_is_not_ambiguous():
    resolver = make_resolver({
        'x.js': "export const one = 1;",
        'y.js': "export * from './x';",
        'a.js': "export * from './x';\nexport * from './y';",
    })
    assert resolver.resolve_export('a.js', 'one') == (Symbol('x.js', 'one'),)
    assert resolver.recorded_errors() == []


def test_self_re_export_is_resolution_error():
    resolver = make_resolver({'a.js': "export { foo } from './a';"})

    with pytest.raises(ResolutionError) as exc_info:
        resolver.resolve_export('a.js', 'foo')
    assert exc_info.value.module_path == 'a.js'

    # cached failure, not a second walk
    with pytest.raises(ResolutionError):
        resolver.resolve_export('a.js', 'foo')


def test_mutual_named_re_export_cycle_terminates():
    resolver = make_resolver({
        'a.js': "export { foo } from './b';",
        'b.js': "export { foo } from './a';",
    })
    with pytest.raises(ResolutionError) as exc_info:
        resolver.resolve_export('a.js', 'foo')
    assert len(exc_info.value.chain) == 3


def test_wildcard_cycle_is_recorded_and_terminates():
    resolver = make_resolver({
        'a.js': "export * from './b';\nexport const fromA = 1;",
        'b.js': "export * from './a';\nexport const fromB = 1;",
    })
    assert resolver.export_names('a.js') == ('fromA', 'fromB')
    assert resolver.export_names('b.js') == ('fromA', 'fromB')
    assert resolver.resolve_export('a.js', 'fromB') == (Symbol('b.js', 'fromB'),)

    cycles = [e for e in resolver.recorded_errors() if isinstance(e, ResolutionError)]
    assert [e.module_path for e in cycles] == ['a.js', 'b.js']


def test_wildcard_cycle_results_do_not_depend_on_query_order():
    files = {
        'a.js': "export * from './b';\nexport * from './d';",
        'b.js': "export * from './a';\nexport * from './e';",
        'd.js': "export const foo = 1;",
        'e.js': "export const foo = 2;",
    }
    expected = (Symbol('d.js', 'foo'), Symbol('e.js', 'foo'))
    assert make_resolver(files).resolve_export('a.js', 'foo') == expected

    resolver = make_resolver(files)
    assert resolver.resolve_export('b.js', 'foo') == expected
    assert resolver.resolve_export('a.js', 'foo') == expected, \
        "Resolving b.js first must not cache a partial answer for a.js"


def test_namespace_re_export_and_members():
    resolver = make_resolver({
        'icons.js': "export const Home = 1;\nexport const Search = 2;",
        'index.js': "export * as Icons from './icons';",
        'use.js': "import { Icons } from './index';",
    })
    targets = resolver.resolve_binding('use.js', 'Icons')
    assert targets == (NamespaceTarget('icons.js'),)
    assert resolver.resolve_members(targets, ('Home',)) == (Symbol('icons.js', 'Home'),)
    assert resolver.resolve_members(targets) == (Symbol('icons.js', 'Home'), Symbol('icons.js', 'Search'))


def test_nested_namespace_escape_is_cycle_safe():
    resolver = make_resolver({
        'a.js': "export * as B from './b';\nexport const inA = 1;",
        'b.js': "export * as A from './a';\nexport const inB = 1;",
    })
    escaped = resolver.resolve_members((NamespaceTarget('a.js'),))
    assert escaped == (Symbol('a.js', 'inA'), Symbol('b.js', 'inB'))


def test_unknown_module_gives_dangling_symbol():
    resolver = make_resolver({'a.js': "import { useState } from 'react';"})
    result = resolver.resolve_binding('a.js', 'useState')
    assert result == (Symbol('react', 'useState'),)
    assert resolver.is_dangling(result[0])
