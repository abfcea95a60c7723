"""Shared fixtures: build modules and snapshots from in-memory sources."""
import textwrap

import pytest

from symtrace.analyzer.extractor import ModuleExtractor
from symtrace.analyzer.graph_builder import DependencyGraphBuilder
from symtrace.analyzer.module_model import Symbol
from symtrace.analyzer.path_resolver import InMemorySpecifierResolver


def dedent_sources(files: dict) -> dict:
    return {path: textwrap.dedent(text) for path, text in files.items()}


def make_builder(files: dict, workers: int = 1, **kwargs) -> DependencyGraphBuilder:
    files = dedent_sources(files)
    resolver = InMemorySpecifierResolver(files)
    builder = DependencyGraphBuilder('/project', specifier_resolver=resolver, workers=workers, **kwargs)
    builder.ingest_many(files.items())
    return builder


def build_snapshot(files: dict, **kwargs):
    return make_builder(files, **kwargs).build()


def extract_module(code: str, module_path: str = 'src/module.js', known=()):
    """Extract one module; ``known`` lists the other module paths specifiers may resolve to."""
    resolver = InMemorySpecifierResolver(set(known) | {module_path})
    return ModuleExtractor(resolver).extract_module(module_path, textwrap.dedent(code))


def edges_from(snapshot, module_path: str, name: str) -> set:
    symbol = Symbol(module_path, name)
    return set(snapshot.dependencies(symbol))


@pytest.fixture
def snapshot_of():
    """Build a snapshot from ``{module_path: source}``."""
    return build_snapshot


@pytest.fixture
def sym():
    return Symbol
