"""symtrace CLI - symbol-level dependency tracing for JavaScript/TypeScript projects."""
import json
import time
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import typer
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .analyzer.graph_builder import DependencyGraphBuilder
from .analyzer.module_model import Symbol
from .analyzer.path_resolver import FileSystemSpecifierResolver, discover_modules
from .analyzer.query import TraceService, dump_portable, load_translations
from .analyzer.snapshot import GraphSnapshot, SnapshotStore
from .analyzer.trace_engine import TraceLimits
from .analyzer.unused_detector import UnusedExportDetector, entry_roots_from_patterns
from .config import get_config
from .utils.logger import SafeConsole, configure_logging

app = typer.Typer(
    name="symtrace",
    help="Symbol-level dependency graph and path tracing for JS/TS projects",
    add_completion=False
)
console = SafeConsole()


def _fail(message: str):
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    raise typer.Exit(1)


def _display_path(module_path: str, project_root: Path) -> str:
    try:
        return Path(module_path).relative_to(project_root).as_posix()
    except ValueError:
        return module_path


def build_project(project_path: Path, show_progress: bool = True) -> GraphSnapshot:
    """Discover, ingest and build one project with settings from the environment."""
    config = get_config()
    try:
        settings = dict(
            workers=config.workers,
            route_files=config.route_files,
            labels_name=config.labels_name,
            translate_function=config.translate_function,
        )
    except ValueError as e:
        _fail(str(e))
    builder = DependencyGraphBuilder(
        project_path,
        specifier_resolver=FileSystemSpecifierResolver(project_path),
        **settings,
    )
    files = discover_modules(project_path)
    start_time = time.time()
    if show_progress:
        with console.status(f"[bold blue]Analyzing {len(files)} modules...[/bold blue]"):
            builder.ingest_files(files)
            snapshot = builder.rebuild()
    else:
        builder.ingest_files(files)
        snapshot = builder.rebuild()
    if show_progress:
        console.print(f"[dim]Built graph in {time.time() - start_time:.2f}s[/dim]")
    return snapshot


def _resolve_project(project_path: str) -> Path:
    path = Path(project_path).resolve()
    if not path.is_dir():
        _fail(f"Project path does not exist: {path}")
    return path


def _limits(max_depth: Optional[int], max_paths: Optional[int], timeout: Optional[float]) -> TraceLimits:
    try:
        limits = get_config().trace_limits()
    except ValueError as e:
        _fail(str(e))
    overrides = {}
    if max_depth is not None:
        overrides['max_depth'] = max_depth
    if max_paths is not None:
        overrides['max_paths_per_pair'] = max_paths
    if timeout is not None:
        overrides['timeout'] = timeout
    return replace(limits, **overrides)


def _print_problems(snapshot: GraphSnapshot, project_root: Path):
    errors = snapshot.errors_by_severity('error')
    if not errors:
        return
    console.print(f"[yellow]⚠ {len(errors)} problems while building (run with --verbose for details)[/yellow]")
    for error in errors[:10]:
        location = _display_path(error.module_path or '', project_root)
        console.print(f"  [dim]{escape(location)}[/dim] {escape(error.message)}")


@app.command()
def trace(
    project_path: str = typer.Argument(".", help="Project root path to analyze"),
    translations: Path = typer.Option(..., "--translations", "-t", help="JSON file of translation key -> text"),
    query: str = typer.Option(..., "--query", "-q", help="Translation key or text to search for"),
    exact: bool = typer.Option(False, "--exact", help="Match the key or text exactly"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON response"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", min=1, help="Longest path, in symbols"),
    max_paths: Optional[int] = typer.Option(None, "--max-paths", min=1, help="Paths kept per source/route pair"),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0.0, help="Seconds before giving up"),
):
    """Trace translation keys through the component graph to the routes using them."""
    project_root = _resolve_project(project_path)
    if not translations.is_file():
        _fail(f"Translations file does not exist: {translations}")
    try:
        table = load_translations(translations)
    except ValueError as e:
        _fail(f"Invalid translations file: {e}")

    limits = _limits(max_depth, max_paths, timeout)
    snapshot = build_project(project_root, show_progress=not as_json)
    service = TraceService(SnapshotStore(snapshot), table, limits)
    response = service.search(query, exact_match=exact)

    if as_json:
        typer.echo(json.dumps(response, indent=2, ensure_ascii=False))
        return

    if not response['trace_result']:
        console.print(f"[yellow]No translation key matches {escape(query)}[/yellow]")
        return

    for key, routes in response['trace_result'].items():
        tree = Tree(f"[bold cyan]{escape(key)}[/bold cyan] [dim]{escape(table.get(key, ''))}[/dim]")
        if not routes:
            tree.add("[dim]not reachable from any route[/dim]")
        for route, by_symbol in routes.items():
            route_branch = tree.add(f"[bold green]{escape(route)}[/bold green]")
            for symbol_name, paths in by_symbol.items():
                symbol_branch = route_branch.add(f"[magenta]{escape(symbol_name)}[/magenta]")
                for path in paths:
                    steps = " → ".join(
                        f"{escape(step['symbol_name'])} [dim]({escape(_display_path(step['module_path'], project_root))})[/dim]"
                        for step in path
                    )
                    symbol_branch.add(steps)
        console.print(tree)

    if response['truncated']:
        console.print("[yellow]⚠ Results truncated by trace limits[/yellow]")
    _print_problems(snapshot, project_root)


@app.command()
def unused(
    project_path: str = typer.Argument(".", help="Project root path to analyze"),
    entry: Optional[List[str]] = typer.Option(None, "--entry", "-e", help="Entry root as module_path:name (repeatable)"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
):
    """List exported symbols that no entry point reaches."""
    project_root = _resolve_project(project_path)
    snapshot = build_project(project_root, show_progress=not as_json)

    if entry:
        roots = []
        for text in entry:
            symbol = Symbol.parse(text)
            module_path = symbol.module_path
            if not Path(module_path).is_absolute():
                module_path = (project_root / module_path).resolve().as_posix()
            roots.append(Symbol(module_path, symbol.name))
    else:
        roots = entry_roots_from_patterns(snapshot)

    if not roots:
        _fail("No entry roots found; pass --entry module_path:name")

    report = UnusedExportDetector(snapshot).get_unused_stats(roots)

    if as_json:
        typer.echo(json.dumps({
            'total_exports': report['total_exports'],
            'unused_count': report['unused_count'],
            'unused': [symbol.to_dict() for symbol in report['unused']],
        }, indent=2))
        return

    if not report['unused']:
        console.print("[green]✓ Every export is reachable from the entry roots[/green]")
        return

    table = Table(title="Unused Exports")
    table.add_column("Module", style="cyan", no_wrap=False)
    table.add_column("Symbol", style="magenta")
    table.add_column("Exported As", style="dim")
    for symbol in report['unused']:
        table.add_row(
            escape(_display_path(symbol.module_path, project_root)),
            escape(symbol.name),
            escape(", ".join(snapshot.exported_symbols.get(symbol, ()))),
        )
    console.print(table)
    console.print(f"\n[bold yellow]Summary:[/bold yellow] {report['unused_count']} of {report['total_exports']} "
                  f"exports unused ({report['unused_percentage']:.1f}%)")


@app.command()
def export(
    project_path: str = typer.Argument(".", help="Project root path to analyze"),
    translations: Optional[Path] = typer.Option(None, "--translations", "-t", help="JSON file of translation key -> text"),
    output: Path = typer.Option(..., "--output", "-o", help="Where to write the JSON export"),
):
    """Write the graph, routes and translation usage to a portable JSON file."""
    project_root = _resolve_project(project_path)
    table = {}
    if translations is not None:
        if not translations.is_file():
            _fail(f"Translations file does not exist: {translations}")
        try:
            table = load_translations(translations)
        except ValueError as e:
            _fail(f"Invalid translations file: {e}")

    snapshot = build_project(project_root)
    written = dump_portable(snapshot, output, table)
    console.print(f"[green]✓ Wrote {len(snapshot.edges)} edges to {escape(str(written))}[/green]")


@app.command()
def stats(
    project_path: str = typer.Argument(".", help="Project root path to analyze"),
):
    """Display graph statistics for a project."""
    project_root = _resolve_project(project_path)
    snapshot = build_project(project_root)
    numbers = snapshot.stats()

    table = Table(title=f"Graph Statistics: {project_root}", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Modules", str(numbers['modules']))
    table.add_row("Symbols", str(numbers['symbols']))
    table.add_row("Dangling Symbols", str(numbers['dangling_symbols']))
    table.add_row("Edges", str(numbers['edges']))
    table.add_row("Routes", str(numbers['routes']))
    table.add_row("Translation Keys", str(numbers['translation_keys']))
    table.add_row("Errors", str(numbers['errors']))
    table.add_row("Warnings", str(numbers['warnings']))
    console.print(table)
    console.print(f"[dim]fingerprint {snapshot.fingerprint()}[/dim]")
    _print_problems(snapshot, project_root)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging on stderr"),
):
    """symtrace - trace symbols, routes and translation keys through JS/TS code."""
    configure_logging(verbose)


if __name__ == "__main__":
    app()
