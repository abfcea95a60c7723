"""Query contract: translation-key search traced to routes, and portable export."""
import json
import logging
from pathlib import Path
from threading import Event
from typing import Dict, Iterable, List, Mapping, Optional

from .module_model import Symbol
from .snapshot import GraphSnapshot, SnapshotStore
from .trace_engine import Direction, TraceEngine, TraceLimits, TraceResult

logger = logging.getLogger(__name__)


def load_translations(path: str | Path) -> Dict[str, str]:
    """Load a ``{key: text}`` JSON file; nested objects are flattened with dots."""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object of translations")

    flat: Dict[str, str] = {}

    def walk(prefix: str, value):
        if isinstance(value, dict):
            for key, inner in value.items():
                walk(f"{prefix}.{key}" if prefix else str(key), inner)
        else:
            flat[prefix] = str(value)

    walk("", data)
    return flat


def _group_by_name(result: TraceResult) -> Dict[str, Dict[str, List[List[dict]]]]:
    grouped: Dict[str, Dict[str, List[List[dict]]]] = {}
    for route, by_source in result.paths.items():
        for source, paths in by_source.items():
            bucket = grouped.setdefault(route, {}).setdefault(source.name, [])
            bucket.extend([step.to_dict() for step in path] for path in paths)
    return grouped


class TraceService:
    """Answer free-text queries against the store's current snapshot.

    Each query reads the snapshot once, so a rebuild finishing mid-query does not
    mix two graphs in one answer.
    """

    def __init__(self, store: SnapshotStore, translations: Optional[Mapping[str, str]] = None,
                 limits: Optional[TraceLimits] = None):
        self.store = store
        self.translations = dict(translations or {})
        self.limits = limits or TraceLimits()

    def match_keys(self, snapshot: GraphSnapshot, q: str, exact_match: bool = False) -> List[str]:
        """Translation keys whose key or text matches ``q``."""
        candidates = dict.fromkeys(sorted(set(self.translations) | set(snapshot.translation_usage)))
        if exact_match:
            return [key for key in candidates if key == q or self.translations.get(key) == q]
        needle = q.lower()
        return [
            key for key in candidates
            if needle in key.lower() or needle in self.translations.get(key, '').lower()
        ]

    def _trace(self, snapshot: GraphSnapshot, sources: Iterable[Symbol],
               cancel: Optional[Event]) -> TraceResult:
        engine = TraceEngine(snapshot, self.limits)
        routes = snapshot.symbol_to_routes
        return engine.enumerate_paths(sources, lambda symbol: routes.get(symbol, ()),
                                      direction=Direction.USED_BY, cancel=cancel)

    def search(self, q: str, exact_match: bool = False, cancel: Optional[Event] = None) -> dict:
        """Trace every translation key matching ``q`` to the routes rendering it.

        Returns:
            ``{project_root, trace_result: {key: {route: {symbol_name: [path]}}}, truncated}``
            where each path is a list of ``{module_path, symbol_name}`` steps
        """
        snapshot = self.store.current
        trace_result = {}
        truncated = False
        for key in self.match_keys(snapshot, q, exact_match):
            sources = snapshot.translation_usage.get(key, ())
            result = self._trace(snapshot, sources, cancel)
            truncated = truncated or result.truncated
            trace_result[key] = _group_by_name(result)
        logger.debug("search %r matched %d keys", q, len(trace_result))
        return {
            'project_root': snapshot.project_root,
            'trace_result': trace_result,
            'truncated': truncated,
        }

    def trace_symbol(self, module_path: str, name: str, cancel: Optional[Event] = None) -> dict:
        """Same response shape as ``search`` for one Symbol, keyed by ``module_path:name``."""
        snapshot = self.store.current
        symbol = Symbol(module_path, name)
        trace_result = {}
        truncated = False
        if snapshot.has_symbol(symbol):
            result = self._trace(snapshot, [symbol], cancel)
            truncated = result.truncated
            trace_result[str(symbol)] = _group_by_name(result)
        return {
            'project_root': snapshot.project_root,
            'trace_result': trace_result,
            'truncated': truncated,
        }


def export_portable(snapshot: GraphSnapshot, translations: Optional[Mapping[str, str]] = None) -> dict:
    """Self-contained JSON-ready view of a snapshot for offline tools."""
    return {
        'project_root': snapshot.project_root,
        'generation': snapshot.generation,
        'fingerprint': snapshot.fingerprint(),
        'translations': dict(sorted((translations or {}).items())),
        'translation_usage': {
            key: [symbol.to_dict() for symbol in symbols]
            for key, symbols in snapshot.translation_usage.items()
        },
        'symbol_to_routes': [
            {**symbol.to_dict(), 'routes': list(routes)}
            for symbol, routes in snapshot.symbol_to_routes.items()
        ],
        'edges': [[consumer.to_dict(), dependency.to_dict()] for consumer, dependency in snapshot.edges],
        'errors': [error.to_dict() for error in snapshot.errors],
    }


def dump_portable(snapshot: GraphSnapshot, output: str | Path,
                  translations: Optional[Mapping[str, str]] = None) -> Path:
    output = Path(output)
    with open(output, 'w', encoding='utf-8') as f:
        json.dump(export_portable(snapshot, translations), f, indent=2, ensure_ascii=False)
    return output
