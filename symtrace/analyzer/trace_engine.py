"""Reachability and bounded path tracing over a graph snapshot."""
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from threading import Event
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple

import networkx as nx

from .module_model import Symbol
from .snapshot import GraphSnapshot

logger = logging.getLogger(__name__)

TracePath = Tuple[Symbol, ...]
SinkKeys = Callable[[Symbol], Iterable[str]]


class Direction(Enum):
    """Which way edges are followed. Edges point from consumer to dependency."""
    DEPENDENCIES = 'dependencies'
    USED_BY = 'used_by'


@dataclass(frozen=True)
class TraceLimits:
    max_depth: int = 32
    max_paths_per_pair: int = 100
    max_steps: int = 250_000
    timeout: Optional[float] = None


@dataclass
class TraceResult:
    """Paths grouped by sink key, then by source, in discovery order."""
    paths: Dict[str, Dict[Symbol, List[TracePath]]] = field(default_factory=dict)
    truncated: bool = False
    reasons: Set[str] = field(default_factory=set)
    steps: int = 0

    def truncate(self, reason: str):
        self.truncated = True
        self.reasons.add(reason)

    def add(self, key: str, source: Symbol, path: TracePath, limit: int) -> bool:
        bucket = self.paths.setdefault(key, {}).setdefault(source, [])
        if len(bucket) >= limit:
            self.truncate('max_paths')
            return False
        bucket.append(path)
        return True

    @property
    def path_count(self) -> int:
        return sum(len(paths) for by_source in self.paths.values() for paths in by_source.values())

    def to_dict(self) -> dict:
        return {
            'paths': {
                key: {
                    str(source): [[step.to_dict() for step in path] for path in paths]
                    for source, paths in by_source.items()
                }
                for key, by_source in self.paths.items()
            },
            'truncated': self.truncated,
            'reasons': sorted(self.reasons),
        }


def sink_from_predicate(predicate: Callable[[Symbol], bool], key: Optional[Callable[[Symbol], str]] = None) -> SinkKeys:
    """Adapt a boolean sink predicate; the sink key defaults to ``str(symbol)``."""
    key = key or str

    def sink_keys(symbol: Symbol) -> Tuple[str, ...]:
        return (key(symbol),) if predicate(symbol) else ()

    return sink_keys


class _Budget:
    """Step, timeout and cancellation checks shared by one enumeration."""

    def __init__(self, limits: TraceLimits, cancel: Optional[Event], result: TraceResult):
        self.limits = limits
        self.cancel = cancel
        self.result = result
        self.deadline = time.monotonic() + limits.timeout if limits.timeout is not None else None

    def exhausted(self) -> bool:
        result = self.result
        if result.steps >= self.limits.max_steps:
            result.truncate('max_steps')
            return True
        if self.cancel is not None and self.cancel.is_set():
            result.truncate('cancelled')
            return True
        # clock reads are comparatively slow; check every 256 steps
        if self.deadline is not None and result.steps % 256 == 0 and time.monotonic() >= self.deadline:
            result.truncate('timeout')
            return True
        return False


class TraceEngine:
    """Read-only queries over one GraphSnapshot; safe to share between threads."""

    def __init__(self, snapshot: GraphSnapshot, limits: Optional[TraceLimits] = None):
        self.snapshot = snapshot
        self.graph: nx.DiGraph = snapshot.graph
        self.limits = limits or TraceLimits()

    def _neighbors(self, direction: Direction) -> Callable[[Symbol], Iterator[Symbol]]:
        if direction == Direction.DEPENDENCIES:
            return self.graph.successors
        return self.graph.predecessors

    def forward_closure(self, roots: Iterable[Symbol],
                        direction: Direction = Direction.DEPENDENCIES) -> FrozenSet[Symbol]:
        """All Symbols reachable from ``roots`` (roots in the graph included)."""
        neighbors = self._neighbors(direction)
        seen: Set[Symbol] = set()
        queue = deque(root for root in roots if root in self.graph)
        while queue:
            node = queue.popleft()
            if node in seen:
                continue
            seen.add(node)
            queue.extend(n for n in neighbors(node) if n not in seen)
        return frozenset(seen)

    def _can_reach_sink(self, sinks: Iterable[Symbol], direction: Direction) -> Set[Symbol]:
        # walking the opposite way from every sink marks nodes that can still lead to one
        opposite = Direction.DEPENDENCIES if direction == Direction.USED_BY else Direction.USED_BY
        return set(self.forward_closure(sinks, opposite))

    def enumerate_paths(self, sources: Iterable[Symbol], sink_keys: SinkKeys,
                        direction: Direction = Direction.USED_BY,
                        limits: Optional[TraceLimits] = None,
                        cancel: Optional[Event] = None) -> TraceResult:
        """Enumerate simple paths from each source to every sink it reaches.

        Paths run source first, sink last. A path is recorded at each sink it
        passes and keeps extending past it, so deeper sinks are found too. Limits
        and cancellation end the walk early with ``truncated`` set.

        Args:
            sources: Start Symbols; unknown Symbols are ignored
            sink_keys: Returns the sink keys of a Symbol (empty when not a sink)
            direction: USED_BY walks from dependencies to their consumers
            limits: Overrides the engine's limits for this call
            cancel: Event that stops the walk when set

        Returns:
            TraceResult grouped by sink key, then source
        """
        limits = limits or self.limits
        result = TraceResult()
        budget = _Budget(limits, cancel, result)
        neighbors = self._neighbors(direction)

        sink_cache: Dict[Symbol, Tuple[str, ...]] = {}

        def keys_of(symbol: Symbol) -> Tuple[str, ...]:
            if symbol not in sink_cache:
                sink_cache[symbol] = tuple(sink_keys(symbol))
            return sink_cache[symbol]

        sinks = [node for node in self.graph.nodes if keys_of(node)]
        useful = self._can_reach_sink(sinks, direction)

        ordered_sources = list(dict.fromkeys(s for s in sources if s in self.graph))
        for source in ordered_sources:
            if source not in useful:
                continue
            if not self._walk(source, neighbors, keys_of, useful, limits, budget, result):
                break

        if result.truncated:
            logger.info("Trace truncated after %d steps: %s", result.steps, ", ".join(sorted(result.reasons)))
        return result

    def _walk(self, source: Symbol, neighbors, keys_of, useful: Set[Symbol],
              limits: TraceLimits, budget: _Budget, result: TraceResult) -> bool:
        """Depth-first walk of simple paths from one source; False when the budget ran out."""
        path: List[Symbol] = [source]
        on_path: Set[Symbol] = {source}
        for key in keys_of(source):
            result.add(key, source, (source,), limits.max_paths_per_pair)

        stack = [iter(neighbors(source))]
        while stack:
            if budget.exhausted():
                return False
            next_node = next(stack[-1], None)
            if next_node is None:
                stack.pop()
                on_path.discard(path.pop())
                continue
            result.steps += 1
            if next_node in on_path or next_node not in useful:
                continue
            if len(path) >= limits.max_depth:
                result.truncate('max_depth')
                continue
            path.append(next_node)
            on_path.add(next_node)
            stack.append(iter(neighbors(next_node)))
            for key in keys_of(next_node):
                result.add(key, source, tuple(path), limits.max_paths_per_pair)
        return True
