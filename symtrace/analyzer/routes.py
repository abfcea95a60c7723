"""Route table detection.

A route table is a ``routes.*`` module whose default export is an object literal::

    export default {
        'account': { path: '/account', page: AccountPage, layouts: [Main] },
    };

Every property whose value object carries a string ``path`` is one route; the
module-scope bindings referenced anywhere inside that value render it.
"""
import posixpath
from typing import Callable, Iterable, Optional, Sequence, Tuple

from tree_sitter import Node

from .module_model import RouteDefinition, Usage
from .parser import node_text, string_value

DEFAULT_ROUTE_FILES = ('routes.js', 'routes.jsx', 'routes.ts', 'routes.tsx')

# `{...} as const`, `{...} satisfies Routes`, `({...})`
WRAPPER_NODES = frozenset({'as_expression', 'satisfies_expression', 'parenthesized_expression'})


def unwrap_expression(node: Node) -> Node:
    while node.type in WRAPPER_NODES and node.named_child_count:
        node = node.named_children[0]
    return node


def property_key(pair: Node) -> Optional[str]:
    """Static key of an object ``pair`` node, None for computed keys."""
    key = pair.child_by_field_name('key')
    if key is None:
        return None
    if key.type in ('property_identifier', 'number'):
        return node_text(key)
    if key.type == 'string':
        return string_value(key)
    return None


def route_path(route_object: Node) -> Optional[str]:
    for pair in route_object.named_children:
        if pair.type != 'pair' or property_key(pair) != 'path':
            continue
        value = pair.child_by_field_name('value')
        if value is not None and value.type == 'string':
            return string_value(value)
        return None
    return None


class RouteCollector:
    """Collect route definitions from route table modules."""

    def __init__(self, route_files: Iterable[str] = DEFAULT_ROUTE_FILES):
        self.route_files = frozenset(route_files)

    def is_route_module(self, module_path: str) -> bool:
        return posixpath.basename(module_path.replace('\\', '/')) in self.route_files

    def collect(self, table: Node,
                extract: Callable[[Sequence[Node]], Tuple[Usage, ...]]) -> Tuple[RouteDefinition, ...]:
        """Read the routes of a route table object.

        Args:
            table: The default-exported expression
            extract: Usage extraction for the module the table lives in

        Returns:
            Route definitions in source order; entries without a literal path are skipped
        """
        table = unwrap_expression(table)
        if table.type != 'object':
            return ()

        routes = []
        for pair in table.named_children:
            if pair.type != 'pair':
                continue
            value = pair.child_by_field_name('value')
            if value is None:
                continue
            value = unwrap_expression(value)
            if value.type != 'object':
                continue
            path = route_path(value)
            if path is None:
                continue
            routes.append(RouteDefinition(path, extract([value])))
        return tuple(routes)
