"""Scope-aware extraction of the direct references one declaration body makes.

Only names that resolve to the *module* scope are reported: parameters, nested
declarations and catch bindings reusing an outer name sever the reference inside
their scope. The output is purely a function of the syntax nodes and the set of
module-scope bindings.
"""
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from tree_sitter import Node

from .module_model import DynamicImport, Reference, Usage
from .parser import node_text, string_value
from .scope import MODULE_SCOPE, ScopeKind, ScopeTree

FUNCTION_DECLARATIONS = frozenset({
    'function_declaration',
    'generator_function_declaration',
})

FUNCTION_NODES = FUNCTION_DECLARATIONS | {
    'function',
    'function_expression',
    'generator_function',
    'arrow_function',
    'method_definition',
}

CLASS_NODES = frozenset({'class', 'class_declaration', 'abstract_class_declaration'})

TYPE_DECLARATIONS = frozenset({
    'interface_declaration',
    'type_alias_declaration',
    'enum_declaration',
})

# Declarations whose name is visible throughout the enclosing block
HOISTED_DECLARATIONS = FUNCTION_DECLARATIONS | CLASS_NODES | TYPE_DECLARATIONS

VARIABLE_DECLARATIONS = frozenset({'lexical_declaration', 'variable_declaration'})

SKIPPED_NODES = frozenset({
    'comment',
    'string',
    'number',
    'regex',
    'property_identifier',
    'private_property_identifier',
    'statement_identifier',
    'jsx_closing_element',
    'jsx_text',
    'type_parameters',
    'import_statement',
    'export_statement',
})


def iter_named_fields(node: Node) -> Iterator[Tuple[Optional[str], Node]]:
    """Yield ``(field_name, child)`` for the named children of ``node``."""
    for index, child in enumerate(node.children):
        if child.is_named:
            yield node.field_name_for_child(index), child


def pattern_names(pattern: Node) -> List[str]:
    """Names bound by a binding pattern (identifier, object/array pattern, parameter)."""
    names: List[str] = []
    _walk_pattern(pattern, names, [])
    return names


def var_names(body: Node) -> List[str]:
    """Names declared with ``var`` anywhere in a function body.

    ``var`` belongs to the nearest function, so the search descends into blocks and
    loops but stops at nested functions and classes.
    """
    names: List[str] = []
    stack = list(reversed(body.named_children))
    while stack:
        node = stack.pop()
        if node.type in FUNCTION_NODES or node.type in CLASS_NODES:
            continue
        if node.type == 'variable_declaration':
            for declarator in node.named_children:
                name = declarator.child_by_field_name('name') if declarator.type == 'variable_declarator' else None
                if name is not None:
                    names.extend(pattern_names(name))
        elif node.type == 'for_in_statement':
            kind = node.child_by_field_name('kind')
            left = node.child_by_field_name('left')
            if kind is not None and node_text(kind) == 'var' and left is not None:
                names.extend(pattern_names(left))
        stack.extend(reversed(node.named_children))
    return names


def _walk_pattern(node: Node, names: List[str], expressions: List[Node]):
    kind = node.type
    if kind in ('identifier', 'shorthand_property_identifier_pattern'):
        names.append(node_text(node))
    elif kind in ('assignment_pattern', 'object_assignment_pattern'):
        left = node.child_by_field_name('left')
        right = node.child_by_field_name('right')
        if left is not None:
            _walk_pattern(left, names, expressions)
        if right is not None:
            expressions.append(right)
    elif kind == 'pair_pattern':
        key = node.child_by_field_name('key')
        value = node.child_by_field_name('value')
        if key is not None and key.type == 'computed_property_name':
            expressions.append(key)
        if value is not None:
            _walk_pattern(value, names, expressions)
    elif kind in ('object_pattern', 'array_pattern', 'rest_pattern'):
        for child in node.named_children:
            _walk_pattern(child, names, expressions)
    elif kind in ('required_parameter', 'optional_parameter'):
        for field_name, child in iter_named_fields(node):
            if field_name == 'pattern':
                _walk_pattern(child, names, expressions)
            elif field_name in ('value', 'type'):
                expressions.append(child)
    elif kind in ('this', 'comment', 'accessibility_modifier', 'override_modifier'):
        return
    else:
        # assignment targets such as `[obj.prop] = value`
        expressions.append(node)


def static_destructure_keys(pattern: Node) -> Optional[Tuple[str, ...]]:
    """Keys of an object pattern when all are static, else None."""
    keys: List[str] = []
    for child in pattern.named_children:
        if child.type == 'comment':
            continue
        if child.type == 'shorthand_property_identifier_pattern':
            keys.append(node_text(child))
        elif child.type == 'object_assignment_pattern':
            left = child.child_by_field_name('left')
            if left is None or left.type != 'shorthand_property_identifier_pattern':
                return None
            keys.append(node_text(left))
        elif child.type == 'pair_pattern':
            key = child.child_by_field_name('key')
            if key is None:
                return None
            if key.type == 'property_identifier':
                keys.append(node_text(key))
            elif key.type == 'string':
                keys.append(string_value(key))
            else:
                return None
        else:
            return None
    return tuple(keys)


def dotted_parts(node: Node) -> Optional[Tuple[str, ...]]:
    """Split a static dotted name (JSX member tag, nested type name) into parts."""
    parts = tuple(part.strip() for part in node_text(node).split('.'))
    if not parts or not all(part.isidentifier() or part.replace('$', '_').isidentifier() for part in parts):
        return None
    return parts


class _UsageWalk:
    """State of a single extraction run."""

    def __init__(self, module_bindings: Iterable[str]):
        self.scopes = ScopeTree(module_bindings)
        self.usages: Dict[Usage, None] = {}
        self._handlers: Dict[str, Callable[[Node, int], None]] = {
            'identifier': self._visit_identifier,
            'shorthand_property_identifier': self._visit_identifier,
            'type_identifier': self._visit_identifier,
            'nested_type_identifier': self._visit_dotted,
            'member_expression': self._visit_member,
            'call_expression': self._visit_call,
            'variable_declarator': self._visit_declarator,
            'statement_block': self._visit_block,
            'switch_body': self._visit_block,
            'class_static_block': self._visit_block,
            'for_statement': self._visit_for,
            'for_in_statement': self._visit_for_in,
            'catch_clause': self._visit_catch,
            'jsx_opening_element': self._visit_jsx_element,
            'jsx_self_closing_element': self._visit_jsx_element,
        }
        for kind in FUNCTION_NODES:
            self._handlers[kind] = self._visit_function
        for kind in CLASS_NODES:
            self._handlers[kind] = self._visit_class
        for kind in TYPE_DECLARATIONS:
            self._handlers[kind] = self._visit_type_declaration

    def run(self, nodes: Sequence[Node]) -> Tuple[Usage, ...]:
        for node in nodes:
            self.visit(node, MODULE_SCOPE)
        return tuple(self.usages)

    def use(self, name: str, members: Tuple[str, ...], scope: int):
        if self.scopes.resolves_to_module(scope, name):
            self.usages.setdefault(Reference(name, members))

    def visit(self, node: Node, scope: int):
        stack = [(node, scope)]
        while stack:
            current, current_scope = stack.pop()
            if current.type in SKIPPED_NODES:
                continue
            handler = self._handlers.get(current.type)
            if handler is not None:
                handler(current, current_scope)
                continue
            stack.extend((child, current_scope) for child in reversed(current.named_children))

    def hoist(self, statements: Iterable[Node], scope: int):
        for statement in statements:
            if statement.type in VARIABLE_DECLARATIONS:
                for declarator in statement.named_children:
                    name = declarator.child_by_field_name('name') if declarator.type == 'variable_declarator' else None
                    if name is not None:
                        for bound in pattern_names(name):
                            self.scopes.bind(scope, bound)
            elif statement.type in HOISTED_DECLARATIONS:
                name = statement.child_by_field_name('name')
                if name is not None:
                    self.scopes.bind(scope, node_text(name))

    def bind_pattern(self, pattern: Node, scope: int, expressions: List[Node]):
        names: List[str] = []
        _walk_pattern(pattern, names, expressions)
        for name in names:
            self.scopes.bind(scope, name)

    # -- handlers ----------------------------------------------------------

    def _visit_identifier(self, node: Node, scope: int):
        self.use(node_text(node), (), scope)

    def _visit_dotted(self, node: Node, scope: int):
        parts = dotted_parts(node)
        if parts:
            self.use(parts[0], parts[1:], scope)

    def _visit_member(self, node: Node, scope: int):
        members: List[str] = []
        current = node
        while current.type == 'member_expression':
            prop = current.child_by_field_name('property')
            obj = current.child_by_field_name('object')
            if prop is None or obj is None or prop.type != 'property_identifier':
                # private fields and other non-static members end the chain
                members.clear()
                break
            members.append(node_text(prop))
            current = obj
        if current.type == 'identifier' and members:
            self.use(node_text(current), tuple(reversed(members)), scope)
        elif current.type == 'member_expression':
            for child in current.named_children:
                self.visit(child, scope)
        else:
            # calls, subscripts and `import(...)` heading the chain
            self.visit(current, scope)

    def _visit_call(self, node: Node, scope: int):
        function = node.child_by_field_name('function')
        arguments = node.child_by_field_name('arguments')
        if function is not None and function.type == 'import':
            literal = arguments.named_children[0] if arguments is not None and arguments.named_child_count else None
            if literal is not None and literal.type == 'string':
                self.usages.setdefault(DynamicImport(string_value(literal)))
                return
        for child in node.named_children:
            self.visit(child, scope)

    def _visit_declarator(self, node: Node, scope: int):
        name = node.child_by_field_name('name')
        value = node.child_by_field_name('value')
        expressions: List[Node] = []
        if name is not None:
            self.bind_pattern(name, scope, expressions)
        if (name is not None and value is not None
                and name.type == 'object_pattern' and value.type == 'identifier'):
            keys = static_destructure_keys(name)
            if keys is not None:
                source = node_text(value)
                for key in keys:
                    self.use(source, (key,), scope)
                for expression in expressions:
                    self.visit(expression, scope)
                return
        for expression in expressions:
            self.visit(expression, scope)
        for field_name, child in iter_named_fields(node):
            if field_name != 'name':
                self.visit(child, scope)

    def _visit_block(self, node: Node, scope: int):
        inner = self.scopes.push(scope, ScopeKind.BLOCK)
        self.hoist(node.named_children, inner)
        for child in node.named_children:
            self.visit(child, inner)

    def _visit_for(self, node: Node, scope: int):
        inner = self.scopes.push(scope, ScopeKind.BLOCK)
        for child in node.named_children:
            self.visit(child, inner)

    def _visit_for_in(self, node: Node, scope: int):
        inner = self.scopes.push(scope, ScopeKind.BLOCK)
        declares = node.child_by_field_name('kind') is not None
        for field_name, child in iter_named_fields(node):
            if field_name == 'left' and declares:
                expressions: List[Node] = []
                self.bind_pattern(child, inner, expressions)
                for expression in expressions:
                    self.visit(expression, inner)
            else:
                self.visit(child, inner)

    def _visit_catch(self, node: Node, scope: int):
        inner = self.scopes.push(scope, ScopeKind.CATCH)
        for field_name, child in iter_named_fields(node):
            if field_name == 'parameter':
                expressions: List[Node] = []
                self.bind_pattern(child, inner, expressions)
                for expression in expressions:
                    self.visit(expression, inner)
            else:
                self.visit(child, inner)

    def _visit_function(self, node: Node, scope: int):
        inner = self.scopes.push(scope, ScopeKind.FUNCTION)
        expressions: List[Node] = []
        rest: List[Node] = []
        body: Optional[Node] = None
        for field_name, child in iter_named_fields(node):
            if field_name == 'name':
                if child.type == 'computed_property_name':
                    self.visit(child, scope)
                elif node.type not in FUNCTION_DECLARATIONS and child.type == 'identifier':
                    # named function expressions see their own name
                    self.scopes.bind(inner, node_text(child))
            elif field_name == 'parameters':
                for parameter in child.named_children:
                    self.bind_pattern(parameter, inner, expressions)
            elif field_name == 'parameter':
                self.bind_pattern(child, inner, expressions)
            elif field_name == 'body':
                body = child
            else:
                rest.append(child)
        for expression in expressions + rest:
            self.visit(expression, inner)
        if body is None:
            return
        if body.type == 'statement_block':
            self.hoist(body.named_children, inner)
            for name in var_names(body):
                self.scopes.bind(inner, name)
            for child in body.named_children:
                self.visit(child, inner)
        else:
            self.visit(body, inner)

    def _visit_class(self, node: Node, scope: int):
        inner = self.scopes.push(scope, ScopeKind.CLASS)
        for field_name, child in iter_named_fields(node):
            if field_name == 'name':
                self.scopes.bind(inner, node_text(child))
            else:
                self.visit(child, inner)

    def _visit_type_declaration(self, node: Node, scope: int):
        for field_name, child in iter_named_fields(node):
            if field_name != 'name':
                self.visit(child, scope)

    def _visit_jsx_element(self, node: Node, scope: int):
        for field_name, child in iter_named_fields(node):
            if field_name == 'name':
                self._visit_jsx_name(child, scope)
            else:
                self.visit(child, scope)

    def _visit_jsx_name(self, node: Node, scope: int):
        if node.type == 'identifier':
            name = node_text(node)
            # lowercase tags are intrinsic elements (<div/>), not bindings
            if name[:1].islower():
                return
            self.use(name, (), scope)
        elif node.type in ('member_expression', 'nested_identifier'):
            parts = dotted_parts(node)
            if parts:
                self.use(parts[0], parts[1:], scope)


class UsageExtractor:
    """Extract direct references from declaration bodies of one module."""

    def __init__(self, module_bindings: Iterable[str]):
        self.module_bindings = frozenset(module_bindings)

    def extract(self, nodes: Sequence[Node]) -> Tuple[Usage, ...]:
        """Return the ordered, de-duplicated usages made by ``nodes``.

        Args:
            nodes: Body nodes of one declaration (visited in module scope)

        Returns:
            Tuple of Reference / DynamicImport facts in first-occurrence order
        """
        return _UsageWalk(self.module_bindings).run(nodes)
