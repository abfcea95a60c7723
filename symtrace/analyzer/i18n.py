"""Translation-key usage.

Modules declare their labels once at module scope::

    const LABELS = translate({
        title: 'account.title',
        menu: { logout: 'account.menu.logout' },
    });

and read them as ``LABELS.menu.logout``. A declaration reading a label path uses
the keys found under it; a bare ``LABELS`` use reads every key.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

from tree_sitter import Node

from .module_model import Declaration, Reference
from .parser import node_text, string_value
from .routes import property_key, unwrap_expression

DEFAULT_LABELS_NAME = 'LABELS'
DEFAULT_TRANSLATE_FUNCTION = 'translate'


@dataclass(frozen=True)
class LabelTree:
    """Static label object; ``computed`` is set when the object has dynamic keys."""
    children: Mapping[str, Union[str, 'LabelTree']] = field(default_factory=dict)
    computed: Optional[Tuple[str, ...]] = None

    def all_keys(self) -> Tuple[str, ...]:
        if self.computed is not None:
            return self.computed
        keys: Dict[str, None] = {}
        for value in self.children.values():
            if isinstance(value, LabelTree):
                keys.update(dict.fromkeys(value.all_keys()))
            else:
                keys.setdefault(value)
        return tuple(keys)

    def keys_for_members(self, members: Sequence[str]) -> Tuple[str, ...]:
        """Keys read by ``LABELS.<members>``; an unknown path reads nothing."""
        node: LabelTree = self
        for member in members:
            if node.computed is not None:
                return node.computed
            child = node.children.get(member)
            if child is None:
                return ()
            if not isinstance(child, LabelTree):
                return (child,)
            node = child
        return node.all_keys()


def _label_value(node: Node) -> Union[str, LabelTree, None]:
    node = unwrap_expression(node)
    if node.type == 'string':
        return string_value(node)
    if node.type == 'object':
        return label_tree_from_object(node)
    if node.type == 'array':
        # lazy labels: ['key', fallback]
        first = node.named_children[0] if node.named_child_count else None
        if first is not None and first.type == 'string':
            return string_value(first)
    return None


def label_tree_from_object(node: Node) -> LabelTree:
    children: Dict[str, Union[str, LabelTree]] = {}
    collected: Dict[str, None] = {}
    computed = False
    for prop in node.named_children:
        if prop.type == 'comment':
            continue
        if prop.type != 'pair':
            # spreads and shorthand values hide the real shape
            computed = True
            continue
        value_node = prop.child_by_field_name('value')
        value = _label_value(value_node) if value_node is not None else None
        key = property_key(prop)
        if key is None:
            computed = True
        if value is None:
            continue
        if isinstance(value, LabelTree):
            collected.update(dict.fromkeys(value.all_keys()))
        else:
            collected.setdefault(value)
        if key is not None:
            children[key] = value
    if computed:
        return LabelTree({}, tuple(collected))
    return LabelTree(children)


class TranslationCollector:
    """Find the module's label object and the keys each declaration reads."""

    def __init__(self, labels_name: str = DEFAULT_LABELS_NAME,
                 translate_function: str = DEFAULT_TRANSLATE_FUNCTION):
        self.labels_name = labels_name
        self.translate_function = translate_function

    def labels_from_declarator(self, declarator: Node) -> Optional[LabelTree]:
        """LabelTree of ``<labels_name> = <translate_function>({...})``, else None."""
        name = declarator.child_by_field_name('name')
        value = declarator.child_by_field_name('value')
        if name is None or value is None or node_text(name) != self.labels_name:
            return None
        value = unwrap_expression(value)
        if value.type != 'call_expression':
            return None
        function = value.child_by_field_name('function')
        arguments = value.child_by_field_name('arguments')
        if function is None or node_text(function) != self.translate_function or arguments is None:
            return None
        first = arguments.named_children[0] if arguments.named_child_count else None
        if first is None:
            return None
        first = unwrap_expression(first)
        if first.type != 'object':
            return None
        return label_tree_from_object(first)

    def usage(self, labels: LabelTree, declarations: Iterable[Declaration]) -> Dict[str, Tuple[str, ...]]:
        """Declaration name -> translation keys, for declarations reading any key."""
        usage: Dict[str, Tuple[str, ...]] = {}
        for declaration in declarations:
            if declaration.name == self.labels_name:
                continue
            keys: Dict[str, None] = {}
            for reference in declaration.references:
                if isinstance(reference, Reference) and reference.name == self.labels_name:
                    keys.update(dict.fromkeys(labels.keys_for_members(reference.members)))
            if keys:
                usage[declaration.name] = tuple(keys)
        return usage
