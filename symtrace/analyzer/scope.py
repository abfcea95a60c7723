"""Arena of lexical scopes addressed by index.

Scope 0 is always the module scope. Every nested function, block, class or catch
clause gets its own entry pointing at its parent, so shadowing is decided by
walking parent links instead of by comparing names textually.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Set

MODULE_SCOPE = 0


class ScopeKind(Enum):
    MODULE = 'module'
    FUNCTION = 'function'
    BLOCK = 'block'
    CLASS = 'class'
    CATCH = 'catch'


@dataclass
class Scope:
    index: int
    kind: ScopeKind
    parent: Optional[int]
    bindings: Set[str] = field(default_factory=set)


class ScopeTree:
    """Scope arena for one extraction run."""

    def __init__(self, module_bindings: Iterable[str] = ()):
        self.scopes: List[Scope] = [Scope(MODULE_SCOPE, ScopeKind.MODULE, None, set(module_bindings))]

    def push(self, parent: int, kind: ScopeKind) -> int:
        index = len(self.scopes)
        self.scopes.append(Scope(index, kind, parent))
        return index

    def bind(self, scope: int, name: str):
        self.scopes[scope].bindings.add(name)

    def lookup(self, scope: int, name: str) -> Optional[int]:
        """Index of the innermost scope binding ``name``, or None for globals."""
        current: Optional[int] = scope
        while current is not None:
            entry = self.scopes[current]
            if name in entry.bindings:
                return current
            current = entry.parent
        return None

    def resolves_to_module(self, scope: int, name: str) -> bool:
        return self.lookup(scope, name) == MODULE_SCOPE
