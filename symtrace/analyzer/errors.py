"""Error taxonomy for ingestion, resolution and tracing.

Structural problems are *recorded* on the snapshot rather than raised out of a
build: one broken module never aborts the batch.
"""
from typing import Optional, Sequence, Tuple


class SymtraceError(Exception):
    """Base class for every recorded or raised analysis error."""

    severity = "error"

    def __init__(self, message: str, module_path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.module_path = module_path

    def sort_key(self) -> Tuple[str, str, str]:
        return (self.module_path or "", type(self).__name__, self.message)

    def to_dict(self) -> dict:
        return {
            "type": type(self).__name__,
            "severity": self.severity,
            "module_path": self.module_path,
            "message": self.message,
        }


class ParseError(SymtraceError):
    """Module text could not be parsed. The module is excluded from the graph."""

    def __init__(self, module_path: str, line: Optional[int] = None, detail: str = "syntax error"):
        location = f" at line {line}" if line is not None else ""
        super().__init__(f"{detail}{location}", module_path)
        self.line = line


class ResolutionError(SymtraceError):
    """An export chain leads back to itself (``export * from`` cycles, self re-exports)."""

    def __init__(self, module_path: str, name: str, chain: Sequence[Tuple[str, str]] = ()):
        self.name = name
        self.chain = tuple(chain)
        hops = " -> ".join(f"{module}:{exported}" for module, exported in self.chain)
        message = f"export '{name}' re-exports itself"
        if hops:
            message += f" ({hops})"
        super().__init__(message, module_path)


class AmbiguousExportError(SymtraceError):
    """Several ``export *`` sources provide the same name from different origins."""

    severity = "warning"

    def __init__(self, module_path: str, name: str, candidates: Sequence[str]):
        self.name = name
        self.candidates = tuple(candidates)
        super().__init__(
            f"'{name}' is provided by {len(self.candidates)} wildcard sources: "
            + ", ".join(self.candidates),
            module_path,
        )


class NotFoundSpecifier(SymtraceError):
    """The specifier resolver could not map an import specifier to a module."""

    severity = "warning"

    def __init__(self, module_path: str, specifier: str):
        self.specifier = specifier
        super().__init__(f"cannot resolve '{specifier}'", module_path)


class DuplicateExportError(SymtraceError):
    """A module declares the same export name twice; the first entry wins."""

    severity = "warning"

    def __init__(self, module_path: str, name: str):
        self.name = name
        super().__init__(f"duplicate export '{name}'", module_path)
