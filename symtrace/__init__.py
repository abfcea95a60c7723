"""symtrace - symbol-level dependency tracing for JavaScript/TypeScript projects."""

__version__ = "0.3.0"
