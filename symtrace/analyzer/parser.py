"""Tree-sitter parser for JavaScript / TypeScript (+JSX) sources."""
import threading
from pathlib import PurePosixPath
from typing import Optional

from tree_sitter import Language, Node, Parser, Tree
import tree_sitter_javascript as tsjavascript
import tree_sitter_typescript as tstypescript

from .errors import ParseError


class LanguageParser:
    """Parser wrapper using the tree-sitter v0.22+ API."""

    SUPPORTED_LANGUAGES = {
        '.js': 'javascript',
        '.jsx': 'javascript',
        '.mjs': 'javascript',
        '.cjs': 'javascript',
        '.ts': 'typescript',
        '.mts': 'typescript',
        '.cts': 'typescript',
        '.tsx': 'tsx',
    }

    def __init__(self, language: str):
        """Initialize parser for given language.

        Args:
            language: One of 'javascript', 'typescript', 'tsx'

        Raises:
            ValueError: If language is not supported
        """
        self.language = language
        self.parser = self._create_parser()

    def _create_parser(self) -> Parser:
        if self.language == 'javascript':
            lang = Language(tsjavascript.language())
        elif self.language == 'typescript':
            lang = Language(tstypescript.language_typescript())
        elif self.language == 'tsx':
            lang = Language(tstypescript.language_tsx())
        else:
            raise ValueError(f"Unsupported language: {self.language}")
        return Parser(lang)

    def parse_source(self, source_code: bytes | str) -> Tree:
        if isinstance(source_code, str):
            source_code = source_code.encode('utf-8')
        return self.parser.parse(source_code)

    @classmethod
    def language_for(cls, module_path: str) -> str:
        """Grammar name for a module path; unknown extensions use the JSX-capable JS grammar."""
        suffix = PurePosixPath(str(module_path).replace('\\', '/')).suffix.lower()
        return cls.SUPPORTED_LANGUAGES.get(suffix, 'javascript')


# tree-sitter parsers must not be shared between threads
_local = threading.local()


def get_parser(language: str) -> LanguageParser:
    parsers = getattr(_local, 'parsers', None)
    if parsers is None:
        parsers = _local.parsers = {}
    if language not in parsers:
        parsers[language] = LanguageParser(language)
    return parsers[language]


def first_error_line(node: Node) -> Optional[int]:
    """1-based line of the first ERROR or missing node, depth first."""
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == 'ERROR' or current.is_missing:
            return current.start_point[0] + 1
        if current.has_error:
            stack.extend(reversed(current.children))
    return None


def parse_module(module_path: str, source_text: bytes | str) -> Tree:
    """Parse one module, raising ParseError when the tree contains syntax errors."""
    parser = get_parser(LanguageParser.language_for(module_path))
    tree = parser.parse_source(source_text)
    if tree.root_node.has_error:
        raise ParseError(module_path, first_error_line(tree.root_node))
    return tree


def node_text(node: Node) -> str:
    return node.text.decode('utf-8', errors='replace')


def string_value(node: Node) -> str:
    """Contents of a string literal node without its quotes."""
    return node_text(node).strip('"\'`')
