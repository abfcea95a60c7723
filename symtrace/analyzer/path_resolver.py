"""Import specifier resolution and source discovery.

These are the collaborators that turn ``(importer, specifier)`` into a module
path. The graph core only ever calls ``resolve`` and never touches the disk.
"""
import json
import logging
import posixpath
import re
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

PROBE_EXTENSIONS = ['.ts', '.tsx', '.d.ts', '.js', '.jsx', '.mjs', '.cjs']

SOURCE_PATTERNS = ['**/*.js', '**/*.jsx', '**/*.mjs', '**/*.cjs', '**/*.ts', '**/*.tsx', '**/*.mts', '**/*.cts']

# Vendored code and build artifacts
EXCLUDED_DIRS = {
    'node_modules',
    'vendor', 'third_party',
    'dist', 'build', 'out', 'coverage',
    '.git', '.next', '.nuxt', '.cache', '.turbo',
}


def discover_modules(project_root: str | Path, patterns: Optional[List[str]] = None) -> List[Path]:
    """Sorted JS/TS source files under ``project_root``, skipping vendored directories."""
    root = Path(project_root).resolve()
    files = set()
    for pattern in patterns or SOURCE_PATTERNS:
        files.update(root.glob(pattern))

    discovered = []
    for file_path in files:
        relative_parts = file_path.relative_to(root).parts
        if any(part in EXCLUDED_DIRS for part in relative_parts):
            continue
        if file_path.name.endswith('.d.ts') or not file_path.is_file():
            continue
        discovered.append(file_path)
    return sorted(discovered)


def _strip_json_comments(text: str) -> str:
    # tsconfig allows comments and trailing commas
    text = re.sub(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', lambda m: m.group(1) or '', text, flags=re.S)
    return re.sub(r',(\s*[}\]])', r'\1', text)


def read_tsconfig_paths(project_root: str | Path) -> Dict[str, List[str]]:
    """``compilerOptions.paths`` of tsconfig.json/jsconfig.json, relative to baseUrl."""
    root = Path(project_root)
    for name in ('tsconfig.json', 'jsconfig.json'):
        config_file = root / name
        if not config_file.is_file():
            continue
        try:
            data = json.loads(_strip_json_comments(config_file.read_text(encoding='utf-8')))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable %s: %s", config_file, e)
            continue
        options = data.get('compilerOptions', {}) if isinstance(data, dict) else {}
        base_url = options.get('baseUrl', '.')
        paths = options.get('paths', {}) or {}
        return {
            alias: [posixpath.normpath(posixpath.join(base_url, target)) for target in targets]
            for alias, targets in paths.items()
            if isinstance(targets, list)
        }
    return {}


def _normalize_aliases(paths: Mapping[str, Iterable[str]]) -> Dict[str, str]:
    # {"@app/*": ["src/*"]} -> {"@app": "src"}; first target wins
    aliases = {}
    for alias, targets in paths.items():
        targets = list(targets)
        if targets:
            aliases[alias.replace('/*', '')] = targets[0].replace('/*', '')
    return aliases


class InMemorySpecifierResolver:
    """Resolve specifiers against a known set of POSIX module paths."""

    def __init__(self, module_paths: Iterable[str], aliases: Optional[Mapping[str, Iterable[str]]] = None,
                 base_dir: str = ''):
        self.module_paths = set(module_paths)
        self.aliases = _normalize_aliases(aliases or {})
        self.base_dir = base_dir

    def resolve(self, importer: str, specifier: str) -> Optional[str]:
        if not specifier:
            return None
        if specifier.startswith('.'):
            candidate = posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))
            return self._probe(candidate)
        for alias, target in sorted(self.aliases.items(), key=lambda item: -len(item[0])):
            if specifier == alias or specifier.startswith(alias + '/'):
                remainder = specifier[len(alias):].lstrip('/')
                return self._probe(posixpath.normpath(posixpath.join(self.base_dir, target, remainder)))
        if specifier.startswith('/'):
            return self._probe(posixpath.normpath(specifier))
        return None

    def _probe(self, path: str) -> Optional[str]:
        if path in self.module_paths:
            return path
        for ext in PROBE_EXTENSIONS:
            if path + ext in self.module_paths:
                return path + ext
        for ext in PROBE_EXTENSIONS:
            index = posixpath.join(path, f"index{ext}")
            if index in self.module_paths:
                return index
        return None


class FileSystemSpecifierResolver:
    """Resolve JS/TS specifiers on disk: relative paths, tsconfig aliases, baseUrl."""

    def __init__(self, project_root: str | Path, tsconfig_paths: Optional[Mapping[str, List[str]]] = None):
        self.root = Path(project_root).resolve()
        if tsconfig_paths is None:
            tsconfig_paths = read_tsconfig_paths(self.root)
        self.ts_aliases = _normalize_aliases(tsconfig_paths)

    def resolve(self, importer: str, specifier: str) -> Optional[str]:
        path = self.resolve_path(Path(importer), specifier)
        return path.resolve().as_posix() if path is not None else None

    def resolve_path(self, current_file: Path, import_string: str) -> Optional[Path]:
        if not import_string:
            return None

        # 1. Relative imports
        if import_string.startswith('.'):
            return self._probe_js_path(current_file.parent / import_string)

        # 2. Path aliases (tsconfig), longest alias first
        for alias, target in sorted(self.ts_aliases.items(), key=lambda item: -len(item[0])):
            if import_string == alias or import_string.startswith(alias + '/'):
                remainder = import_string[len(alias):].lstrip('/')
                return self._probe_js_path(self.root / target / remainder)

        # 3. Project-root relative (baseUrl "."); bare packages fall through to None
        return self._probe_js_path(self.root / import_string)

    def _probe_js_path(self, path: Path) -> Optional[Path]:
        """Probe for a file using JS resolution rules.

        1. Exact match
        2. Extensions (.ts, .tsx, .d.ts, .js, .jsx, ...)
        3. Directory index files
        """
        if path.suffix and path.is_file():
            return path

        for ext in PROBE_EXTENSIONS:
            candidate = path.with_name(path.name + ext)
            if candidate.is_file():
                return candidate

        if path.is_dir():
            for ext in PROBE_EXTENSIONS:
                index_file = path / f"index{ext}"
                if index_file.is_file():
                    return index_file

        return None
