"""Tests for specifier resolution and source discovery."""
import pytest

from symtrace.analyzer.path_resolver import (
    FileSystemSpecifierResolver,
    InMemorySpecifierResolver,
    discover_modules,
    read_tsconfig_paths,
)


@pytest.fixture
def project(tmp_path):
    files = [
        'src/main.ts',
        'src/a.ts',
        'src/lib/index.tsx',
        'src/shared/format.js',
        'src/types.d.ts',
        'node_modules/react/index.js',
        'dist/bundle.js',
        'README.md',
    ]
    for name in files:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("export const x = 1;\n")
    (tmp_path / 'tsconfig.json').write_text("""{
        // comments and trailing commas are allowed
        "compilerOptions": {
            "baseUrl": ".",
            "paths": { "@app/*": ["src/*"], },
        },
    }""")
    return tmp_path


class TestFileSystemResolver:
    def test_relative_specifiers(self, project):
        resolver = FileSystemSpecifierResolver(project)
        importer = str(project / 'src' / 'main.ts')

        assert resolver.resolve(importer, './a') == (project / 'src/a.ts').resolve().as_posix()
        assert resolver.resolve(importer, './lib') == (project / 'src/lib/index.tsx').resolve().as_posix()
        assert resolver.resolve(importer, './shared/format.js') == \
            (project / 'src/shared/format.js').resolve().as_posix()

    def test_tsconfig_alias(self, project):
        resolver = FileSystemSpecifierResolver(project)
        importer = str(project / 'src' / 'main.ts')
        assert resolver.resolve(importer, '@app/shared/format') == \
            (project / 'src/shared/format.js').resolve().as_posix()

    def test_bare_package_is_unresolved(self, project):
        resolver = FileSystemSpecifierResolver(project)
        assert resolver.resolve(str(project / 'src' / 'main.ts'), 'react') is None
        assert resolver.resolve(str(project / 'src' / 'main.ts'), './missing') is None

    def test_read_tsconfig_paths(self, project):
        assert read_tsconfig_paths(project) == {'@app/*': ['src/*']}

    def test_missing_tsconfig(self, tmp_path):
        assert read_tsconfig_paths(tmp_path) == {}


def test_discover_modules_skips_vendored_and_declarations(project):
    found = [path.relative_to(project.resolve()).as_posix() for path in discover_modules(project)]
    assert found == ['src/a.ts', 'src/lib/index.tsx', 'src/main.ts', 'src/shared/format.js']


class TestInMemoryResolver:
    MODULES = ['src/app.js', 'src/ui/Button.tsx', 'src/ui/index.ts', 'lib/util.js']

    def test_relative_and_index(self):
        resolver = InMemorySpecifierResolver(self.MODULES)
        assert resolver.resolve('src/app.js', './ui/Button') == 'src/ui/Button.tsx'
        assert resolver.resolve('src/app.js', './ui') == 'src/ui/index.ts'
        assert resolver.resolve('src/ui/Button.tsx', '../../lib/util') == 'lib/util.js'

    def test_aliases(self):
        resolver = InMemorySpecifierResolver(self.MODULES, aliases={'@ui/*': ['src/ui/*'], '@lib': ['lib']})
        assert resolver.resolve('src/app.js', '@ui/Button') == 'src/ui/Button.tsx'
        assert resolver.resolve('src/app.js', '@lib/util') == 'lib/util.js'

    def test_unknown(self):
        resolver = InMemorySpecifierResolver(self.MODULES)
        assert resolver.resolve('src/app.js', 'react') is None
        assert resolver.resolve('src/app.js', './nope') is None
        assert resolver.resolve('src/app.js', '') is None
