"""Tests for environment-driven configuration."""
import pytest

from symtrace.analyzer.graph_builder import default_workers
from symtrace.analyzer.routes import DEFAULT_ROUTE_FILES
from symtrace.analyzer.trace_engine import TraceLimits
from symtrace.config import Config

ENV_VARS = [
    'SYMTRACE_MAX_PATH_LENGTH',
    'SYMTRACE_MAX_PATHS_PER_PAIR',
    'SYMTRACE_MAX_STEPS',
    'SYMTRACE_TRACE_TIMEOUT',
    'SYMTRACE_WORKERS',
    'SYMTRACE_ROUTE_FILES',
    'SYMTRACE_LABELS_NAME',
    'SYMTRACE_TRANSLATE_FUNCTION',
]


@pytest.fixture
def config(monkeypatch, tmp_path):
    """Config with a clean environment and no .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return Config(env_file=tmp_path / '.env')


def test_defaults(config):
    assert config.trace_limits() == TraceLimits()
    assert config.workers == default_workers()
    assert config.route_files == DEFAULT_ROUTE_FILES
    assert config.labels_name == 'LABELS'
    assert config.translate_function == 'translate'


def test_environment_overrides(config, monkeypatch):
    monkeypatch.setenv('SYMTRACE_MAX_PATH_LENGTH', '8')
    monkeypatch.setenv('SYMTRACE_MAX_PATHS_PER_PAIR', '5')
    monkeypatch.setenv('SYMTRACE_MAX_STEPS', '1000')
    monkeypatch.setenv('SYMTRACE_TRACE_TIMEOUT', '2.5')
    monkeypatch.setenv('SYMTRACE_ROUTE_FILES', 'routes.js, app-routes.ts,')
    monkeypatch.setenv('SYMTRACE_LABELS_NAME', 'TEXT')

    assert config.trace_limits() == TraceLimits(max_depth=8, max_paths_per_pair=5, max_steps=1000, timeout=2.5)
    assert config.route_files == ('routes.js', 'app-routes.ts')
    assert config.labels_name == 'TEXT'


@pytest.mark.parametrize('name, value, attribute, message', [
    ('SYMTRACE_MAX_STEPS', 'lots', 'max_steps', 'must be an integer'),
    ('SYMTRACE_WORKERS', '0', 'workers', 'at least 1'),
    ('SYMTRACE_TRACE_TIMEOUT', '-1', 'trace_timeout', 'must be positive'),
    ('SYMTRACE_TRACE_TIMEOUT', 'soon', 'trace_timeout', 'number of seconds'),
])
def test_invalid_values_raise(config, monkeypatch, name, value, attribute, message):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=message):
        getattr(config, attribute)


def test_blank_value_uses_default(config, monkeypatch):
    monkeypatch.setenv('SYMTRACE_MAX_STEPS', '  ')
    assert config.max_steps == 250_000
