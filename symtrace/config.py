"""Configuration management for symtrace.

Loads environment variables (optionally from a ``.env`` file in the working
directory) and provides centralized config access.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .analyzer.graph_builder import default_workers
from .analyzer.i18n import DEFAULT_LABELS_NAME, DEFAULT_TRANSLATE_FUNCTION
from .analyzer.routes import DEFAULT_ROUTE_FILES
from .analyzer.trace_engine import TraceLimits


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {value}")
    return value


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, env_file: Optional[str | Path] = None):
        """Initialize config by loading the .env file.

        Args:
            env_file: Explicit .env path (default: ``.env`` in the working directory)
        """
        load_dotenv(Path(env_file) if env_file else Path.cwd() / ".env")

    @property
    def max_path_length(self) -> int:
        """Longest traced path, in symbols."""
        return _int_env("SYMTRACE_MAX_PATH_LENGTH", 32)

    @property
    def max_paths_per_pair(self) -> int:
        return _int_env("SYMTRACE_MAX_PATHS_PER_PAIR", 100)

    @property
    def max_steps(self) -> int:
        return _int_env("SYMTRACE_MAX_STEPS", 250_000)

    @property
    def trace_timeout(self) -> Optional[float]:
        """Seconds before a trace gives up, None for no timeout.

        Raises:
            ValueError: If SYMTRACE_TRACE_TIMEOUT is not a positive number
        """
        raw = os.getenv("SYMTRACE_TRACE_TIMEOUT")
        if raw is None or raw.strip() == "":
            return None
        try:
            value = float(raw)
        except ValueError:
            raise ValueError(f"SYMTRACE_TRACE_TIMEOUT must be a number of seconds, got {raw!r}") from None
        if value <= 0:
            raise ValueError(f"SYMTRACE_TRACE_TIMEOUT must be positive, got {value}")
        return value

    @property
    def workers(self) -> int:
        """Extraction threads."""
        return _int_env("SYMTRACE_WORKERS", default_workers())

    @property
    def route_files(self) -> tuple[str, ...]:
        raw = os.getenv("SYMTRACE_ROUTE_FILES")
        if not raw:
            return DEFAULT_ROUTE_FILES
        return tuple(name.strip() for name in raw.split(",") if name.strip())

    @property
    def labels_name(self) -> str:
        return os.getenv("SYMTRACE_LABELS_NAME", DEFAULT_LABELS_NAME)

    @property
    def translate_function(self) -> str:
        return os.getenv("SYMTRACE_TRANSLATE_FUNCTION", DEFAULT_TRANSLATE_FUNCTION)

    def trace_limits(self) -> TraceLimits:
        return TraceLimits(
            max_depth=self.max_path_length,
            max_paths_per_pair=self.max_paths_per_pair,
            max_steps=self.max_steps,
            timeout=self.trace_timeout,
        )


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config
