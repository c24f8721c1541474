"""
Shared pytest fixtures for paydb tests.

Engine fixtures:
- memory_backend / sqlite_backend: one engine each
- backend: parametrized over both, for behaviour every engine must share
"""
import pytest

from paydb.core.logging import setup_logging
from paydb.kvdb import MemoryBackend, SqliteBackend


@pytest.fixture(autouse=True)
def configure_logging():
    """Route logs to stderr so stdout assertions only see command output."""
    setup_logging(level="DEBUG")


@pytest.fixture
def memory_backend():
    """Fresh in-memory engine."""
    backend = MemoryBackend()
    yield backend
    backend.close()


@pytest.fixture
def sqlite_backend(tmp_path):
    """Fresh SQLite engine in a temp directory."""
    backend = SqliteBackend(tmp_path / "paydb.sqlite")
    yield backend
    backend.close()


@pytest.fixture(params=["memory", "sqlite"])
def backend(request, tmp_path):
    """Each engine in turn."""
    if request.param == "memory":
        engine = MemoryBackend()
    else:
        engine = SqliteBackend(tmp_path / "paydb.sqlite")
    yield engine
    engine.close()
