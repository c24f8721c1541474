"""
Database opening.

open_db() is the startup path: it opens the configured engine and brings
the schema up to date before anything else touches the data. A failed
migration is fatal; the engine is closed and the error re-raised.
"""

from pathlib import Path
from typing import Optional, Union

import structlog

from paydb.core.config import ConfigManager
from paydb.kvdb.base import Backend
from paydb.kvdb.memory import MemoryBackend
from paydb.kvdb.sqlite import SqliteBackend
from paydb.migrations.runner import MigrationRunner

log = structlog.get_logger()

DEFAULT_DB_PATH = "./data/paydb.sqlite"

BACKENDS = ("sqlite", "memory")


def open_backend(
    path: Union[str, Path, None] = None,
    backend: str = "sqlite",
    lock_retries: int = 5,
    create: bool = True,
) -> Backend:
    """Open an engine by name.

    With create=False a missing SQLite file raises BackendNotFoundError
    instead of being created empty.
    """
    if backend == "memory":
        return MemoryBackend()
    if backend == "sqlite":
        return SqliteBackend(
            path or DEFAULT_DB_PATH,
            lock_retries=lock_retries,
            create=create,
        )
    raise ValueError(f"unknown backend {backend!r}, expected one of {BACKENDS}")


def open_db(config: Optional[ConfigManager] = None) -> Backend:
    """Open the configured database and apply pending migrations."""
    config = config or ConfigManager()

    db_path = config.get("database.path", DEFAULT_DB_PATH)
    backend_name = config.get("database.backend", "sqlite")
    auto_apply = config.get_bool("migrations.auto_apply", True)
    dry_run = config.get_bool("migrations.dry_run", False)

    log.info("opening_database", path=str(db_path), backend=backend_name)
    backend = open_backend(
        db_path,
        backend=backend_name,
        lock_retries=config.get_int("database.lock_retries", 5),
    )

    if not auto_apply:
        return backend

    try:
        MigrationRunner(backend, dry_run=dry_run).run()
    except Exception:
        backend.close()
        raise

    return backend
