"""
Version-gated migration runner.

The database version lives in the `metadata` top-level bucket under `dbp`
as a 4-byte big-endian integer; a database without it is at version 0.
Each pending migration runs in its own read-write transaction together with
the version bump, so a failure leaves both the data and the version exactly
as they were.
"""

import time
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable, Optional, Sequence

import structlog

from paydb.core.errors import (
    DatabaseVersionError,
    MigrationError,
    StoreOperationError,
)
from paydb.kvdb.base import Backend, Tx

log = structlog.get_logger()

META_BUCKET = b"metadata"
DB_VERSION_KEY = b"dbp"


@dataclass(frozen=True)
class Migration:
    """A single schema step."""

    version: int
    description: str
    migrate: Callable[[Tx], Any]

    @classmethod
    def from_module(cls, module: ModuleType) -> "Migration":
        """Build from a module exposing VERSION, DESCRIPTION and migrate(tx)."""
        return cls(
            version=module.VERSION,
            description=module.DESCRIPTION,
            migrate=module.migrate,
        )


@dataclass
class MigrationResult:
    """Outcome of one applied migration."""

    version: int
    description: str
    result: Any
    duration_ms: float
    dry_run: bool = False


def get_db_version(tx: Tx) -> int:
    meta = tx.read_bucket(META_BUCKET)
    if meta is None:
        return 0

    raw = meta.get(DB_VERSION_KEY)
    if raw is None:
        return 0
    if len(raw) != 4:
        raise StoreOperationError(f"malformed database version: {raw.hex()}")

    return int.from_bytes(raw, "big")


def put_db_version(tx: Tx, version: int) -> None:
    meta = tx.create_top_level_bucket(META_BUCKET)
    meta.put(DB_VERSION_KEY, version.to_bytes(4, "big"))


class MigrationRunner:
    """Applies pending migrations to a backend in version order.

    Usage:
        runner = MigrationRunner(backend)
        results = runner.run()
    """

    def __init__(
        self,
        backend: Backend,
        migrations: Optional[Sequence[Migration]] = None,
        dry_run: bool = False,
    ) -> None:
        if migrations is None:
            from paydb.migrations import MIGRATIONS

            migrations = MIGRATIONS

        versions = [m.version for m in migrations]
        if versions != sorted(set(versions)):
            raise ValueError(f"migration versions must be unique and ascending: {versions}")
        if versions and versions[0] < 1:
            raise ValueError("migration versions start at 1")

        self._backend = backend
        self._migrations = list(migrations)
        self._dry_run = dry_run
        self._log = log.bind(component="migration_runner", dry_run=dry_run)

    @property
    def latest_version(self) -> int:
        return self._migrations[-1].version if self._migrations else 0

    def current_version(self) -> int:
        return self._backend.view(get_db_version)

    def pending(self) -> list[Migration]:
        """Migrations newer than the stored version.

        Raises:
            DatabaseVersionError: The database is newer than this code.
        """
        current = self.current_version()
        if current > self.latest_version:
            raise DatabaseVersionError(current, self.latest_version)
        return [m for m in self._migrations if m.version > current]

    def run(self) -> list[MigrationResult]:
        """Apply all pending migrations.

        Raises:
            MigrationError: A migration failed; nothing from it was persisted.
            DatabaseVersionError: The database is newer than this code.
        """
        pending = self.pending()
        if not pending:
            self._log.info("database_up_to_date", version=self.latest_version)
            return []

        self._log.info(
            "applying_migrations",
            from_version=pending[0].version - 1,
            to_version=pending[-1].version,
            count=len(pending),
        )

        if self._dry_run:
            # Later migrations must see earlier ones, so a dry run shares one
            # transaction and throws it away at the end.
            tx = self._backend.begin(writable=True)
            try:
                return [self._apply(tx, migration) for migration in pending]
            finally:
                if not tx.closed:
                    tx.rollback()

        results = []
        for migration in pending:
            tx = self._backend.begin(writable=True)
            results.append(self._apply(tx, migration, commit=True))
        return results

    def _apply(self, tx: Tx, migration: Migration, commit: bool = False) -> MigrationResult:
        start = time.monotonic()
        try:
            outcome = migration.migrate(tx)
            put_db_version(tx, migration.version)
            if commit:
                tx.commit()
        except BaseException as e:
            if not tx.closed:
                tx.rollback()
            if not isinstance(e, Exception):
                raise
            self._log.error(
                "migration_failed",
                version=migration.version,
                description=migration.description,
                error=str(e),
            )
            raise MigrationError(migration.version, e) from e

        duration_ms = (time.monotonic() - start) * 1000
        self._log.info(
            "migration_applied",
            version=migration.version,
            description=migration.description,
            duration_ms=round(duration_ms, 2),
        )
        return MigrationResult(
            version=migration.version,
            description=migration.description,
            result=outcome,
            duration_ms=duration_ms,
            dry_run=self._dry_run,
        )
