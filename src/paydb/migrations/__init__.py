"""Database migrations for paydb.

Each migration is a Python module with:
- VERSION: int - The migration version number
- DESCRIPTION: str - Human-readable description
- migrate(tx) - Applies the migration inside a read-write transaction

Migrations are applied in order by MigrationRunner and tracked in the
`metadata` bucket.
"""

from paydb.migrations import v001_prune_failed_htlcs
from paydb.migrations.runner import (
    Migration,
    MigrationResult,
    MigrationRunner,
    get_db_version,
    put_db_version,
)

MIGRATIONS = [
    Migration.from_module(v001_prune_failed_htlcs),
]

__all__ = [
    "MIGRATIONS",
    "Migration",
    "MigrationResult",
    "MigrationRunner",
    "get_db_version",
    "put_db_version",
]
