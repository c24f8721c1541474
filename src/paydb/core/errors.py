"""
Error hierarchy for paydb.

Two families matter to callers:
- StoreOperationError: the key-value engine refused or failed an operation
- StructuralCorruptionError: the stored hierarchy has the wrong shape

Migrations never retry either of them. The runner wraps a failed migration
in MigrationError so startup can report which version broke.
"""

from datetime import datetime, timezone
from typing import Optional


class PaydbError(Exception):
    """Base exception for all paydb errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


def display_key(key: bytes) -> str:
    """Render a key for humans: ASCII when printable, hex otherwise."""
    try:
        text = key.decode("ascii")
    except UnicodeDecodeError:
        return key.hex()
    if text.isprintable():
        return text
    return key.hex()


# =============================================================================
# Store Errors
# =============================================================================


class StoreOperationError(PaydbError):
    """A get/put/delete/enumerate call failed inside the engine."""

    pass


class InvalidKeyError(StoreOperationError):
    """Keys must be non-empty byte strings."""

    pass


class IncompatibleValueError(StoreOperationError):
    """Scalar operation on a bucket key, or bucket operation on a scalar key."""

    pass


class BucketExistsError(StoreOperationError):
    """Bucket already exists."""

    pass


class BucketNotFoundError(StoreOperationError):
    """Bucket does not exist."""

    pass


class TxClosedError(StoreOperationError):
    """Transaction was already committed or rolled back."""

    pass


class TxNotWritableError(StoreOperationError):
    """Write attempted through a read-only transaction."""

    pass


class CursorActiveError(StoreOperationError):
    """A bucket was mutated while a traversal over it was still open."""

    pass


class BackendNotFoundError(StoreOperationError):
    """The database file does not exist and creating it was not allowed."""

    pass


# =============================================================================
# Data Errors
# =============================================================================


class StructuralCorruptionError(PaydbError):
    """A key resolved to a scalar where a bucket was expected, or vice versa."""

    def __init__(self, key: bytes, bucket_name: bytes, expected_bucket: bool):
        self.key = key
        self.bucket_name = bucket_name
        self.expected_bucket = expected_bucket

        kind = "be" if expected_bucket else "not be"
        super().__init__(
            f"key must {kind} a bucket: '{display_key(key)}' "
            f"(in bucket '{display_key(bucket_name)}')"
        )


# =============================================================================
# Migration Errors
# =============================================================================


class MigrationError(PaydbError):
    """A migration failed and its transaction was rolled back."""

    def __init__(self, version: int, cause: Exception):
        super().__init__(f"migration {version} failed", cause)
        self.version = version


class DatabaseVersionError(PaydbError):
    """Stored database version is newer than any known migration."""

    def __init__(self, stored: int, latest: int):
        super().__init__(
            f"database version {stored} is newer than latest known version {latest}"
        )
        self.stored = stored
        self.latest = latest
