"""Core infrastructure - config, logging, errors."""

from paydb.core.config import ConfigManager, find_config_file
from paydb.core.errors import (
    BackendNotFoundError,
    BucketExistsError,
    BucketNotFoundError,
    CursorActiveError,
    DatabaseVersionError,
    IncompatibleValueError,
    InvalidKeyError,
    MigrationError,
    PaydbError,
    StoreOperationError,
    StructuralCorruptionError,
    TxClosedError,
    TxNotWritableError,
)
from paydb.core.logging import setup_logging

__all__ = [
    # Config
    "ConfigManager",
    "find_config_file",
    # Logging
    "setup_logging",
    # Errors
    "PaydbError",
    "StoreOperationError",
    "BackendNotFoundError",
    "InvalidKeyError",
    "IncompatibleValueError",
    "BucketExistsError",
    "BucketNotFoundError",
    "TxClosedError",
    "TxNotWritableError",
    "CursorActiveError",
    "StructuralCorruptionError",
    "MigrationError",
    "DatabaseVersionError",
]
