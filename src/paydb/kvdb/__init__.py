"""Bucketed key-value store: abstraction plus in-memory and SQLite engines."""

from paydb.kvdb.base import (
    ABSENT,
    Backend,
    Entry,
    EntryKind,
    ReadBucket,
    RwBucket,
    Tx,
)
from paydb.kvdb.memory import MemoryBackend
from paydb.kvdb.sqlite import SqliteBackend
from paydb.kvdb.tree import format_tree, normalize_tree, read_tree, write_tree

__all__ = [
    "ABSENT",
    "Backend",
    "Entry",
    "EntryKind",
    "ReadBucket",
    "RwBucket",
    "Tx",
    "MemoryBackend",
    "SqliteBackend",
    "read_tree",
    "write_tree",
    "normalize_tree",
    "format_tree",
]
