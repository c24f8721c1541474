"""
Bucketed key-value store abstraction.

A store holds named top-level buckets. Every bucket maps non-empty byte keys
to either a scalar value or a nested bucket, and the two kinds share one key
space: a key names a scalar or a bucket, never both.

Engines only implement raw storage primitives on a Tx subclass. The rules
every engine must obey live here:
- scalar operations on a bucket key raise IncompatibleValueError
- a bucket with an open for_each traversal cannot be mutated
- only one read-write transaction is open per backend at a time
- commit and rollback close the transaction for good
"""

import threading
from abc import ABC, abstractmethod
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Hashable, Iterator, Optional, TypeVar

from paydb.core.errors import (
    BucketExistsError,
    BucketNotFoundError,
    CursorActiveError,
    IncompatibleValueError,
    InvalidKeyError,
    StoreOperationError,
    TxClosedError,
    TxNotWritableError,
    display_key,
)

T = TypeVar("T")

# Engine-specific handle for a bucket (a node object, a row id, ...)
Ref = Hashable


class EntryKind(str, Enum):
    """What a key resolves to inside a bucket."""

    ABSENT = "absent"
    SCALAR = "scalar"
    BUCKET = "bucket"


@dataclass(frozen=True)
class Entry:
    """Tagged result of a key lookup.

    Exactly one of value/bucket is set for SCALAR/BUCKET entries; both are
    None for ABSENT.
    """

    kind: EntryKind
    value: Optional[bytes] = None
    bucket: Optional["ReadBucket"] = None

    @property
    def is_absent(self) -> bool:
        return self.kind is EntryKind.ABSENT

    @property
    def is_scalar(self) -> bool:
        return self.kind is EntryKind.SCALAR

    @property
    def is_bucket(self) -> bool:
        return self.kind is EntryKind.BUCKET


ABSENT = Entry(EntryKind.ABSENT)


def check_key(key: Any) -> bytes:
    """Normalize a key to bytes, rejecting empty and non-binary keys."""
    if not isinstance(key, (bytes, bytearray, memoryview)):
        raise InvalidKeyError(f"key must be bytes, got {type(key).__name__}")
    key = bytes(key)
    if not key:
        raise InvalidKeyError("key must not be empty")
    return key


class ReadBucket:
    """Read-only view of one bucket inside a transaction."""

    def __init__(self, tx: "Tx", ref: Ref, name: bytes) -> None:
        self._tx = tx
        self._ref = ref
        self._name = name

    @property
    def name(self) -> bytes:
        return self._name

    @property
    def tx(self) -> "Tx":
        return self._tx

    def _resolve(self, key: Any) -> tuple[bytes, EntryKind, Optional[bytes], Optional[Ref]]:
        key = check_key(key)
        self._tx._check_open()
        kind, value, child = self._tx._lookup(self._ref, key)
        return key, kind, value, child

    def _child(self, ref: Ref, name: bytes) -> "ReadBucket":
        return ReadBucket(self._tx, ref, name)

    def lookup(self, key: Any) -> Entry:
        """Resolve a key to ABSENT, SCALAR(value) or BUCKET(handle)."""
        key, kind, value, child = self._resolve(key)
        if kind is EntryKind.BUCKET:
            return Entry(kind, bucket=self._child(child, key))
        if kind is EntryKind.SCALAR:
            return Entry(kind, value=value)
        return ABSENT

    def get(self, key: Any) -> Optional[bytes]:
        """Scalar value under key; None when missing or when key is a bucket."""
        _, kind, value, _ = self._resolve(key)
        if kind is EntryKind.SCALAR:
            return value
        return None

    def nested_read_bucket(self, key: Any) -> Optional["ReadBucket"]:
        """Read-only nested bucket under key; None when missing or a scalar."""
        key, kind, _, child = self._resolve(key)
        if kind is EntryKind.BUCKET:
            return ReadBucket(self._tx, child, key)
        return None

    def for_each(self, fn: Callable[[bytes, Optional[bytes]], Any]) -> None:
        """Call fn(key, value) for every direct entry in bytewise key order.

        value is None for nested buckets. The bucket cannot be mutated until
        the traversal returns; exceptions raised by fn stop the traversal and
        propagate unchanged.
        """
        self._tx._check_open()
        with self._tx._cursor(self._ref):
            for key, value in self._tx._entries(self._ref):
                fn(key, value)

    def keys(self) -> list[bytes]:
        """Snapshot of all direct keys in bytewise order."""
        self._tx._check_open()
        return [key for key, _ in self._tx._entries(self._ref)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({display_key(self._name) if self._name else '<root>'})"


class RwBucket(ReadBucket):
    """Read-write view of one bucket inside a writable transaction."""

    def _child(self, ref: Ref, name: bytes) -> "RwBucket":
        return RwBucket(self._tx, ref, name)

    def nested_read_write_bucket(self, key: Any) -> Optional["RwBucket"]:
        """Writable nested bucket under key; None when missing or a scalar."""
        key, kind, _, child = self._resolve(key)
        if kind is EntryKind.BUCKET:
            return RwBucket(self._tx, child, key)
        return None

    def create_bucket(self, key: Any) -> "RwBucket":
        key, kind, _, _ = self._resolve(key)
        self._tx._check_mutable(self._ref)
        if kind is EntryKind.BUCKET:
            raise BucketExistsError(f"bucket already exists: '{display_key(key)}'")
        if kind is EntryKind.SCALAR:
            raise IncompatibleValueError(f"key holds a value: '{display_key(key)}'")
        return RwBucket(self._tx, self._tx._create_bucket(self._ref, key), key)

    def create_bucket_if_not_exists(self, key: Any) -> "RwBucket":
        key, kind, _, child = self._resolve(key)
        if kind is EntryKind.BUCKET:
            return RwBucket(self._tx, child, key)
        return self.create_bucket(key)

    def delete_nested_bucket(self, key: Any) -> None:
        key, kind, _, child = self._resolve(key)
        self._tx._check_mutable(self._ref)
        if kind is EntryKind.ABSENT:
            raise BucketNotFoundError(f"bucket not found: '{display_key(key)}'")
        if kind is EntryKind.SCALAR:
            raise IncompatibleValueError(f"key holds a value: '{display_key(key)}'")
        self._tx._check_mutable(child)
        self._tx._delete_bucket(self._ref, key, child)

    def put(self, key: Any, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise StoreOperationError(f"value must be bytes, got {type(value).__name__}")
        key, kind, _, _ = self._resolve(key)
        self._tx._check_mutable(self._ref)
        if kind is EntryKind.BUCKET:
            raise IncompatibleValueError(f"key holds a bucket: '{display_key(key)}'")
        self._tx._put(self._ref, key, bytes(value))

    def delete(self, key: Any) -> None:
        """Delete a scalar. Deleting a missing key is a no-op."""
        key, kind, _, _ = self._resolve(key)
        self._tx._check_mutable(self._ref)
        if kind is EntryKind.BUCKET:
            raise IncompatibleValueError(f"key holds a bucket: '{display_key(key)}'")
        if kind is EntryKind.SCALAR:
            self._tx._delete(self._ref, key)


class Tx(ABC):
    """A transaction over a backend.

    Subclasses supply the storage primitives (underscore methods below);
    this class enforces transaction state and mutation rules.
    """

    def __init__(
        self,
        writable: bool,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        self._writable = writable
        self._closed = False
        self._on_close = on_close
        self._cursors: Counter = Counter()

    @property
    def writable(self) -> bool:
        return self._writable

    @property
    def closed(self) -> bool:
        return self._closed

    # ============ Top-level buckets ============

    def _root(self) -> ReadBucket:
        if self._writable:
            return RwBucket(self, self._root_ref, b"")
        return ReadBucket(self, self._root_ref, b"")

    def read_bucket(self, name: Any) -> Optional[ReadBucket]:
        return self._root().nested_read_bucket(name)

    def read_write_bucket(self, name: Any) -> Optional[RwBucket]:
        if not self._writable:
            raise TxNotWritableError("read-write bucket requested on a read-only transaction")
        return self._root().nested_read_write_bucket(name)

    def create_top_level_bucket(self, name: Any) -> RwBucket:
        """Open the named top-level bucket, creating it when missing."""
        if not self._writable:
            raise TxNotWritableError("cannot create buckets in a read-only transaction")
        return self._root().create_bucket_if_not_exists(name)

    def delete_top_level_bucket(self, name: Any) -> None:
        if not self._writable:
            raise TxNotWritableError("cannot delete buckets in a read-only transaction")
        self._root().delete_nested_bucket(name)

    def top_level_buckets(self) -> list[bytes]:
        return self._root().keys()

    # ============ Lifecycle ============

    def commit(self) -> None:
        self._check_open()
        if not self._writable:
            raise TxNotWritableError("cannot commit a read-only transaction")
        try:
            self._do_commit()
        finally:
            self._close()

    def rollback(self) -> None:
        self._check_open()
        try:
            self._do_rollback()
        finally:
            self._close()

    def _close(self) -> None:
        self._closed = True
        self._cursors.clear()
        if self._on_close is not None:
            on_close, self._on_close = self._on_close, None
            on_close()

    # ============ Rule enforcement ============

    def _check_open(self) -> None:
        if self._closed:
            raise TxClosedError("transaction is closed")

    def _check_mutable(self, ref: Ref) -> None:
        self._check_open()
        if not self._writable:
            raise TxNotWritableError("write attempted in a read-only transaction")
        if self._cursors[ref]:
            raise CursorActiveError("bucket mutated while a traversal over it is open")

    @contextmanager
    def _cursor(self, ref: Ref) -> Iterator[None]:
        self._cursors[ref] += 1
        try:
            yield
        finally:
            self._cursors[ref] -= 1

    # ============ Storage primitives ============

    @property
    @abstractmethod
    def _root_ref(self) -> Ref:
        """Handle of the invisible bucket that holds top-level buckets."""

    @abstractmethod
    def _lookup(self, ref: Ref, key: bytes) -> tuple[EntryKind, Optional[bytes], Optional[Ref]]:
        """Return (kind, scalar value, child bucket handle) for key."""

    @abstractmethod
    def _entries(self, ref: Ref) -> list[tuple[bytes, Optional[bytes]]]:
        """Materialized (key, value-or-None) pairs in bytewise key order."""

    @abstractmethod
    def _put(self, ref: Ref, key: bytes, value: bytes) -> None: ...

    @abstractmethod
    def _delete(self, ref: Ref, key: bytes) -> None: ...

    @abstractmethod
    def _create_bucket(self, ref: Ref, key: bytes) -> Ref: ...

    @abstractmethod
    def _delete_bucket(self, ref: Ref, key: bytes, child: Ref) -> None: ...

    @abstractmethod
    def _do_commit(self) -> None: ...

    @abstractmethod
    def _do_rollback(self) -> None: ...


class Backend(ABC):
    """A key-value engine handing out transactions.

    Read-write transactions are serialized with a lock held until commit or
    rollback; opening a second one from the thread that holds the first
    blocks forever.
    """

    def __init__(self) -> None:
        self._write_lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def begin(self, writable: bool = False) -> Tx:
        if self._closed:
            raise StoreOperationError("database is closed")

        if not writable:
            return self._begin(False, None)

        self._write_lock.acquire()
        try:
            return self._begin(True, self._write_lock.release)
        except BaseException:
            self._write_lock.release()
            raise

    def view(self, fn: Callable[[Tx], T]) -> T:
        """Run fn inside a read-only transaction."""
        tx = self.begin(writable=False)
        try:
            return fn(tx)
        finally:
            if not tx.closed:
                tx.rollback()

    def update(self, fn: Callable[[Tx], T]) -> T:
        """Run fn inside a read-write transaction.

        Commits when fn returns, rolls back and re-raises when it raises.
        """
        tx = self.begin(writable=True)
        try:
            result = fn(tx)
        except BaseException:
            if not tx.closed:
                tx.rollback()
            raise
        tx.commit()
        return result

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> "Backend":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @abstractmethod
    def _begin(self, writable: bool, on_close: Optional[Callable[[], None]]) -> Tx: ...
