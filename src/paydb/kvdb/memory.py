"""In-memory engine.

Buckets are plain dict nodes. A read-write transaction works on a private
deep copy of the tree and publishes it on commit, so rollback is free and
readers opened earlier keep seeing the tree they started with.
"""

from typing import Callable, Optional, Union

from paydb.kvdb.base import Backend, EntryKind, Tx


class _Node:
    """One bucket: key -> scalar bytes or nested _Node."""

    __slots__ = ("entries",)

    def __init__(self) -> None:
        self.entries: dict[bytes, Union[bytes, "_Node"]] = {}

    def clone(self) -> "_Node":
        node = _Node()
        for key, value in self.entries.items():
            node.entries[key] = value.clone() if isinstance(value, _Node) else value
        return node


class MemoryTx(Tx):
    def __init__(
        self,
        backend: "MemoryBackend",
        root: _Node,
        writable: bool,
        on_close: Optional[Callable[[], None]],
    ) -> None:
        super().__init__(writable, on_close)
        self._backend = backend
        self._tree = root

    @property
    def _root_ref(self) -> _Node:
        return self._tree

    def _lookup(self, ref: _Node, key: bytes):
        value = ref.entries.get(key)
        if value is None:
            return EntryKind.ABSENT, None, None
        if isinstance(value, _Node):
            return EntryKind.BUCKET, None, value
        return EntryKind.SCALAR, value, None

    def _entries(self, ref: _Node) -> list[tuple[bytes, Optional[bytes]]]:
        return [
            (key, None if isinstance(value, _Node) else value)
            for key, value in sorted(ref.entries.items(), key=lambda item: item[0])
        ]

    def _put(self, ref: _Node, key: bytes, value: bytes) -> None:
        ref.entries[key] = value

    def _delete(self, ref: _Node, key: bytes) -> None:
        del ref.entries[key]

    def _create_bucket(self, ref: _Node, key: bytes) -> _Node:
        node = _Node()
        ref.entries[key] = node
        return node

    def _delete_bucket(self, ref: _Node, key: bytes, child: _Node) -> None:
        del ref.entries[key]

    def _do_commit(self) -> None:
        self._backend._tree = self._tree

    def _do_rollback(self) -> None:
        pass


class MemoryBackend(Backend):
    """Volatile engine for tests and dry runs."""

    def __init__(self) -> None:
        super().__init__()
        self._tree = _Node()

    def _begin(self, writable: bool, on_close: Optional[Callable[[], None]]) -> MemoryTx:
        root = self._tree.clone() if writable else self._tree
        return MemoryTx(self, root, writable, on_close)
