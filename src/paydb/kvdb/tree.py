"""Conversion between buckets and nested dicts.

A tree is a dict mapping bytes keys to bytes (scalar) or another tree
(nested bucket). Used by fixtures, verification and the dump command.
"""

from typing import Any, Union

from paydb.kvdb.base import ReadBucket, RwBucket

Tree = dict[bytes, Union[bytes, "Tree"]]


def read_tree(bucket: ReadBucket) -> Tree:
    """Materialize a bucket and everything below it."""
    tree: Tree = {}
    for key in bucket.keys():
        entry = bucket.lookup(key)
        if entry.is_bucket:
            tree[key] = read_tree(entry.bucket)
        else:
            tree[key] = entry.value
    return tree


def write_tree(bucket: RwBucket, tree: dict[Any, Any]) -> None:
    """Write a tree into a bucket.

    str keys and values are UTF-8 encoded; dict values become nested buckets.
    """
    for key, value in tree.items():
        key = _as_bytes(key)
        if isinstance(value, dict):
            write_tree(bucket.create_bucket_if_not_exists(key), value)
        else:
            bucket.put(key, _as_bytes(value))


def normalize_tree(tree: dict[Any, Any]) -> Tree:
    """Encode str keys and values so trees compare equal to read_tree output."""
    return {
        _as_bytes(key): normalize_tree(value) if isinstance(value, dict) else _as_bytes(value)
        for key, value in tree.items()
    }


def format_tree(tree: Tree, indent: int = 0) -> list[str]:
    """Render a tree as indented `key: value` lines, binary shown as hex."""
    lines = []
    pad = "  " * indent
    for key in sorted(tree):
        value = tree[key]
        if isinstance(value, dict):
            lines.append(f"{pad}{_render(key)}/")
            lines.extend(format_tree(value, indent + 1))
        else:
            lines.append(f"{pad}{_render(key)}: {value.hex()}")
    return lines


def _render(key: bytes) -> str:
    try:
        text = key.decode("ascii")
    except UnicodeDecodeError:
        return "0x" + key.hex()
    if text.isprintable():
        return text
    return "0x" + key.hex()


def _as_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)
