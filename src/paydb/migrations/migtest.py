"""Helpers for testing migrations against fixture trees.

Fixtures are nested dicts: str or bytes keys, str/bytes values for scalars
and dicts for nested buckets (see paydb.kvdb.tree).
"""

from typing import Any, Callable

from paydb.kvdb.base import Backend, Tx
from paydb.kvdb.tree import Tree, normalize_tree, read_tree, write_tree


def hex_bytes(value: str) -> bytes:
    """Decode a hex string, e.g. for payment hashes and attempt ids."""
    return bytes.fromhex(value)


def restore_db(tx: Tx, bucket_name: bytes, data: dict[Any, Any]) -> None:
    """Write a fixture tree into a top-level bucket."""
    write_tree(tx.create_top_level_bucket(bucket_name), data)


def verify_db(tx: Tx, bucket_name: bytes, expected: dict[Any, Any]) -> None:
    """Assert a top-level bucket holds exactly the expected tree."""
    bucket = tx.read_bucket(bucket_name)
    if bucket is None:
        raise AssertionError(f"bucket {bucket_name!r} not found")

    actual = read_tree(bucket)
    expected_tree = normalize_tree(expected)
    if actual != expected_tree:
        problems = "\n".join(_diff(expected_tree, actual))
        raise AssertionError(f"bucket {bucket_name!r} does not match:\n{problems}")


def apply_migration(
    backend: Backend,
    before: Callable[[Tx], Any],
    after: Callable[[Tx], Any],
    migrate: Callable[[Tx], Any],
    should_fail: bool,
) -> Any:
    """Seed with before, run migrate in its own transaction, check with after.

    A failing migration is rolled back before `after` runs, so fixtures for
    failure cases pass the unchanged tree as the expected state.

    Returns the migration's result, or the raised exception when
    should_fail is set.
    """
    backend.update(before)

    try:
        outcome = backend.update(migrate)
    except Exception as e:
        if not should_fail:
            raise AssertionError(f"migration failed unexpectedly: {e}") from e
        outcome = e
    else:
        if should_fail:
            raise AssertionError("migration succeeded but was expected to fail")

    backend.view(after)
    return outcome


def _diff(expected: Tree, actual: Tree, path: str = "") -> list[str]:
    problems = []
    for key in sorted(set(expected) | set(actual)):
        where = f"{path}/{key!r}"
        if key not in actual:
            problems.append(f"missing {where}")
        elif key not in expected:
            problems.append(f"unexpected {where}")
        elif isinstance(expected[key], dict) and isinstance(actual[key], dict):
            problems.extend(_diff(expected[key], actual[key], where))
        elif expected[key] != actual[key]:
            problems.append(f"{where}: expected {expected[key]!r}, got {actual[key]!r}")
    return problems
