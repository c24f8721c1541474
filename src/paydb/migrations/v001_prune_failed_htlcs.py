"""Migration V001: delete failed HTLC attempts from settled payments.

Every payment lives in its own bucket under payments-root-bucket and may
hold a payment-htlcs-bucket with up to three scalars per HTLC attempt:

    "ai" + attempt id   attempt info
    "si" + attempt id   settle info
    "fi" + attempt id   fail info

Once a payment has settled, the records of its failed attempts are dead
weight. For every settled payment this migration deletes the ai/si/fi
triplet of each attempt carrying fail info. Unsettled payments are left
exactly as they are.

Shape violations abort the whole run with StructuralCorruptionError; store
errors propagate unchanged. The caller owns the transaction.
"""

from dataclasses import dataclass

import structlog

from paydb.core.errors import StructuralCorruptionError
from paydb.kvdb.base import ReadBucket, RwBucket, Tx

log = structlog.get_logger()

VERSION = 1
DESCRIPTION = "Delete failed HTLC attempts from settled payments"

# Top-level bucket holding one nested bucket per payment hash.
PAYMENTS_ROOT_BUCKET = b"payments-root-bucket"

# Bucket inside a payment holding the HTLC attempt records.
PAYMENT_HTLCS_BUCKET = b"payment-htlcs-bucket"

# Two-byte prefixes; the attempt id is appended to each.
HTLC_ATTEMPT_INFO_KEY = b"ai"
HTLC_SETTLE_INFO_KEY = b"si"
HTLC_FAIL_INFO_KEY = b"fi"

HTLC_KEY_PREFIX_LEN = 2


@dataclass
class PruneStats:
    """What a run of the migration touched."""

    payments_scanned: int = 0
    payments_without_htlcs: int = 0
    payments_unsettled: int = 0
    payments_settled: int = 0
    attempts_pruned: int = 0
    keys_deleted: int = 0


def htlc_bucket_key(prefix: bytes, attempt_id: bytes) -> bytes:
    return prefix + attempt_id


def attempt_id_from_htlc_bucket_key(key: bytes) -> bytes:
    # All three prefixes are two bytes long, so the attempt id is whatever
    # follows them.
    return key[HTLC_KEY_PREFIX_LEN:]


# ============ Structure checks ============


def assert_is_bucket(
    bucket: RwBucket,
    key: bytes,
    bucket_name: bytes,
    allow_absent: bool = False,
) -> RwBucket | None:
    """Return the nested bucket under key.

    Raises StructuralCorruptionError if key holds a scalar, or is missing
    and allow_absent is False. Returns None for a missing key otherwise.
    """
    entry = bucket.lookup(key)
    if entry.is_bucket:
        return bucket.nested_read_write_bucket(key)
    if entry.is_absent and allow_absent:
        return None
    raise StructuralCorruptionError(key, bucket_name, expected_bucket=True)


def assert_is_not_bucket(bucket: ReadBucket, key: bytes, bucket_name: bytes) -> bytes | None:
    """Return the scalar under key, or None if key is absent.

    Raises StructuralCorruptionError if key holds a nested bucket.
    """
    entry = bucket.lookup(key)
    if entry.is_bucket:
        raise StructuralCorruptionError(key, bucket_name, expected_bucket=False)
    return entry.value


# ============ Classification and pruning ============


def collect_attempt_ids(htlcs: ReadBucket) -> set[bytes]:
    """Distinct attempt ids in an HTLC bucket.

    Each id backs up to three keys. The set is fully built before the caller
    touches the bucket, so no traversal is open while keys get deleted.
    """
    attempt_ids: set[bytes] = set()

    def collect(key: bytes, _value: bytes | None) -> None:
        attempt_ids.add(attempt_id_from_htlc_bucket_key(key))

    htlcs.for_each(collect)
    return attempt_ids


def payment_is_settled(htlcs: ReadBucket) -> bool:
    """True if any attempt of the payment has non-empty settle info."""
    for attempt_id in sorted(collect_attempt_ids(htlcs)):
        settle_key = htlc_bucket_key(HTLC_SETTLE_INFO_KEY, attempt_id)
        settle_info = assert_is_not_bucket(htlcs, settle_key, PAYMENT_HTLCS_BUCKET)
        if settle_info:
            return True

    return False


def delete_failed_htlcs(htlcs: RwBucket, payment_hash: bytes = b"") -> tuple[int, int]:
    """Delete ai/si/fi of every attempt with non-empty fail info.

    Returns (attempts pruned, keys deleted).
    """
    attempts_pruned = 0
    keys_deleted = 0

    for attempt_id in sorted(collect_attempt_ids(htlcs)):
        fail_key = htlc_bucket_key(HTLC_FAIL_INFO_KEY, attempt_id)
        attempt_key = htlc_bucket_key(HTLC_ATTEMPT_INFO_KEY, attempt_id)
        settle_key = htlc_bucket_key(HTLC_SETTLE_INFO_KEY, attempt_id)

        fail_info = assert_is_not_bucket(htlcs, fail_key, PAYMENT_HTLCS_BUCKET)
        attempt_info = assert_is_not_bucket(htlcs, attempt_key, PAYMENT_HTLCS_BUCKET)
        settle_info = assert_is_not_bucket(htlcs, settle_key, PAYMENT_HTLCS_BUCKET)

        if not fail_info:
            continue

        for key, value in (
            (fail_key, fail_info),
            (attempt_key, attempt_info),
            (settle_key, settle_info),
        ):
            htlcs.delete(key)
            if value is not None:
                keys_deleted += 1

        attempts_pruned += 1
        log.debug(
            "failed_htlc_deleted",
            payment_hash=payment_hash,
            attempt_id=attempt_id,
            had_settle_info=bool(settle_info),
        )

    return attempts_pruned, keys_deleted


# ============ Entry point ============


def migrate(tx: Tx) -> PruneStats:
    """Delete failed HTLCs from all settled payments."""
    stats = PruneStats()

    payments = tx.read_write_bucket(PAYMENTS_ROOT_BUCKET)
    if payments is None:
        log.info("payments_bucket_missing", bucket=PAYMENTS_ROOT_BUCKET.decode())
        return stats

    def migrate_payment(payment_hash: bytes, _value: bytes | None) -> None:
        stats.payments_scanned += 1

        payment = assert_is_bucket(payments, payment_hash, PAYMENTS_ROOT_BUCKET)

        htlcs = assert_is_bucket(
            payment, PAYMENT_HTLCS_BUCKET, payment_hash, allow_absent=True
        )
        if htlcs is None:
            stats.payments_without_htlcs += 1
            return

        if not payment_is_settled(htlcs):
            stats.payments_unsettled += 1
            return

        stats.payments_settled += 1
        pruned, deleted = delete_failed_htlcs(htlcs, payment_hash)
        stats.attempts_pruned += pruned
        stats.keys_deleted += deleted

    # Only nested HTLC buckets are edited during the traversal; the payments
    # bucket itself is never written.
    payments.for_each(migrate_payment)

    log.info(
        "failed_htlcs_pruned",
        payments_scanned=stats.payments_scanned,
        payments_settled=stats.payments_settled,
        attempts_pruned=stats.attempts_pruned,
        keys_deleted=stats.keys_deleted,
    )
    return stats
