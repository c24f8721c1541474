"""Test fixtures for paydb tests.

This package provides:
- Payment store trees for migration tests
"""

from .payments import (
    attempt_id1,
    attempt_id2,
    attempt_id3,
    failing1,
    failing2,
    failing3,
    failing4,
    failing5,
    hash1,
    hash2,
    hash3,
    hash4,
    payment_id1,
    payment_id2,
    post,
    pre,
)
