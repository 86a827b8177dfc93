"""
ID generation and timestamp utilities.

Provides idempotency_key(), new_run_id(), new_order_id() and now_iso() with
deterministic UTC ISO 8601 formatting. Run and order ids are ULIDs.
"""

from __future__ import annotations

from datetime import datetime, timezone

from ulid import ULID


def idempotency_key(caller_id: str | int, sequence: int) -> str:
    """
    Build the Idempotency-Key for one submission: caller id, dash, sequence.
    Unique within a run as long as each caller's sequence only moves forward.

    >>> idempotency_key("load", 1)
    'load-1'
    >>> idempotency_key(7, 0)
    '7-0'
    """
    return f"{caller_id}-{sequence}"


def new_run_id() -> str:
    """
    Generate a new run ID (ULID, lexicographically sortable).

    >>> id_ = new_run_id()
    >>> isinstance(id_, str) and len(id_) == 26
    True
    """
    return str(ULID())


def new_order_id() -> str:
    """Generate a new order ID. Same strategy as new_run_id()."""
    return str(ULID())


def now_iso() -> str:
    """
    Return current UTC time as ISO 8601 string with Z suffix.
    Deterministic format: YYYY-MM-DDTHH:MM:SS.ffffffZ

    >>> s = now_iso()
    >>> s.endswith('Z') and 'T' in s
    True
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
