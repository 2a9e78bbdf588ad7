"""Prometheus metric hooks.

Advisory locks are implemented by the store layer; the core only exposes
the counters and timers callers update around lock operations.
"""

from __future__ import annotations

import time
from enum import Enum

from prometheus_client import Counter, Histogram


class LockType(str, Enum):
    """Scope of a PostgreSQL advisory lock."""

    TRANSACTION = "transaction"
    SESSION = "session"


LOCK_STATUS_OK = "OK"
LOCK_STATUS_FAILED = "Failed"

ADVISORY_LOCK_COUNT = Counter(
    "trex_advisory_lock_count",
    "Number of advisory lock operations",
    ["type", "status"],
)

ADVISORY_LOCK_DURATION = Histogram(
    "trex_advisory_lock_duration_seconds",
    "Time spent holding or waiting for advisory locks",
    ["type", "status"],
)

TRANSACTIONS_TOTAL = Counter(
    "trex_transactions_total",
    "Finalized transactions by outcome",
    ["outcome"],
)


def _label(lock_type: LockType | str) -> str:
    return lock_type.value if isinstance(lock_type, LockType) else str(lock_type)


def update_advisory_lock_count_metric(lock_type: LockType | str, status: str) -> None:
    ADVISORY_LOCK_COUNT.labels(type=_label(lock_type), status=status).inc()


def update_advisory_lock_duration_metric(
    lock_type: LockType | str, status: str, start_time: float | None = None
) -> None:
    """Observe the lock duration; ``start_time`` is a ``time.monotonic()`` reading."""
    if start_time is None:
        return
    elapsed = max(0.0, time.monotonic() - start_time)
    ADVISORY_LOCK_DURATION.labels(type=_label(lock_type), status=status).observe(elapsed)


def record_transaction_outcome(outcome: str) -> None:
    TRANSACTIONS_TOTAL.labels(outcome=outcome).inc()


__all__ = [
    "ADVISORY_LOCK_COUNT",
    "ADVISORY_LOCK_DURATION",
    "LOCK_STATUS_FAILED",
    "LOCK_STATUS_OK",
    "LockType",
    "TRANSACTIONS_TOTAL",
    "record_transaction_outcome",
    "update_advisory_lock_count_metric",
    "update_advisory_lock_duration_metric",
]
