from __future__ import annotations

import threading

import pytest

from trex_core.db.transaction import Transaction, TransactionState
from trex_core.exceptions import InvalidStateError, PersistenceError

from tests.mocks.store import FakeHandle

pytestmark = pytest.mark.unit


def test_txid_is_read_only() -> None:
    transaction = Transaction.build(FakeHandle(), 77, False)

    assert transaction.txid == 77
    with pytest.raises(AttributeError):
        transaction.txid = 5  # type: ignore[misc]


def test_rollback_flag_defaults_false_and_is_monotonic() -> None:
    transaction = Transaction(FakeHandle(), 1)
    assert transaction.marked_for_rollback is False

    transaction.mark_for_rollback()
    transaction.mark_for_rollback()

    assert transaction.marked_for_rollback is True


def test_concurrent_marking_keeps_flag_set() -> None:
    transaction = Transaction(FakeHandle(), 1)
    threads = [threading.Thread(target=transaction.mark_for_rollback) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert transaction.marked_for_rollback is True


def test_commit_finalizes_once_and_releases_connection() -> None:
    handle = FakeHandle()
    transaction = Transaction(handle, 1)

    transaction.commit()

    assert transaction.state is TransactionState.COMMITTED
    assert handle.committed is True
    assert handle.closed == 1
    with pytest.raises(InvalidStateError):
        transaction.commit()
    with pytest.raises(InvalidStateError):
        transaction.rollback()
    assert handle.closed == 1


def test_finalize_rolls_back_when_marked() -> None:
    handle = FakeHandle()
    transaction = Transaction(handle, 1)
    transaction.mark_for_rollback()

    state = transaction.finalize()

    assert state is TransactionState.ROLLED_BACK
    assert handle.rolled_back is True
    assert handle.committed is False


def test_failed_commit_ends_rolled_back_and_still_releases() -> None:
    handle = FakeHandle()
    handle.commit_error = PersistenceError("commit failed")
    transaction = Transaction(handle, 1)
    calls: list[str] = []
    transaction.on_commit(lambda: calls.append("after"))

    with pytest.raises(PersistenceError):
        transaction.commit()

    assert transaction.state is TransactionState.ROLLED_BACK
    assert handle.closed == 1
    assert calls == []


def test_on_commit_callbacks_run_after_commit_only() -> None:
    committed = Transaction(FakeHandle(), 1)
    rolled_back = Transaction(FakeHandle(), 2)
    calls: list[int] = []
    committed.on_commit(lambda: calls.append(1))
    rolled_back.on_commit(lambda: calls.append(2))

    committed.commit()
    rolled_back.rollback()

    assert calls == [1]
    with pytest.raises(InvalidStateError):
        committed.on_commit(lambda: None)
