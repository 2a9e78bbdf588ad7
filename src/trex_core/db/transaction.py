"""Explicit unit of work over one store transaction."""

from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Callable, Protocol, Sequence

from ..exceptions import InvalidStateError


class TransactionHandle(Protocol):
    """Underlying store transaction as returned by ``DirectConnection.begin``."""

    def query_row(self, query: str, params: Any = None) -> Sequence[Any] | None:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...

    def close(self) -> None:
        ...


class TransactionState(str, Enum):
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Transaction:
    """Store transaction, its captured id and a monotonic rollback decision.

    The rollback flag may be set from any thread sharing the request; it can
    never be cleared. ``commit`` and ``rollback`` are each allowed once in
    total and always release the underlying connection.
    """

    def __init__(self, handle: TransactionHandle, txid: int, rollback: bool = False) -> None:
        self._handle = handle
        self._txid = txid
        self._rollback = rollback
        self._state = TransactionState.OPEN
        self._lock = threading.Lock()
        self._after_commit: list[Callable[[], None]] = []

    @classmethod
    def build(cls, handle: TransactionHandle, txid: int, rollback: bool) -> Transaction:
        return cls(handle, txid, rollback)

    @property
    def txid(self) -> int:
        return self._txid

    @property
    def handle(self) -> TransactionHandle:
        return self._handle

    @property
    def connection(self) -> Any | None:
        """SQLAlchemy connection of the handle, if it exposes one."""
        return getattr(self._handle, "connection", None)

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is TransactionState.OPEN

    @property
    def marked_for_rollback(self) -> bool:
        return self._rollback

    def mark_for_rollback(self) -> None:
        with self._lock:
            self._rollback = True

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` after a successful commit; dropped on rollback."""
        with self._lock:
            if self._state is not TransactionState.OPEN:
                raise InvalidStateError(f"transaction {self._txid} is already {self._state.value}")
            self._after_commit.append(callback)

    def commit(self) -> None:
        self._finish(TransactionState.COMMITTED)
        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            callback()

    def rollback(self) -> None:
        self._finish(TransactionState.ROLLED_BACK)
        self._after_commit = []

    def finalize(self) -> TransactionState:
        """Commit unless marked for rollback and return the final state."""
        if self._rollback:
            self.rollback()
        else:
            self.commit()
        return self._state

    def _finish(self, target: TransactionState) -> None:
        with self._lock:
            if self._state is not TransactionState.OPEN:
                raise InvalidStateError(
                    f"transaction {self._txid} is already {self._state.value}"
                )
            self._state = target
        try:
            if target is TransactionState.COMMITTED:
                self._handle.commit()
            else:
                self._handle.rollback()
        except Exception:
            self._state = TransactionState.ROLLED_BACK
            self._after_commit = []
            raise
        finally:
            self._handle.close()

    def __repr__(self) -> str:
        return (
            f"Transaction(txid={self._txid}, state={self._state.value}, "
            f"rollback={self._rollback})"
        )


__all__ = ["Transaction", "TransactionHandle", "TransactionState"]
