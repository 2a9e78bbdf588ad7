"""Request-scoped context carrying cancellation, deadline and the bound transaction.

Every core operation takes a :class:`RequestContext` as its first argument.
The context is the only place a request's :class:`~trex_core.db.transaction.Transaction`
lives; nested service calls sharing one context reuse that transaction.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable
from uuid import uuid4

import structlog

from .exceptions import CancellationError, InvalidStateError

if TYPE_CHECKING:
    from .db.transaction import Transaction


def _request_id() -> str:
    return uuid4().hex


@dataclass(eq=False)
class RequestContext:
    """Cancellable, deadline-bearing handle for one logical request."""

    request_id: str = field(default_factory=_request_id)
    deadline: float | None = None
    clock: Callable[[], float] = time.monotonic
    _cancelled: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _transaction: Transaction | None = field(default=None, init=False, repr=False)
    _cancel_callbacks: list[Callable[[], None]] = field(
        default_factory=list, init=False, repr=False
    )

    @classmethod
    def background(cls, *, request_id: str | None = None) -> RequestContext:
        """Return a context that never expires unless cancelled explicitly."""

        return cls(request_id=request_id or _request_id())

    @classmethod
    def with_timeout(
        cls,
        seconds: float,
        *,
        request_id: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> RequestContext:
        """Return a context whose deadline is ``seconds`` from now."""

        if seconds <= 0:
            raise ValueError("timeout must be positive")
        return cls(
            request_id=request_id or _request_id(),
            deadline=clock() + seconds,
            clock=clock,
        )

    def cancel(self) -> None:
        """Flag the request as cancelled and abort statements running on its behalf."""

        self._cancelled.set()
        with self._lock:
            callbacks = list(self._cancel_callbacks)
        for callback in callbacks:
            try:
                callback()
            except Exception:
                structlog.get_logger(__name__).warning(
                    "cancel callback failed", request_id=self.request_id, exc_info=True
                )

    def add_cancel_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            self._cancel_callbacks.append(callback)

    def remove_cancel_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._cancel_callbacks:
                self._cancel_callbacks.remove(callback)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and self.clock() >= self.deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, ``None`` when there is no deadline."""

        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self.clock())

    def err(self) -> CancellationError | None:
        if self.cancelled:
            return CancellationError(f"request {self.request_id} cancelled")
        if self.expired:
            return CancellationError(f"request {self.request_id} deadline exceeded")
        return None

    def check(self) -> None:
        """Raise :class:`CancellationError` if the request can no longer proceed."""

        error = self.err()
        if error is not None:
            raise error

    @property
    def transaction(self) -> Transaction | None:
        return self._transaction

    def bind_transaction(self, transaction: Transaction) -> None:
        with self._lock:
            current = self._transaction
            if current is not None and current.is_open:
                raise InvalidStateError(
                    f"request {self.request_id} already has open transaction {current.txid}"
                )
            self._transaction = transaction

    def unbind_transaction(self, transaction: Transaction) -> None:
        with self._lock:
            if self._transaction is transaction:
                self._transaction = None

    def log_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"request_id": self.request_id}
        transaction = self._transaction
        if transaction is not None:
            fields["txid"] = transaction.txid
        return fields


__all__ = ["RequestContext"]
