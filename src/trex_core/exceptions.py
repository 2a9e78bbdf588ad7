"""Error taxonomy shared by the transaction manager, DAOs and services."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from sqlalchemy import exc as sa_exc

__all__ = [
    "CoreError",
    "DatabaseConnectionError",
    "QueryError",
    "ValidationError",
    "NotFoundError",
    "PersistenceError",
    "IntegrityConstraintViolation",
    "DatabaseOperationError",
    "EventEmissionError",
    "CancellationError",
    "InvalidStateError",
    "ensure_found",
    "handle_sqlalchemy_errors",
]


class CoreError(Exception):
    """Base class for errors raised by trex-core."""


class DatabaseConnectionError(CoreError):
    """Raised when a transaction cannot be begun or a connection acquired."""


class QueryError(CoreError):
    """Raised when the transaction identifier cannot be read after begin."""


class ValidationError(CoreError, ValueError):
    """Raised for malformed input, e.g. a missing identifier on replace."""


class NotFoundError(CoreError):
    """Raised when a record could not be located."""


class PersistenceError(CoreError):
    """Raised when the data-access layer fails."""


class IntegrityConstraintViolation(PersistenceError):
    """Raised when a database constraint is violated."""


class DatabaseOperationError(PersistenceError):
    """Raised for unexpected database errors."""


class EventEmissionError(CoreError):
    """Lifecycle event could not be emitted. Logged, never raised to callers."""


class CancellationError(CoreError):
    """Raised when the request context was cancelled or its deadline passed."""


class InvalidStateError(CoreError):
    """Raised when a transaction is finalized twice or bound twice."""


@dataclass(slots=True)
class _EntityContext:
    """Internal helper describing the entity for error messages."""

    entity: str | None = None

    def format(self, message: str) -> str:
        if self.entity:
            return f"{self.entity}: {message}"
        return message


def ensure_found(record: object | None, *, entity: str, identifier: str) -> object:
    """Ensure a record exists, otherwise raise :class:`NotFoundError`."""

    if record is None:
        raise NotFoundError(f"{entity} '{identifier}' not found")
    return record


# SQLSTATE raised by PostgreSQL when statement_timeout or a cancel request stops a query.
QUERY_CANCELED_SQLSTATE = "57014"


def _query_canceled(exc: sa_exc.DBAPIError) -> bool:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) == QUERY_CANCELED_SQLSTATE


def _translate_sqlalchemy_error(
    exc: Exception, *, context: _EntityContext, ctx: Any = None
) -> CoreError:
    if isinstance(exc, sa_exc.DBAPIError) and not isinstance(exc, sa_exc.IntegrityError):
        reason = ctx.err() if ctx is not None else None
        if reason is not None:
            return reason
        if _query_canceled(exc):
            return CancellationError(context.format("statement cancelled by the store"))
    if isinstance(exc, sa_exc.IntegrityError):
        return IntegrityConstraintViolation(context.format("integrity constraint violated"))
    if isinstance(exc, sa_exc.DBAPIError):
        return DatabaseOperationError(context.format("database operation failed"))
    return PersistenceError(context.format(str(exc)))


@contextmanager
def handle_sqlalchemy_errors(*, entity: str | None = None, ctx: Any = None) -> Iterator[None]:
    """Translate SQLAlchemy errors into domain specific ones.

    Driver errors raised once ``ctx`` is cancelled or past its deadline, and
    statements the store cancelled, become :class:`CancellationError`.
    """

    context = _EntityContext(entity)
    try:
        yield
    except sa_exc.SQLAlchemyError as exc:
        raise _translate_sqlalchemy_error(exc, context=context, ctx=ctx) from exc
