"""Transaction lifecycle: begin, transaction id capture, rollback marking."""

from __future__ import annotations

from contextlib import contextmanager
from functools import partial
from typing import Any, Callable, Iterator, Protocol, Sequence

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine

from ..context import RequestContext
from ..exceptions import (
    CancellationError,
    CoreError,
    DatabaseConnectionError,
    QueryError,
    handle_sqlalchemy_errors,
)
from ..logging import get_logger
from ..metrics import record_transaction_outcome
from .session import REQUEST_CONTEXT_OPTION, apply_statement_timeout
from .transaction import Transaction, TransactionHandle

# Transactions commit unless something calls mark_for_rollback(ctx, err).
DEFAULT_ROLLBACK_POLICY = False

# PostgreSQL transaction ids are not distinct across time; they are reused
# after vacuuming reclaims them.
TXID_CURRENT_QUERY = "select txid_current()"


class DirectConnection(Protocol):
    def begin(self, ctx: RequestContext) -> TransactionHandle:
        ...


class ConnectionProvider(Protocol):
    def direct_db(self) -> DirectConnection:
        ...


class SQLAlchemyTransactionHandle:
    """Root transaction on a dedicated SQLAlchemy connection."""

    def __init__(
        self, connection: Connection, *, on_close: Callable[[], None] | None = None
    ) -> None:
        self.connection = connection
        self._on_close = on_close
        self._transaction = connection.begin()

    def query_row(self, query: str, params: Any = None) -> Sequence[Any] | None:
        return self.connection.execute(sa.text(query), params or {}).first()

    def commit(self) -> None:
        with handle_sqlalchemy_errors(entity="transaction"):
            self._transaction.commit()

    def rollback(self) -> None:
        with handle_sqlalchemy_errors(entity="transaction"):
            self._transaction.rollback()

    def close(self) -> None:
        try:
            self.connection.close()
        finally:
            if self._on_close is not None:
                self._on_close()


class EngineDirectConnection:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def begin(self, ctx: RequestContext) -> SQLAlchemyTransactionHandle:
        connection = self._engine.connect()
        connection.execution_options(**{REQUEST_CONTEXT_OPTION: ctx})
        cancel = _server_cancel(connection)
        on_close = None
        if cancel is not None:
            ctx.add_cancel_callback(cancel)
            on_close = partial(ctx.remove_cancel_callback, cancel)
        try:
            handle = SQLAlchemyTransactionHandle(connection, on_close=on_close)
            apply_statement_timeout(connection, ctx)
        except BaseException:
            connection.close()
            if on_close is not None:
                on_close()
            raise
        return handle


def _server_cancel(connection: Connection) -> Callable[[], None] | None:
    """Return the driver call that aborts the statement running on ``connection``."""
    if connection.dialect.name != "postgresql":
        return None
    return getattr(connection.connection.dbapi_connection, "cancel", None)


class EngineConnectionProvider:
    """Connection provider backed by a SQLAlchemy engine and its pool."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def direct_db(self) -> EngineDirectConnection:
        return EngineDirectConnection(self.engine)


def new_transaction(
    ctx: RequestContext,
    connection: ConnectionProvider | None,
    *,
    txid_query: str = TXID_CURRENT_QUERY,
) -> Transaction | None:
    """Begin a transaction and capture the store's transaction id.

    Returns ``None`` when ``connection`` is ``None``; this happens in
    non-integration tests that run services without a database.
    """

    if connection is None:
        return None

    ctx.check()
    dbx = connection.direct_db()
    try:
        handle = dbx.begin(ctx)
    except CoreError:
        raise
    except Exception as exc:
        raise DatabaseConnectionError("could not begin transaction") from exc

    txid = 0
    try:
        row = handle.query_row(txid_query)
        if row is not None:
            txid = int(row[0])
    except Exception as exc:
        try:
            handle.rollback()
        except Exception:
            get_logger(ctx).error("rollback after txid failure failed", exc_info=True)
        finally:
            handle.close()
        if isinstance(exc, CancellationError):
            raise
        raise QueryError("could not read current transaction id") from exc

    get_logger(ctx).debug("transaction started", txid=txid)
    return Transaction.build(handle, txid, DEFAULT_ROLLBACK_POLICY)


def mark_for_rollback(ctx: RequestContext, err: BaseException | str | None) -> None:
    """Flag the transaction bound to ``ctx`` so it is rolled back on exit."""

    logger = get_logger(ctx)
    transaction = ctx.transaction
    if transaction is None:
        logger.warning("no transaction to mark for rollback", error=str(err))
        return
    transaction.mark_for_rollback()
    logger.info("transaction marked for rollback", error=str(err))


class TransactionManager:
    """Hands out one transaction per request context.

    ``transaction(ctx)`` reuses the open transaction already bound to ``ctx``;
    only the call that began a transaction finalizes it. An exception escaping
    the owning block marks the transaction for rollback. Exceptions leaving a
    nested block are the caller's to handle; call :func:`mark_for_rollback`
    to veto the commit explicitly.
    """

    def __init__(
        self,
        connection: ConnectionProvider | None,
        *,
        txid_query: str = TXID_CURRENT_QUERY,
    ) -> None:
        self._connection = connection
        self._txid_query = txid_query

    @property
    def enabled(self) -> bool:
        return self._connection is not None

    def begin(self, ctx: RequestContext) -> Transaction | None:
        return new_transaction(ctx, self._connection, txid_query=self._txid_query)

    @contextmanager
    def transaction(self, ctx: RequestContext) -> Iterator[Transaction | None]:
        current = ctx.transaction
        if current is not None and current.is_open:
            yield current
            return

        transaction = self.begin(ctx)
        if transaction is None:
            yield None
            return

        ctx.bind_transaction(transaction)
        try:
            yield transaction
        except BaseException as exc:
            mark_for_rollback(ctx, exc)
            raise
        finally:
            ctx.unbind_transaction(transaction)
            try:
                transaction.finalize()
            finally:
                state = transaction.state
                record_transaction_outcome(state.value)
                get_logger(ctx).debug(
                    "transaction finalized", txid=transaction.txid, state=state.value
                )


__all__ = [
    "ConnectionProvider",
    "DEFAULT_ROLLBACK_POLICY",
    "DirectConnection",
    "EngineConnectionProvider",
    "EngineDirectConnection",
    "SQLAlchemyTransactionHandle",
    "TXID_CURRENT_QUERY",
    "TransactionManager",
    "mark_for_rollback",
    "new_transaction",
]
