"""Request-scoped SQLAlchemy sessions."""

from __future__ import annotations

from typing import Any, Protocol

import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session, sessionmaker

from ..context import RequestContext

REQUEST_CONTEXT_OPTION = "request_context"


def _observe_request_context(
    conn: Connection,
    cursor: Any,
    statement: str,
    parameters: Any,
    context: Any,
    executemany: bool,
) -> None:
    ctx = conn.get_execution_options().get(REQUEST_CONTEXT_OPTION)
    if ctx is not None:
        ctx.check()


def install_cancellation_hook(engine: Engine) -> None:
    """Check the bound request context before every statement sent to the store."""

    if not event.contains(engine, "before_cursor_execute", _observe_request_context):
        event.listen(engine, "before_cursor_execute", _observe_request_context)


def apply_statement_timeout(connection: Connection, ctx: RequestContext) -> None:
    """Bound every statement of the current PostgreSQL transaction by the ctx deadline."""

    remaining = ctx.remaining()
    if remaining is None or connection.dialect.name != "postgresql":
        return
    timeout_ms = max(1, int(remaining * 1000))
    connection.execute(sa.text(f"SET LOCAL statement_timeout = {timeout_ms}"))


def _apply_session_deadline(session: Session, transaction: Any, connection: Connection) -> None:
    ctx = session.info.get(REQUEST_CONTEXT_OPTION)
    if ctx is not None:
        apply_statement_timeout(connection, ctx)


class SessionFactory(Protocol):
    """Creates database sessions bound to a request context."""

    def new(self, ctx: RequestContext) -> Session:
        ...


class BasicSessionFactory:
    """Plain session factory; sessions use their own pooled connection."""

    def __init__(self, factory: sessionmaker[Session]) -> None:
        self._factory = factory

    def new(self, ctx: RequestContext) -> Session:
        bind = self._factory.kw["bind"]
        session = self._factory(bind=bind.execution_options(**{REQUEST_CONTEXT_OPTION: ctx}))
        session.info[REQUEST_CONTEXT_OPTION] = ctx
        event.listen(session, "after_begin", _apply_session_deadline)
        return session


class TransactionalSessionFactory(BasicSessionFactory):
    """Session factory joining the transaction bound to the request context.

    Sessions created while the context carries an open transaction share its
    connection; ``Session.commit()`` then only flushes and the transaction
    manager decides between commit and rollback.
    """

    def new(self, ctx: RequestContext) -> Session:
        transaction = ctx.transaction
        connection = transaction.connection if transaction is not None else None
        if connection is None or not transaction.is_open:
            return super().new(ctx)
        session = self._factory(bind=connection, join_transaction_mode="rollback_only")
        session.info[REQUEST_CONTEXT_OPTION] = ctx
        return session


__all__ = [
    "BasicSessionFactory",
    "REQUEST_CONTEXT_OPTION",
    "SessionFactory",
    "TransactionalSessionFactory",
    "apply_statement_timeout",
    "install_cancellation_hook",
]
