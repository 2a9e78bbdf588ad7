"""Generic CRUD orchestration over a DAO and an event emitter."""

from __future__ import annotations

from contextlib import AbstractContextManager, contextmanager
from functools import partial
from typing import Any, Callable, Generic, Iterable, Iterator, TypeVar

from ..context import RequestContext
from ..db.transaction import Transaction
from ..db.transactions import TransactionManager
from ..exceptions import (
    CoreError,
    EventEmissionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ..logging import get_logger
from ..repositories.interfaces import DataAccessObject, EventEmitter
from ..schemas import EventType, ListQuery, ListResult, Resource

T = TypeVar("T", bound=Resource)
R = TypeVar("R")

# DAO calls addressing one record by id; a KeyError from them means absence.
_LOOKUP_ACTIONS = frozenset({"get", "replace", "delete"})


class BaseCRUDService(Generic[T]):
    """Create/get/replace/delete/list/count/find for one resource type.

    Every call runs inside the transaction bound to ``ctx`` (begun by the
    transaction manager when none is bound yet). Lifecycle events are emitted
    once the mutation is committed; an emission failure is logged and never
    undoes the mutation. A failed call rolls back a transaction it began
    itself; inside a caller's transaction the caller decides, through
    :func:`~trex_core.db.transactions.mark_for_rollback` or by letting the
    error escape its own block.
    """

    def __init__(
        self,
        dao: DataAccessObject[T],
        events: EventEmitter,
        source_type: str,
        *,
        transaction_manager: TransactionManager | None = None,
    ) -> None:
        self._dao = dao
        self._events = events
        self._source_type = source_type
        self._transactions = transaction_manager

    @property
    def source_type(self) -> str:
        return self._source_type

    def create(self, ctx: RequestContext, entity: T) -> T:
        with self._transaction(ctx) as transaction:
            created = self._call(self._dao.create, ctx, entity, action="create")
            self._emit_after_commit(ctx, transaction, created.id, EventType.CREATE)
        return created

    def get(self, ctx: RequestContext, id: str) -> T:
        with self._transaction(ctx):
            found = self._call(self._dao.get, ctx, id, action="get")
        if found is None:
            raise NotFoundError(f"{self._source_type} '{id}' not found")
        return found

    def replace(self, ctx: RequestContext, entity: T) -> T:
        if not getattr(entity, "id", None):
            raise ValidationError(f"{self._source_type}: id is required to replace")
        with self._transaction(ctx) as transaction:
            replaced = self._call(self._dao.replace, ctx, entity, action="replace")
            self._emit_after_commit(ctx, transaction, replaced.id, EventType.UPDATE)
        return replaced

    def delete(self, ctx: RequestContext, id: str) -> None:
        with self._transaction(ctx) as transaction:
            self._call(self._dao.delete, ctx, id, action="delete")
            self._emit_after_commit(ctx, transaction, id, EventType.DELETE)

    def list(self, ctx: RequestContext, query: ListQuery) -> ListResult[T]:
        with self._transaction(ctx):
            items = self._call(self._dao.list, ctx, query, action="list")
            total = self._call(self._dao.count, ctx, query, action="count")
        return ListResult(items=list(items), total=total, page=query.page, size=query.size)

    def count(self, ctx: RequestContext, query: ListQuery) -> int:
        with self._transaction(ctx):
            return self._call(self._dao.count, ctx, query, action="count")

    def find_by_ids(self, ctx: RequestContext, ids: Iterable[str]) -> list[T]:
        wanted = list(ids)
        if not wanted:
            return []
        with self._transaction(ctx):
            return list(self._call(self._dao.find_by_ids, ctx, wanted, action="find_by_ids"))

    def on_upsert(self, ctx: RequestContext, id: str) -> None:
        """React to an upsert reported by the change feed. Must stay idempotent."""
        get_logger(ctx).info("resource upserted", source=self._source_type, source_id=id)

    def on_delete(self, ctx: RequestContext, id: str) -> None:
        """React to a delete reported by the change feed. Must stay idempotent."""
        get_logger(ctx).info("resource deleted", source=self._source_type, source_id=id)

    def _transaction(self, ctx: RequestContext) -> AbstractContextManager[Transaction | None]:
        if self._transactions is None:
            return _join_bound(ctx)
        return self._transactions.transaction(ctx)

    def _call(self, operation: Callable[..., R], ctx: RequestContext, *args: Any, action: str) -> R:
        ctx.check()
        try:
            return operation(ctx, *args)
        except CoreError:
            raise
        except KeyError as exc:
            if action not in _LOOKUP_ACTIONS:
                raise PersistenceError(f"{self._source_type} {action} failed: {exc!r}") from exc
            raise NotFoundError(f"{self._source_type} {action}: {exc}") from exc
        except Exception as exc:
            raise PersistenceError(f"{self._source_type} {action} failed: {exc}") from exc

    def _emit_after_commit(
        self,
        ctx: RequestContext,
        transaction: Transaction | None,
        source_id: str,
        event_type: EventType,
    ) -> None:
        if transaction is None:
            self._emit(ctx, source_id, event_type)
            return
        transaction.on_commit(partial(self._emit, ctx, source_id, event_type))

    def _emit(self, ctx: RequestContext, source_id: str, event_type: EventType) -> None:
        try:
            self._events.emit_event(ctx, self._source_type, source_id, event_type)
        except Exception as exc:
            error = EventEmissionError(
                f"{self._source_type} '{source_id}' {event_type.value} event not emitted"
            )
            get_logger(ctx).error(
                str(error),
                source=self._source_type,
                source_id=source_id,
                event_type=event_type.value,
                exc_info=exc,
            )


@contextmanager
def _join_bound(ctx: RequestContext) -> Iterator[Transaction | None]:
    """Yield the open transaction already bound to ``ctx`` without owning it."""
    transaction = ctx.transaction
    yield transaction if transaction is not None and transaction.is_open else None


__all__ = ["BaseCRUDService"]
