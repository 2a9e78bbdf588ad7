"""Generic SQLAlchemy implementation of :class:`DataAccessObject`."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Generic, Iterable, TypeVar

import sqlalchemy as sa

from ...context import RequestContext
from ...db.session import SessionFactory
from ...exceptions import ValidationError, ensure_found, handle_sqlalchemy_errors
from ...schemas import ListQuery, new_id

ModelT = TypeVar("ModelT")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SQLAlchemyDAO(Generic[ModelT]):
    """DAO for a mapped class carrying ``id`` / ``created_at`` / ``updated_at``.

    Sessions come from ``session_factory``; with a
    :class:`~trex_core.db.session.TransactionalSessionFactory` every call runs
    inside the transaction bound to the request context, including the page
    and count queries of a list request.
    """

    def __init__(
        self,
        model: type[ModelT],
        session_factory: SessionFactory,
        *,
        entity: str | None = None,
        id_factory: Callable[[], str] = new_id,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._model = model
        self._session_factory = session_factory
        self._entity = entity or model.__name__
        self._id_factory = id_factory
        self._clock = clock

    def get(self, ctx: RequestContext, id: str) -> ModelT:
        with self._session_factory.new(ctx) as session, handle_sqlalchemy_errors(
            entity=self._entity, ctx=ctx
        ):
            record = session.get(self._model, id)
            return ensure_found(record, entity=self._entity, identifier=id)  # type: ignore[return-value]

    def create(self, ctx: RequestContext, entity: ModelT) -> ModelT:
        now = self._clock()
        if not getattr(entity, "id", None):
            entity.id = self._id_factory()  # type: ignore[attr-defined]
        if getattr(entity, "created_at", None) is None:
            entity.created_at = now  # type: ignore[attr-defined]
        entity.updated_at = now  # type: ignore[attr-defined]
        with self._session_factory.new(ctx) as session, handle_sqlalchemy_errors(
            entity=self._entity, ctx=ctx
        ):
            session.add(entity)
            session.commit()
        return entity

    def replace(self, ctx: RequestContext, entity: ModelT) -> ModelT:
        identifier = getattr(entity, "id", None)
        if not identifier:
            raise ValidationError(f"{self._entity}: id is required")
        with self._session_factory.new(ctx) as session, handle_sqlalchemy_errors(
            entity=self._entity, ctx=ctx
        ):
            existing = ensure_found(
                session.get(self._model, identifier),
                entity=self._entity,
                identifier=identifier,
            )
            entity.created_at = existing.created_at  # type: ignore[attr-defined]
            entity.updated_at = self._clock()  # type: ignore[attr-defined]
            merged = session.merge(entity)
            session.commit()
            return merged

    def delete(self, ctx: RequestContext, id: str) -> None:
        with self._session_factory.new(ctx) as session, handle_sqlalchemy_errors(
            entity=self._entity, ctx=ctx
        ):
            record = ensure_found(
                session.get(self._model, id), entity=self._entity, identifier=id
            )
            session.delete(record)
            session.commit()

    def list(self, ctx: RequestContext, query: ListQuery) -> list[ModelT]:
        stmt = (
            sa.select(self._model)
            .where(*self._conditions(query))
            .order_by(*self._ordering(query))
            .offset(query.offset)
            .limit(query.size)
        )
        with self._session_factory.new(ctx) as session, handle_sqlalchemy_errors(
            entity=self._entity, ctx=ctx
        ):
            return list(session.scalars(stmt).all())

    def count(self, ctx: RequestContext, query: ListQuery) -> int:
        stmt = sa.select(sa.func.count()).select_from(
            sa.select(self._column("id")).where(*self._conditions(query)).subquery()
        )
        with self._session_factory.new(ctx) as session, handle_sqlalchemy_errors(
            entity=self._entity, ctx=ctx
        ):
            return int(session.scalar(stmt) or 0)

    def find_by_ids(self, ctx: RequestContext, ids: Iterable[str]) -> list[ModelT]:
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return []
        stmt = sa.select(self._model).where(self._column("id").in_(wanted))
        with self._session_factory.new(ctx) as session, handle_sqlalchemy_errors(
            entity=self._entity, ctx=ctx
        ):
            return list(session.scalars(stmt).all())

    def _column(self, name: str) -> Any:
        column = getattr(self._model, name, None)
        if column is None or not hasattr(column, "property"):
            raise ValidationError(f"{self._entity}: unknown field '{name}'")
        return column

    def _conditions(self, query: ListQuery) -> list[sa.ColumnElement[bool]]:
        return [self._column(name) == value for name, value in query.search.items()]

    def _ordering(self, query: ListQuery) -> list[Any]:
        if not query.order_by:
            return [self._column("created_at").desc(), self._column("id")]
        ordering: list[Any] = []
        for item in query.order_by:
            if item.startswith("-"):
                ordering.append(self._column(item[1:]).desc())
            else:
                ordering.append(self._column(item).asc())
        return ordering
