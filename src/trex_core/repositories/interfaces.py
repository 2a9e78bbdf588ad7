"""Collaborator contracts consumed by the CRUD service."""

from __future__ import annotations

from typing import Iterable, Protocol, TypeVar

from ..context import RequestContext
from ..schemas import EventType, ListQuery

T = TypeVar("T")


class DataAccessObject(Protocol[T]):
    """Per-resource persistence operations."""

    def get(self, ctx: RequestContext, id: str) -> T | None:
        """Return the resource or ``None``; may also raise ``NotFoundError``."""

    def create(self, ctx: RequestContext, entity: T) -> T:
        """Persist ``entity``, assigning its identifier when empty."""

    def replace(self, ctx: RequestContext, entity: T) -> T:
        """Overwrite the stored resource with ``entity``."""

    def delete(self, ctx: RequestContext, id: str) -> None:
        """Remove the resource; absent identifiers are handled per DAO policy."""

    def list(self, ctx: RequestContext, query: ListQuery) -> list[T]:
        """Return resources of the requested page."""

    def count(self, ctx: RequestContext, query: ListQuery) -> int:
        """Return the number of resources matching ``query`` ignoring pagination."""

    def find_by_ids(self, ctx: RequestContext, ids: Iterable[str]) -> list[T]:
        """Return the resources that exist among ``ids``."""


class EventEmitter(Protocol):
    """Sink for resource lifecycle events."""

    def emit_event(
        self, ctx: RequestContext, source: str, source_id: str, event_type: EventType
    ) -> None:
        """Record that ``source_id`` of type ``source`` changed."""


__all__ = ["DataAccessObject", "EventEmitter"]
