"""Resource metadata, list queries and lifecycle event types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Mapping, Protocol, Sequence, TypeVar
from uuid import uuid4

from ..exceptions import ValidationError

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "Event",
    "EventType",
    "ListQuery",
    "ListResult",
    "Meta",
    "Resource",
    "new_id",
]

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 65_500


def new_id() -> str:
    """Return a fresh resource identifier."""

    return uuid4().hex


class Resource(Protocol):
    """Capabilities every persisted resource exposes."""

    id: str
    created_at: datetime | None


@dataclass(kw_only=True)
class Meta:
    """Identifier and creation metadata embedded in plain resources."""

    id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ListQuery:
    """Pagination plus equality filters and ordering for list requests.

    ``order_by`` entries are field names; a leading ``-`` sorts descending.
    ``max_size`` caps ``size``; configured deployments build queries through
    :meth:`trex_core.config.CoreConfig.list_query`.
    """

    page: int = 1
    size: int = DEFAULT_PAGE_SIZE
    search: Mapping[str, Any] = field(default_factory=dict)
    order_by: Sequence[str] = ()
    max_size: int = field(default=MAX_PAGE_SIZE, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationError(f"page must be at least 1, got {self.page}")
        if self.size < 1:
            raise ValidationError(f"size must be positive, got {self.size}")
        if self.size > self.max_size:
            raise ValidationError(f"size must not exceed {self.max_size}, got {self.size}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size


T = TypeVar("T")


@dataclass(slots=True)
class ListResult(Generic[T]):
    """Items of the requested page and the independently counted total."""

    items: list[T]
    total: int
    page: int
    size: int


class EventType(str, Enum):
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"


@dataclass(frozen=True, slots=True)
class Event:
    source: str
    source_id: str
    event_type: EventType
