"""Event emitter writing lifecycle events to the ``events`` table."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from ...context import RequestContext
from ...db.db_models import EventModel
from ...db.session import SessionFactory
from ...exceptions import handle_sqlalchemy_errors
from ...schemas import EventType, new_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DatabaseEventEmitter:
    """Persist one :class:`EventModel` row per emitted event."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def emit_event(
        self, ctx: RequestContext, source: str, source_id: str, event_type: EventType
    ) -> None:
        with self._session_factory.new(ctx) as session, handle_sqlalchemy_errors(
            entity="Event", ctx=ctx
        ):
            session.add(
                EventModel(
                    id=new_id(),
                    source=source,
                    source_id=source_id,
                    event_type=EventType(event_type).value,
                    created_at=self._clock(),
                )
            )
            session.commit()
