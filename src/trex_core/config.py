"""Configuration for trex-core.

Values come from environment variables prefixed with ``TREX_``. The engine
built from :class:`CoreConfig` carries the cancellation hook, so every
statement issued through it observes the caller's
:class:`~trex_core.context.RequestContext`.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .context import RequestContext
from .db.session import install_cancellation_hook
from .db.transactions import TXID_CURRENT_QUERY
from .logging import configure_logging
from .schemas import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, ListQuery


class CoreConfig(BaseSettings):
    """Pydantic settings container for the transactional core."""

    model_config = SettingsConfigDict(env_prefix="TREX_")

    database_url: str = Field(
        default="postgresql+psycopg://localhost:5432/trex",
        description="SQLAlchemy URL of the primary relational store.",
    )
    txid_query: str = Field(
        default=TXID_CURRENT_QUERY,
        min_length=1,
        description="Query issued right after BEGIN to read the store transaction id.",
    )
    default_page_size: int = Field(
        default=DEFAULT_PAGE_SIZE,
        ge=1,
        description="Page size used by list requests that do not ask for one.",
    )
    max_page_size: int = Field(
        default=MAX_PAGE_SIZE,
        ge=1,
        le=MAX_PAGE_SIZE,
        description="Largest page size a list request may ask for.",
    )
    request_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Default deadline applied to request contexts, if any.",
    )
    echo_sql: bool = Field(default=False, description="Log every SQL statement.")
    log_level: str = Field(default="INFO", description="Root log level.")
    log_json: bool = Field(default=True, description="Render logs as JSON lines.")

    @model_validator(mode="after")
    def check_page_sizes(self) -> "CoreConfig":
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must not exceed max_page_size")
        return self

    @classmethod
    def build_default(cls) -> "CoreConfig":
        return cls()

    def new_request_context(self, *, request_id: str | None = None) -> RequestContext:
        """Return a context carrying the configured default deadline."""

        if self.request_timeout_seconds is None:
            return RequestContext.background(request_id=request_id)
        return RequestContext.with_timeout(self.request_timeout_seconds, request_id=request_id)

    def list_query(
        self,
        *,
        page: int = 1,
        size: int | None = None,
        search: Mapping[str, Any] | None = None,
        order_by: Iterable[str] = (),
    ) -> ListQuery:
        """Build a :class:`ListQuery` bounded by the configured page sizes."""

        return ListQuery(
            page=page,
            size=self.default_page_size if size is None else size,
            search=dict(search or {}),
            order_by=tuple(order_by),
            max_size=self.max_page_size,
        )

    def apply_logging(self) -> None:
        configure_logging(self.log_level, json=self.log_json)


def _is_sqlite_memory(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") == "sqlite:")


def build_engine(config: CoreConfig) -> Engine:
    """Create the SQLAlchemy engine with the cancellation hook installed.

    In-memory SQLite URLs get a single shared connection (``StaticPool``) so
    every session sees the same database. Such engines are for tests only:
    concurrent transactions on them are not isolated from each other.
    """

    kwargs: dict[str, Any] = {"future": True, "echo": config.echo_sql}
    if _is_sqlite_memory(config.database_url):
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    engine = create_engine(config.database_url, **kwargs)
    install_cancellation_hook(engine)
    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


__all__ = ["CoreConfig", "build_engine", "build_session_factory"]
