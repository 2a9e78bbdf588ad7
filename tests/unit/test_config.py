from __future__ import annotations

import pydantic
import pytest
import sqlalchemy as sa
from sqlalchemy.pool import StaticPool

from trex_core.config import CoreConfig, build_engine
from trex_core.context import RequestContext
from trex_core.db.transactions import TXID_CURRENT_QUERY
from trex_core.exceptions import CancellationError, ValidationError
from trex_core.schemas import DEFAULT_PAGE_SIZE

pytestmark = pytest.mark.unit


def test_defaults_target_postgres() -> None:
    config = CoreConfig.build_default()

    assert config.database_url.startswith("postgresql")
    assert config.txid_query == TXID_CURRENT_QUERY
    assert config.request_timeout_seconds is None


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TREX_DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("TREX_REQUEST_TIMEOUT_SECONDS", "2.5")

    config = CoreConfig()

    assert config.database_url == "sqlite:///:memory:"
    ctx = config.new_request_context(request_id="req-9")
    assert ctx.request_id == "req-9"
    assert ctx.remaining() is not None
    assert ctx.remaining() <= 2.5


def test_engine_checks_request_context(config: CoreConfig) -> None:
    engine = build_engine(config)
    ctx = RequestContext.background()
    ctx.cancel()

    with engine.connect() as connection:
        connection.execution_options(request_context=ctx)
        with pytest.raises(CancellationError):
            connection.execute(sa.text("select 1"))
    engine.dispose()


def test_list_queries_follow_configured_page_sizes(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TREX_DEFAULT_PAGE_SIZE", "20")
    monkeypatch.setenv("TREX_MAX_PAGE_SIZE", "50")
    config = CoreConfig()

    query = config.list_query(page=2, search={"email": "ann@example.com"}, order_by=["-name"])

    assert (query.page, query.size, query.offset) == (2, 20, 20)
    assert query.order_by == ("-name",)
    assert config.list_query(size=50).size == 50
    with pytest.raises(ValidationError):
        config.list_query(size=51)


def test_default_page_size_defaults() -> None:
    assert CoreConfig.build_default().list_query().size == DEFAULT_PAGE_SIZE


def test_default_page_size_cannot_exceed_maximum() -> None:
    with pytest.raises(pydantic.ValidationError):
        CoreConfig(default_page_size=200, max_page_size=100)


def test_in_memory_sqlite_engine_shares_one_connection(config: CoreConfig) -> None:
    engine = build_engine(config)

    assert isinstance(engine.pool, StaticPool)
    with engine.connect() as first, engine.connect() as second:
        assert first.connection.dbapi_connection is second.connection.dbapi_connection
    engine.dispose()
