from __future__ import annotations

import pytest
import sqlalchemy as sa
from sqlalchemy.orm import sessionmaker

from trex_core.config import CoreConfig, build_engine, build_session_factory
from trex_core.db.db_init import init_db

# Registers the users table on the shared metadata before init_db runs.
from tests.mocks import models  # noqa: F401


@pytest.fixture
def config() -> CoreConfig:
    return CoreConfig(database_url="sqlite:///:memory:", txid_query="select 7")


@pytest.fixture
def engine(config: CoreConfig) -> sa.Engine:
    engine = build_engine(config)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: sa.Engine) -> sessionmaker:
    return build_session_factory(engine)
