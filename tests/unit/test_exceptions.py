from __future__ import annotations

import pytest
from sqlalchemy import exc as sa_exc

from trex_core.context import RequestContext
from trex_core.exceptions import (
    CancellationError,
    DatabaseOperationError,
    IntegrityConstraintViolation,
    NotFoundError,
    ensure_found,
    handle_sqlalchemy_errors,
)

pytestmark = pytest.mark.unit


class QueryCanceled(Exception):
    sqlstate = "57014"


def _operational(orig: Exception) -> sa_exc.OperationalError:
    return sa_exc.OperationalError("select pg_sleep(10)", {}, orig)


def test_driver_error_after_cancel_is_cancellation() -> None:
    ctx = RequestContext.background(request_id="req-1")
    ctx.cancel()

    with pytest.raises(CancellationError, match="req-1 cancelled"):
        with handle_sqlalchemy_errors(entity="User", ctx=ctx):
            raise _operational(Exception("canceling statement due to user request"))


def test_driver_error_after_deadline_is_cancellation() -> None:
    now = [0.0]
    ctx = RequestContext.with_timeout(1, clock=lambda: now[0])
    now[0] = 5.0

    with pytest.raises(CancellationError, match="deadline exceeded"):
        with handle_sqlalchemy_errors(entity="User", ctx=ctx):
            raise _operational(Exception("server closed the connection"))


def test_statement_cancelled_by_store_is_cancellation() -> None:
    with pytest.raises(CancellationError, match="User"):
        with handle_sqlalchemy_errors(entity="User"):
            raise _operational(QueryCanceled("canceling statement due to statement timeout"))


def test_driver_error_on_live_context_is_operation_error() -> None:
    with pytest.raises(DatabaseOperationError):
        with handle_sqlalchemy_errors(entity="User", ctx=RequestContext.background()):
            raise _operational(Exception("connection reset"))


def test_integrity_error_stays_integrity_violation_after_cancel() -> None:
    ctx = RequestContext.background()
    ctx.cancel()

    with pytest.raises(IntegrityConstraintViolation):
        with handle_sqlalchemy_errors(entity="User", ctx=ctx):
            raise sa_exc.IntegrityError("insert", {}, Exception("duplicate key"))


def test_ensure_found_raises_for_missing_record() -> None:
    with pytest.raises(NotFoundError, match="User 'u-1' not found"):
        ensure_found(None, entity="User", identifier="u-1")
