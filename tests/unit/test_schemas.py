from __future__ import annotations

import pytest

from trex_core.exceptions import ValidationError
from trex_core.schemas import MAX_PAGE_SIZE, EventType, ListQuery, new_id

from tests.mocks.store import User

pytestmark = pytest.mark.unit


def test_list_query_offset() -> None:
    assert ListQuery(page=1, size=10).offset == 0
    assert ListQuery(page=3, size=25).offset == 50


@pytest.mark.parametrize(
    ("page", "size"),
    [(0, 10), (-1, 10), (1, 0), (1, MAX_PAGE_SIZE + 1)],
)
def test_list_query_rejects_bad_pagination(page: int, size: int) -> None:
    with pytest.raises(ValidationError):
        ListQuery(page=page, size=size)


def test_meta_defaults_for_new_resources() -> None:
    user = User(name="John Doe", email="john@example.com")

    assert user.id == ""
    assert user.created_at is None


def test_new_id_is_unique() -> None:
    assert new_id() != new_id()


def test_event_type_values() -> None:
    assert [kind.value for kind in EventType] == ["Create", "Update", "Delete"]


def test_list_query_respects_custom_maximum() -> None:
    assert ListQuery(size=10, max_size=10).size == 10
    with pytest.raises(ValidationError):
        ListQuery(size=11, max_size=10)
