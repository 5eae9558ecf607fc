"""Tests for the typed query commands."""

from __future__ import annotations

import pytest

from services.commands import Pagination, UserQuery
from utils.errors import ValidationFailed


def test_user_query_reads_filters():
    query = UserQuery.from_args(
        {"role": "admin", "isActive": "false", "search": "  Ann ", "page": "2", "limit": "5"}
    )

    assert query.role == "admin"
    assert query.is_active is False
    assert query.search == "ann"
    assert query.pagination == Pagination(page=2, limit=5)


def test_user_query_defaults():
    query = UserQuery.from_args({})

    assert query == UserQuery()
    assert query.pagination.offset == 0


def test_user_query_collects_every_error():
    with pytest.raises(ValidationFailed) as excinfo:
        UserQuery.from_args({"role": "root", "isActive": "maybe", "page": "0"})

    assert {error["field"] for error in excinfo.value.errors} == {"role", "isActive", "page"}
