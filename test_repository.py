"""
Unit tests for the users data access layer.
The asyncpg pool is mocked: statements and bound parameters are asserted directly.
"""
import asyncio
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
import sys
import os

import asyncpg

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from models import Outcome
from repository import (
    UserRepository, SELECT_ALL_SQL, SELECT_BY_ID_SQL, INSERT_SQL, UPDATE_SQL, DELETE_SQL,
    MAX_USER_ID,
)

CREATED_AT = datetime(2024, 1, 1, 12, 0, 0)


def row(user_id, name="Ann", email="ann@x.com"):
    return {"id": user_id, "name": name, "email": email, "created_at": CREATED_AT}


@pytest.fixture
def pool():
    mock = MagicMock()
    mock.fetch = AsyncMock(return_value=[])
    mock.fetchrow = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def repo(pool):
    return UserRepository(pool)


def run(coro):
    return asyncio.run(coro)


class TestListUsers:

    def test_returns_rows_in_statement_order(self, repo, pool):
        pool.fetch.return_value = [row(2, email="b@x.com"), row(1)]
        result = run(repo.list_users())
        assert result.outcome is Outcome.SUCCESS
        assert [u.id for u in result.users] == [2, 1]
        pool.fetch.assert_awaited_once_with(SELECT_ALL_SQL)
        assert "ORDER BY id DESC" in SELECT_ALL_SQL

    def test_storage_error_is_failure(self, repo, pool):
        pool.fetch.side_effect = ConnectionRefusedError()
        assert run(repo.list_users()).outcome is Outcome.FAILURE


class TestGetUser:

    def test_found(self, repo, pool):
        pool.fetchrow.return_value = row(7)
        result = run(repo.get_user(7))
        assert result.ok
        assert result.user.id == 7
        assert result.user.created_at == CREATED_AT
        pool.fetchrow.assert_awaited_once_with(SELECT_BY_ID_SQL, 7)

    def test_missing_row_is_not_found(self, repo):
        assert run(repo.get_user(42)).outcome is Outcome.NOT_FOUND

    @pytest.mark.parametrize("user_id", [0, -1, MAX_USER_ID + 1])
    def test_out_of_range_id_skips_storage(self, repo, pool, user_id):
        assert run(repo.get_user(user_id)).outcome is Outcome.NOT_FOUND
        pool.fetchrow.assert_not_awaited()


class TestCreateUser:

    def test_parameters_are_bound(self, repo, pool):
        pool.fetchrow.return_value = row(1, name="Robert'); DROP TABLE users;--")
        result = run(repo.create_user("Robert'); DROP TABLE users;--", "ann@x.com"))
        assert result.ok
        pool.fetchrow.assert_awaited_once_with(
            INSERT_SQL, "Robert'); DROP TABLE users;--", "ann@x.com"
        )
        assert "Robert" not in INSERT_SQL

    def test_unique_violation_is_conflict(self, repo, pool):
        pool.fetchrow.side_effect = asyncpg.UniqueViolationError("duplicate key value")
        assert run(repo.create_user("Ann", "ann@x.com")).outcome is Outcome.CONFLICT

    def test_other_postgres_error_is_failure(self, repo, pool):
        pool.fetchrow.side_effect = asyncpg.PostgresError("boom")
        assert run(repo.create_user("Ann", "ann@x.com")).outcome is Outcome.FAILURE

    def test_interface_error_is_failure(self, repo, pool):
        pool.fetchrow.side_effect = asyncpg.InterfaceError("pool is closing")
        assert run(repo.create_user("Ann", "ann@x.com")).outcome is Outcome.FAILURE


class TestUpdateUser:

    def test_updated_row_returned(self, repo, pool):
        pool.fetchrow.return_value = row(3, name="Anna")
        result = run(repo.update_user(3, "Anna", "ann@x.com"))
        assert result.ok
        assert result.user.name == "Anna"
        pool.fetchrow.assert_awaited_once_with(UPDATE_SQL, "Anna", "ann@x.com", 3)

    def test_no_row_is_not_found(self, repo):
        assert run(repo.update_user(3, "Anna", "ann@x.com")).outcome is Outcome.NOT_FOUND

    def test_unique_violation_is_conflict(self, repo, pool):
        pool.fetchrow.side_effect = asyncpg.UniqueViolationError("duplicate key value")
        assert run(repo.update_user(3, "Anna", "bob@x.com")).outcome is Outcome.CONFLICT


class TestDeleteUser:

    def test_deleted(self, repo, pool):
        pool.fetchrow.return_value = {"id": 5}
        result = run(repo.delete_user(5))
        assert result.ok
        assert result.user is None
        pool.fetchrow.assert_awaited_once_with(DELETE_SQL, 5)

    def test_no_row_is_not_found(self, repo):
        assert run(repo.delete_user(5)).outcome is Outcome.NOT_FOUND

    def test_storage_error_is_failure(self, repo, pool):
        pool.fetchrow.side_effect = OSError("connection reset")
        assert run(repo.delete_user(5)).outcome is Outcome.FAILURE
