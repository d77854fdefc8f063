"""
Accès aux données de la table users.

Chaque opération exécute une seule requête paramétrée via le pool et renvoie
un RepositoryResult; les exceptions asyncpg ne sortent jamais de ce module.
"""
import asyncpg
from loguru import logger

from models import User, RepositoryResult

# Limites d'un SERIAL (int4)
MIN_USER_ID = 1
MAX_USER_ID = 2**31 - 1

COLUMNS = "id, name, email, created_at"

SELECT_ALL_SQL = f"SELECT {COLUMNS} FROM users ORDER BY id DESC"
SELECT_BY_ID_SQL = f"SELECT {COLUMNS} FROM users WHERE id = $1"
INSERT_SQL = f"INSERT INTO users (name, email) VALUES ($1, $2) RETURNING {COLUMNS}"
UPDATE_SQL = f"UPDATE users SET name = $1, email = $2 WHERE id = $3 RETURNING {COLUMNS}"
DELETE_SQL = "DELETE FROM users WHERE id = $1 RETURNING id"

STORAGE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def _valid_id(user_id: int) -> bool:
    return MIN_USER_ID <= user_id <= MAX_USER_ID


class UserRepository:
    def __init__(self, pool):
        self.pool = pool

    async def list_users(self) -> RepositoryResult:
        try:
            rows = await self.pool.fetch(SELECT_ALL_SQL)
        except STORAGE_ERRORS:
            logger.exception("Error fetching users")
            return RepositoryResult.failure()
        return RepositoryResult.success(users=[User(**dict(row)) for row in rows])

    async def get_user(self, user_id: int) -> RepositoryResult:
        if not _valid_id(user_id):
            return RepositoryResult.not_found()
        try:
            row = await self.pool.fetchrow(SELECT_BY_ID_SQL, user_id)
        except STORAGE_ERRORS:
            logger.exception(f"Error fetching user {user_id}")
            return RepositoryResult.failure()
        return self._row_result(row)

    async def create_user(self, name: str, email: str) -> RepositoryResult:
        try:
            row = await self.pool.fetchrow(INSERT_SQL, name, email)
        except asyncpg.UniqueViolationError:
            logger.warning(f"Email {email} already exists")
            return RepositoryResult.conflict()
        except STORAGE_ERRORS:
            logger.exception("Error creating user")
            return RepositoryResult.failure()
        return self._row_result(row)

    async def update_user(self, user_id: int, name: str, email: str) -> RepositoryResult:
        if not _valid_id(user_id):
            return RepositoryResult.not_found()
        try:
            row = await self.pool.fetchrow(UPDATE_SQL, name, email, user_id)
        except asyncpg.UniqueViolationError:
            logger.warning(f"Email {email} already exists")
            return RepositoryResult.conflict()
        except STORAGE_ERRORS:
            logger.exception(f"Error updating user {user_id}")
            return RepositoryResult.failure()
        return self._row_result(row)

    async def delete_user(self, user_id: int) -> RepositoryResult:
        if not _valid_id(user_id):
            return RepositoryResult.not_found()
        try:
            row = await self.pool.fetchrow(DELETE_SQL, user_id)
        except STORAGE_ERRORS:
            logger.exception(f"Error deleting user {user_id}")
            return RepositoryResult.failure()
        if row is None:
            return RepositoryResult.not_found()
        return RepositoryResult.success()

    @staticmethod
    def _row_result(row) -> RepositoryResult:
        if row is None:
            return RepositoryResult.not_found()
        return RepositoryResult.success(user=User(**dict(row)))
