"""
Gestion du pool de connexions PostgreSQL (asyncpg).
"""
import asyncpg
from loguru import logger

from config import DATABASE_URL, DB_POOL_MIN_SIZE, DB_POOL_MAX_SIZE

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id          SERIAL PRIMARY KEY,
    name        TEXT NOT NULL,
    email       TEXT NOT NULL UNIQUE,
    created_at  TIMESTAMP DEFAULT NOW()
);
"""

# Pool global, créé au démarrage de l'application
db_pool = None


async def init_database(init_schema: bool = True):
    """Crée le pool et, si demandé, la table users."""
    global db_pool
    db_pool = await asyncpg.create_pool(
        DATABASE_URL,
        min_size=DB_POOL_MIN_SIZE,
        max_size=DB_POOL_MAX_SIZE,
    )

    async with db_pool.acquire() as conn:
        await conn.fetchval("SELECT 1")
        if init_schema:
            await conn.execute(SCHEMA_SQL)

    logger.info("Connected to PostgreSQL database")
    return db_pool


async def close_database():
    global db_pool
    if db_pool is not None:
        await db_pool.close()
        db_pool = None
    logger.info("Database connections closed")


def get_db_pool():
    if db_pool is None:
        raise RuntimeError("Database pool not initialized")
    return db_pool
