"""
Test de connexion PostgreSQL.

Usage: python check_db.py
"""
import asyncio
import sys
from urllib.parse import urlsplit, urlunsplit

import asyncpg
from loguru import logger

from config import DATABASE_URL

HINTS = {
    "28P01": "The password is incorrect, check DB_PASSWORD or DATABASE_URL",
    "3D000": "The database does not exist, create it first",
    "ECONNREFUSED": "PostgreSQL is not running or the host/port is incorrect",
}


def error_code(exc: BaseException) -> str:
    if isinstance(exc, asyncpg.PostgresError):
        return exc.sqlstate or ""
    if isinstance(exc, ConnectionRefusedError):
        return "ECONNREFUSED"
    return type(exc).__name__


def mask_dsn(dsn: str) -> str:
    """Remplace le mot de passe du DSN par ***"""
    parts = urlsplit(dsn)
    if parts.password is None:
        return dsn
    netloc = f"{parts.username or ''}:***@{parts.hostname or ''}"
    if parts.port:
        netloc += f":{parts.port}"
    return urlunsplit(parts._replace(netloc=netloc))


async def check_connection(dsn: str = DATABASE_URL) -> int:
    parts = urlsplit(dsn)
    logger.info(f"Connecting to {mask_dsn(dsn)}")
    logger.info(f"- User: {parts.username}")
    logger.info(f"- Host: {parts.hostname}")
    logger.info(f"- Database: {parts.path.lstrip('/')}")
    logger.info(f"- Port: {parts.port or 5432}")
    logger.info("- Password: " + ("[SET]" if parts.password else "[NOT SET]"))

    conn = None
    try:
        conn = await asyncpg.connect(dsn)
        logger.info("Connected to the database")
        row = await conn.fetchrow("SELECT NOW() AS now, version() AS version")
        logger.info(f"- Server time: {row['now']}")
        logger.info(f"- PostgreSQL version: {row['version']}")
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
        code = error_code(e)
        logger.error(f"Connection error: {e}")
        logger.error(f"Error code: {code}")
        if code in HINTS:
            logger.warning(HINTS[code])
        return 1
    finally:
        if conn is not None:
            await conn.close()
    logger.info("Connection closed")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(check_connection()))
