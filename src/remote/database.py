# manages connection to the storefront db, provides helper methods internal to remote package
import asyncio
import os
import sqlite3
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite

from remote.errors import ServiceUnavailableError
from utils.logger import get_logger

_logger = get_logger(__name__)

_HERE = os.path.dirname(os.path.abspath(__file__))

DB_PATH = os.getenv("STOREFRONT_DB", "data/storefront.sqlite")
DB_INIT_SCRIPTS = [
    os.path.join(_HERE, "schema.sql"),
    os.path.join(_HERE, "seed-data.sql"),
]

_initialized = False
_init_lock = asyncio.Lock()


async def _init_db(conn: aiosqlite.Connection) -> None:
    for script in DB_INIT_SCRIPTS:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Running init script {os.path.basename(script)}...")
        with open(script, "r") as f:
            await conn.executescript(f.read())
    await conn.commit()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


async def _open() -> aiosqlite.Connection:
    global _initialized
    folder = os.path.dirname(DB_PATH)
    if folder:
        os.makedirs(folder, exist_ok=True)
    conn = await aiosqlite.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    await conn.execute("PRAGMA foreign_keys = ON;")

    if not _initialized:
        async with _init_lock:
            if not _initialized:
                if not await _table_exists(conn, "users"):
                    _logger.info(f"Initializing database at {DB_PATH}...")
                    await _init_db(conn)
                _initialized = True
    return conn


@asynccontextmanager
async def connect() -> AsyncIterator[aiosqlite.Connection]:
    """Async context manager yielding an aiosqlite connection with FK enabled.

    Ensures the database is initialized (tables and seed data) on first use.
    Storage failures surface as ServiceUnavailableError so callers only ever
    deal with RemoteError; uncommitted work is rolled back on close.
    """
    try:
        conn = await _open()
    except sqlite3.Error as e:
        _logger.error(f"Cannot open database {DB_PATH}: {e}")
        raise ServiceUnavailableError(str(e)) from e
    try:
        yield conn
    except sqlite3.Error as e:
        _logger.error(f"Database error: {e}")
        raise ServiceUnavailableError(str(e)) from e
    finally:
        await conn.close()
