import logging
import secrets
import sqlite3
from typing import Any, List, Optional, Sequence

try:
    import aiosqlite
except ImportError:
    raise ImportError(
        "aiosqlite is required for the SQLite backend. "
        "Install with: pip install aiosqlite"
    )

from ._database import Database, ExecuteResult, IntegrityError

logger = logging.getLogger("storage")


class SQLiteDatabase(Database):
    """Embedded file-based backend.

    The connection runs in autocommit mode; multi-statement units of work
    are bracketed with explicit BEGIN/COMMIT.
    """

    dialect = "sqlite"

    def __init__(self, path: str = "dev.db"):
        self.path = path
        self._db: Optional[aiosqlite.Connection] = None

    async def connect(self):
        self._db = await aiosqlite.connect(self.path, isolation_level=None)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys=ON")
        if self.path != ":memory:":
            await self._db.execute("PRAGMA journal_mode=WAL")
        logger.info("SQLite connected: %s", self.path)

    async def close(self):
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("SQLite closed")

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Database not initialized")
        return self._db

    async def query(self, sql: str, params: Sequence[Any] = ()) -> List[dict]:
        async with self._conn().execute(sql, tuple(params)) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        try:
            cursor = await self._conn().execute(sql, tuple(params))
        except sqlite3.IntegrityError as e:
            raise IntegrityError(str(e)) from e
        try:
            return ExecuteResult(rows_affected=cursor.rowcount, last_insert_id=cursor.lastrowid)
        finally:
            await cursor.close()

    async def begin_transaction(self):
        await self.execute("BEGIN TRANSACTION")

    async def commit(self):
        await self.execute("COMMIT")

    async def rollback(self):
        await self.execute("ROLLBACK")

    def new_id(self) -> str:
        return secrets.token_hex(16)
