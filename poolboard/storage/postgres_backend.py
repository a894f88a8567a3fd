import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, List, Optional, Sequence

import asyncpg

from ._database import Database, ExecuteResult, IntegrityError

logger = logging.getLogger("storage")


def to_numbered_params(sql: str) -> str:
    """Rewrite `?` placeholders as `$1, $2, ...`, leaving quoted literals alone."""
    out = []
    n = 0
    in_quote = False
    for ch in sql:
        if ch == "'":
            in_quote = not in_quote
            out.append(ch)
        elif ch == "?" and not in_quote:
            n += 1
            out.append(f"${n}")
        else:
            out.append(ch)
    return "".join(out)


def _rows_from_status(status: str) -> int:
    # asyncpg returns command tags such as "INSERT 0 1" or "UPDATE 3"
    last = status.rsplit(" ", 1)[-1] if status else ""
    return int(last) if last.isdigit() else 0


class PostgresDatabase(Database):
    """Client-server backend on an asyncpg connection pool.

    While a transaction is open every call is routed to the connection that
    holds it; transactions are only opened from single-task code paths
    (schema seeding).
    """

    dialect = "postgresql"

    def __init__(self, dsn: str, min_size: int = 1, max_size: int = 10,
                 command_timeout: float = 60.0):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None
        self._tx_conn: Optional[asyncpg.Connection] = None
        self._tx = None

    async def connect(self):
        self._pool = await asyncpg.create_pool(
            dsn=self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
            setup=self._setup_connection,
        )
        logger.info("PostgreSQL pool created (min=%d max=%d)", self.min_size, self.max_size)

    @staticmethod
    async def _setup_connection(conn: asyncpg.Connection):
        await conn.execute("SET application_name TO 'poolboard'")

    async def close(self):
        if self._tx_conn is not None:
            await self.rollback()
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("PostgreSQL pool closed")

    @asynccontextmanager
    async def _acquire(self):
        if self._pool is None:
            raise RuntimeError("Database not initialized")
        if self._tx_conn is not None:
            yield self._tx_conn
            return
        async with self._pool.acquire() as conn:
            yield conn

    async def query(self, sql: str, params: Sequence[Any] = ()) -> List[dict]:
        async with self._acquire() as conn:
            records = await conn.fetch(to_numbered_params(sql), *params)
        return [dict(r) for r in records]

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        async with self._acquire() as conn:
            try:
                status = await conn.execute(to_numbered_params(sql), *params)
            except asyncpg.IntegrityConstraintViolationError as e:
                raise IntegrityError(str(e)) from e
        return ExecuteResult(rows_affected=_rows_from_status(status))

    async def begin_transaction(self):
        if self._pool is None:
            raise RuntimeError("Database not initialized")
        if self._tx_conn is not None:
            raise RuntimeError("Transaction already in progress")
        conn = await self._pool.acquire()
        tx = conn.transaction()
        try:
            await tx.start()
        except Exception:
            await self._pool.release(conn)
            raise
        self._tx_conn, self._tx = conn, tx

    async def _finish(self, commit: bool):
        conn, tx = self._tx_conn, self._tx
        if conn is None:
            raise RuntimeError("No transaction in progress")
        self._tx_conn, self._tx = None, None
        try:
            if commit:
                await tx.commit()
            else:
                await tx.rollback()
        finally:
            await self._pool.release(conn)

    async def commit(self):
        await self._finish(commit=True)

    async def rollback(self):
        await self._finish(commit=False)

    def new_id(self) -> str:
        return str(uuid.uuid4())
