"""
Backend-neutral database interface.

Callers write SQL with `?` placeholders and epoch-second timestamps; each
backend owns whatever translation its driver needs.
"""

import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence


class IntegrityError(Exception):
    """A unique / foreign-key / check constraint was violated."""


@dataclass
class ExecuteResult:
    rows_affected: int
    last_insert_id: Optional[Any] = None


class Database(ABC):
    dialect: str = ""

    @abstractmethod
    async def connect(self):
        ...

    @abstractmethod
    async def close(self):
        ...

    @abstractmethod
    async def query(self, sql: str, params: Sequence[Any] = ()) -> List[dict]:
        ...

    @abstractmethod
    async def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        ...

    @abstractmethod
    async def begin_transaction(self):
        ...

    @abstractmethod
    async def commit(self):
        ...

    @abstractmethod
    async def rollback(self):
        ...

    @abstractmethod
    def new_id(self) -> str:
        ...

    async def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[dict]:
        rows = await self.query(sql, params)
        return rows[0] if rows else None

    async def scalar(self, sql: str, params: Sequence[Any] = (), default: Any = 0) -> Any:
        row = await self.query_one(sql, params)
        if not row:
            return default
        value = next(iter(row.values()))
        return default if value is None else value

    @asynccontextmanager
    async def transaction(self):
        await self.begin_transaction()
        try:
            yield self
        except BaseException:
            await self.rollback()
            raise
        else:
            await self.commit()

    async def health_check(self) -> dict:
        try:
            started = time.monotonic()
            await self.query("SELECT 1 AS ok")
            return {
                "status": "healthy",
                "type": self.dialect,
                "response_ms": round((time.monotonic() - started) * 1000, 2),
            }
        except Exception as e:
            return {"status": "unhealthy", "type": self.dialect, "error": str(e)}

    @staticmethod
    def is_already_exists_error(exc: Exception) -> bool:
        return "already exists" in str(exc).lower()
