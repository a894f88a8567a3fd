"""
Shared fixtures for poolboard tests.

Provides an in-memory SQLite StorageManager with the real schema applied.
Row factories and fakes live in helpers.py.
"""

import pytest_asyncio

from poolboard.storage import StorageManager
from poolboard.storage.sqlite_backend import SQLiteDatabase


@pytest_asyncio.fixture
async def storage():
    sm = StorageManager(SQLiteDatabase(":memory:"))
    await sm.initialize()
    yield sm
    await sm.close()
