"""
Shared fixtures for poolboard integration tests.

Provides:
 - make_server: a DashboardServer on in-memory SQLite with the background
   loops disabled and every upstream API served by httpx.MockTransport
 - server / client: the default (fallback policy, upstream down) instance
"""

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from poolboard.config import Settings
from poolboard.fetcher import ExternalDataFetcher
from poolboard.server import DashboardServer
from poolboard.storage import StorageManager
from poolboard.storage.sqlite_backend import SQLiteDatabase

from helpers import RecordingNotifier, upstream_down


@pytest_asyncio.fixture
async def make_server():
    servers = []

    async def factory(handler=upstream_down, start=True, **overrides):
        overrides.setdefault("ENVIRONMENT", "test")
        settings = Settings(**overrides)
        fetcher = ExternalDataFetcher.from_settings(settings,
                                                    transport=httpx.MockTransport(handler))
        srv = DashboardServer(
            settings,
            storage=StorageManager(SQLiteDatabase(":memory:"), seed=settings.SEED_DATA),
            fetcher=fetcher,
            notifier=RecordingNotifier(),
            run_background=False,
        )
        if start:
            await srv.startup()
        servers.append(srv)
        return srv

    yield factory
    for srv in servers:
        if srv.ready:
            await srv.shutdown()
        else:
            await srv.fetcher.close()


@pytest_asyncio.fixture
async def server(make_server):
    return await make_server()


@pytest.fixture
def client(server):
    return TestClient(server.app)


@pytest.fixture
def storage(server):
    return server.storage
