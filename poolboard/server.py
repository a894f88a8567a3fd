"""
server.py - Mining pool dashboard server entry point.

Single-process server combining:
 - SQLite or PostgreSQL storage via StorageManager
 - Upstream data fetcher (CoinGecko, Etherscan, pool APIs) with TTL cache
 - Periodic pool collector and alert engine
 - REST API and WebSocket push channel (FastAPI on uvicorn, port 3000)

Usage:
    python -m poolboard.server [--host 0.0.0.0] [--port 3000] [--database-type sqlite]
                               [--database-url sqlite:./dev.db] [--seed] [--no-background]
"""

import argparse
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

try:
    from fastapi import FastAPI
    from fastapi.middleware.cors import CORSMiddleware
    from starlette.requests import Request
    import uvicorn
except ImportError:
    raise ImportError(
        "FastAPI and uvicorn are required. Install with: pip install fastapi uvicorn pydantic"
    )

from .alerts import AlertEngine, SubscriptionService
from .collector import PoolCollector
from .config import Settings
from .errors import install_error_handlers
from .fetcher import ExternalDataFetcher
from .notify import Notifier, build_notifier
from .routers import register_all_routers
from .sources import build_source
from .storage import StorageManager
from .ws import BroadcastManager

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)-10s] %(levelname)-5s %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("server")
http_logger = logging.getLogger("http")


class DashboardServer:
    """Owns every service instance; the FastAPI app reaches it through app.state.server."""

    def __init__(self, settings: Optional[Settings] = None,
                 storage: Optional[StorageManager] = None,
                 fetcher: Optional[ExternalDataFetcher] = None,
                 notifier: Optional[Notifier] = None,
                 run_background: bool = True):
        self.settings = settings or Settings()
        self.run_background = run_background
        self.started_at = time.time()
        self.ready = False

        self.storage = storage or StorageManager.from_settings(self.settings)
        self.fetcher = fetcher or ExternalDataFetcher.from_settings(self.settings)
        self.notifier = notifier or build_notifier(self.settings)
        self.broadcaster = BroadcastManager()

        self.collector = PoolCollector(
            self.storage,
            build_source(self.settings.COLLECTOR_SOURCE, self.fetcher),
            broadcaster=self.broadcaster,
            interval=self.settings.UPDATE_INTERVAL,
        )
        self.alert_engine = AlertEngine(
            self.storage, self.notifier,
            broadcaster=self.broadcaster,
            interval=self.settings.ALERT_INTERVAL,
        )
        self.subscriptions = SubscriptionService(self.storage, self.notifier)

        self.app = self._build_app()

    def _build_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            await self.startup()
            try:
                yield
            finally:
                await self.shutdown()

        app = FastAPI(title="Mining Pool Dashboard API", version="1.0.0", lifespan=lifespan)
        app.state.server = self
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            started = time.monotonic()
            response = await call_next(request)
            duration_ms = (time.monotonic() - started) * 1000
            level = logging.WARNING if response.status_code >= 400 else logging.INFO
            http_logger.log(level, "%s %s - %d - %.0fms", request.method, request.url.path,
                            response.status_code, duration_ms)
            return response

        install_error_handlers(app, production=self.settings.is_production)
        register_all_routers(app)
        return app

    async def startup(self):
        """Initialize storage, then start the background loops."""
        await self.storage.initialize()
        self.ready = True
        if self.run_background:
            self.collector.start()
            self.alert_engine.start()
        logger.info("Services initialized (env=%s, db=%s)",
                    self.settings.ENVIRONMENT, self.settings.DATABASE_TYPE)

    async def shutdown(self):
        self.collector.stop()
        self.alert_engine.stop()
        await self.collector.wait_idle()
        await self.alert_engine.wait_idle()
        self.ready = False
        await self.fetcher.close()
        await self.notifier.close()
        await self.storage.close()
        logger.info("Server stopped")

    async def serve(self):
        config = uvicorn.Config(
            self.app,
            host=self.settings.HOST,
            port=self.settings.PORT,
            log_level=self.settings.LOG_LEVEL.lower(),
        )
        server = uvicorn.Server(config)
        logger.info("REST API starting on %s:%d", self.settings.HOST, self.settings.PORT)
        await server.serve()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """App factory for `uvicorn poolboard.server:create_app --factory`."""
    settings = settings or Settings()
    logging.getLogger().setLevel(settings.LOG_LEVEL.upper())
    return DashboardServer(settings).app


def main():
    """CLI entry point for the dashboard server."""
    parser = argparse.ArgumentParser(description="Mining Pool Dashboard Server")
    parser.add_argument("--host", default=None, help="Bind address (default: HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="HTTP port (default: PORT or 3000)")
    parser.add_argument("--database-type", choices=["sqlite", "postgresql"], default=None,
                        help="Storage backend (default: DATABASE_TYPE or sqlite)")
    parser.add_argument("--database-url", default=None,
                        help="SQLite path or PostgreSQL DSN (default: DATABASE_URL)")
    parser.add_argument("--seed", action="store_true", help="Seed sample data into an empty database")
    parser.add_argument("--no-background", action="store_true",
                        help="Disable the collector and alert loops")
    args = parser.parse_args()

    overrides = {}
    if args.host is not None:
        overrides["HOST"] = args.host
    if args.port is not None:
        overrides["PORT"] = args.port
    if args.database_type is not None:
        overrides["DATABASE_TYPE"] = args.database_type
    if args.database_url is not None:
        overrides["DATABASE_URL"] = args.database_url
    if args.seed:
        overrides["SEED_DATA"] = True
    settings = Settings(**overrides)
    logging.getLogger().setLevel(settings.LOG_LEVEL.upper())

    server = DashboardServer(settings, run_background=not args.no_background)

    logger.info("=" * 60)
    logger.info("  Mining Pool Dashboard Server")
    logger.info("  REST API:    http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  WebSocket:   ws://%s:%d/ws", settings.HOST, settings.PORT)
    logger.info("  Environment: %s", settings.ENVIRONMENT)
    logger.info("  Database:    %s (%s)", settings.DATABASE_TYPE, settings.DATABASE_URL)
    logger.info("  Collector:   %s every %.0fs", settings.COLLECTOR_SOURCE, settings.UPDATE_INTERVAL)
    logger.info("=" * 60)

    try:
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
