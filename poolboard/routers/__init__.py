"""Router package - collects all API routers and registers them on the FastAPI app."""

from fastapi import FastAPI

from . import alerts, health, pools, stats, ws as ws_router


def register_all_routers(app: FastAPI):
    app.include_router(health.router)
    app.include_router(pools.router)
    app.include_router(stats.router)
    app.include_router(alerts.router)
    ws_router.register(app)
