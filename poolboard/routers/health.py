"""Health router - /health."""

import time

from fastapi import APIRouter
from starlette.requests import Request

from ..errors import utc_now_iso

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    srv = getattr(request.app.state, "server", None)
    body = {
        "status": "healthy",
        "timestamp": utc_now_iso(),
        "uptime": 0.0,
        "environment": None,
    }
    if srv is None:
        body["status"] = "starting"
        return body

    body["uptime"] = round(time.time() - srv.started_at, 3)
    body["environment"] = srv.settings.ENVIRONMENT
    if not srv.ready:
        body["status"] = "starting"
        return body

    body["database"] = await srv.storage.health_check()
    body["collector"] = await srv.collector.status()
    body["alerts"] = await srv.alert_engine.status()
    body["websocket"] = srv.broadcaster.health_check()
    if body["database"]["status"] != "healthy":
        body["status"] = "degraded"
    return body
