"""Dependency helpers and response envelopes for router modules."""

import math
from typing import Any, Optional

from starlette.requests import HTTPConnection

from .errors import ServiceNotInitializedError, utc_now_iso
from .models import dump


def get_server(request: HTTPConnection):
    srv = getattr(request.app.state, "server", None)
    if srv is None or not srv.ready:
        raise ServiceNotInitializedError()
    return srv


def envelope(data: Any = None, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": dump(data)}
    if message:
        body["message"] = message
    body["timestamp"] = utc_now_iso()
    return body


def paginated(data: Any, total: int, limit: int, offset: int,
              message: Optional[str] = None) -> dict:
    body = envelope(data, message)
    body["pagination"] = {
        "page": offset // limit + 1,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit),
    }
    return body
