"""
errors.py - Domain exceptions and the central JSON error formatter.

Services raise ApiError subclasses; every handler registered here renders
the standard envelope: {"success": false, "error": ..., "timestamp": ...}.
"""

import logging
import traceback
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("http")


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(ApiError):
    status_code = 400


class ForbiddenError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 409


class UpstreamUnavailableError(ApiError):
    """No upstream answered and no cached value exists (strict fetch policy)."""

    status_code = 503


class ServiceNotInitializedError(ApiError):
    status_code = 500

    def __init__(self, message: str = "Service not initialized"):
        super().__init__(message)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def error_envelope(message: str) -> dict:
    return {"success": False, "error": message, "timestamp": utc_now_iso()}


def install_error_handlers(app: FastAPI, production: bool = False):
    """Route every failure through one formatter so clients always get the envelope."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        logger.warning("%s %s - %d - %s", request.method, request.url.path,
                       exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_envelope(exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = f"Route {request.method} {request.url.path} not found"
        else:
            message = str(exc.detail)
        logger.warning("%s %s - %d - %s", request.method, request.url.path,
                       exc.status_code, message)
        return JSONResponse(status_code=exc.status_code, content=error_envelope(message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        parts = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        message = "; ".join(parts) or "Invalid request"
        logger.warning("%s %s - 400 - %s", request.method, request.url.path, message)
        return JSONResponse(status_code=400, content=error_envelope(message))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("%s %s - 500 - %s", request.method, request.url.path, exc,
                     exc_info=exc)
        content = error_envelope("Internal Server Error")
        if not production:
            content["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(status_code=500, content=content)
