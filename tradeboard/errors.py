"""Gateway error taxonomy and the FastAPI handlers that render it as JSON."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import Settings

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Base error carrying the HTTP status and the client-facing message."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, detail: Any = None) -> None:
        if message is not None:
            self.message = message
        self.detail = detail
        super().__init__(self.message)


class CredentialsError(GatewayError):
    message = "Service credentials are not configured"


class MissingTokenError(GatewayError):
    status_code = 401
    message = "No token provided"


class InvalidTokenError(GatewayError):
    status_code = 403
    message = "Invalid token"


class ValidationFailed(GatewayError):
    status_code = 400
    message = "Invalid request"


class Unauthorized(GatewayError):
    status_code = 401
    message = "Invalid credentials"


class Forbidden(GatewayError):
    status_code = 403
    message = "Forbidden"


class EmptyRangeError(GatewayError):
    status_code = 404
    message = "No data found in spreadsheet"


class RateLimitedError(GatewayError):
    status_code = 429
    message = "Rate limit exceeded"


class UpstreamError(GatewayError):
    status_code = 500
    message = "Upstream service error"


def error_body(exc: GatewayError, settings: Settings) -> dict[str, Any]:
    body: dict[str, Any] = {"error": exc.message}
    if exc.detail is not None and not settings.is_production:
        body["details"] = exc.detail
    return body


def install_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(GatewayError)
    async def _gateway_error(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail or exc.message)
        return JSONResponse(error_body(exc, settings), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        body: dict[str, Any] = {"error": "Invalid request body"}
        if not settings.is_production:
            body["details"] = jsonable_errors(exc)
        return JSONResponse(body, status_code=400)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        message = "Internal server error" if settings.is_production else str(exc)
        return JSONResponse({"error": message, "status": 500}, status_code=500)


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
