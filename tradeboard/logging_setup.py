import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("tradeboard.access")


def init_logging(level: str = "INFO"):
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


def _req_id(request: Request) -> str:
    """Return the inbound request ID or generate a UUID4."""
    return request.headers.get("x-request-id") or str(uuid.uuid4())


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One log line per request; tags the response with `X-Request-ID`.

    The Authorization header is only ever logged as present/absent.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = _req_id(request)
        start = time.time()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "%s %s 500 %.2fms rid=%s",
                request.method,
                request.url.path,
                (time.time() - start) * 1000,
                request_id,
            )
            raise
        duration_ms = (time.time() - start) * 1000
        logger.info(
            "%s %s %s %.2fms rid=%s auth=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
            "yes" if request.headers.get("authorization") else "no",
        )
        response.headers["X-Request-ID"] = request_id
        return response
