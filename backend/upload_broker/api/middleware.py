"""Request policies applied to every route."""

import logging
import time
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({"application/json"})


def _has_body(request: Request) -> bool:
    if request.headers.get("transfer-encoding"):
        return True
    return request.headers.get("content-length", "0").strip() not in ("", "0")


class JSONContentTypeMiddleware(BaseHTTPMiddleware):
    """Reject requests whose body is not declared as JSON.

    Requests without a body pass through untouched.
    """

    def __init__(self, app, allowed: frozenset[str] = ALLOWED_CONTENT_TYPES) -> None:
        super().__init__(app)
        self.allowed = allowed

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not _has_body(request):
            return await call_next(request)

        content_type = request.headers.get("content-type", "")
        media_type = content_type.split(";", 1)[0].strip().lower()
        if media_type not in self.allowed:
            return JSONResponse(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                content={"detail": "Unsupported Media Type"},
            )
        return await call_next(request)


class RecoveryMiddleware(BaseHTTPMiddleware):
    """Turn exceptions escaping a handler into a 500 response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception:
            logger.exception("Unhandled error serving %s %s", request.method, request.url.path)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"detail": "Internal Server Error"},
            )


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        client = request.client.host if request.client else "-"
        logger.info(
            '"%s %s" from %s - %d in %.1fms',
            request.method,
            target,
            client,
            response.status_code,
            duration_ms,
        )
        return response
