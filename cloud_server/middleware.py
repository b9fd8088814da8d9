"""Request tracing and last-resort fault bodies for the stand-in cloud."""

import time
import uuid
from typing import Callable

import structlog
from fastapi import HTTPException, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from cloud_server.faults import fault_response

logger = structlog.get_logger()


def token_header(request: Request) -> str:
    """Which token header the caller sent, if any."""
    if "X-Storage-Token" in request.headers:
        return "X-Storage-Token"
    if "X-Auth-Token" in request.headers:
        return "X-Auth-Token"
    return "none"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Binds a correlation id for the request and logs its outcome.

    The id is echoed in ``X-Correlation-ID`` so a client-side debug trace can
    be matched with the server log.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
        started = time.perf_counter()
        try:
            logger.debug(
                "Request received",
                method=request.method,
                path=request.url.path,
                token_header=token_header(request),
                keep_alive=request.headers.get("Connection", "").lower() == "keep-alive",
                chunked=request.headers.get("Transfer-Encoding") == "chunked",
                user_agent=request.headers.get("User-Agent", ""),
            )
            response = await call_next(request)
            logger.debug(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            response.headers["X-Correlation-ID"] = correlation_id
            return response
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Unexpected errors become a 500 ``computeFault`` body, as a real service would send."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except Exception as exc:
            logger.exception(
                "Unhandled error",
                method=request.method,
                path=request.url.path,
                error_type=type(exc).__name__,
            )
            return fault_response(500, "computeFault", "Internal server error")
