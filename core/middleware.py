"""
HTTP middleware for the Bubble Map API.

- `RequestContextMiddleware`: Picks up or mints the request's correlation ID,
  makes it visible to logging, and reports how long the request took through
  the `X-Correlation-ID` / `X-Process-Time` response headers and an access
  log line. Requests slower than `SLOW_REQUEST_SECONDS` are logged as
  warnings.
- `ErrorHandlingMiddleware`: Renders `BubbleMapException` subclasses raised by
  the services as `{"error": {...}}` bodies with the exception's status code
  and error code. Anything else becomes an opaque 500 so internals never leak
  to clients.

Both are Starlette `BaseHTTPMiddleware` classes and therefore see HTTP traffic
only; the WebSocket channel passes through them untouched.
"""

import time
import uuid
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .exceptions import BubbleMapException
from .fingerprint import RequestMetadata
from .logging_config import get_logger, set_correlation_id

logger = get_logger("core.middleware")

SLOW_REQUEST_SECONDS = 1.0
CORRELATION_HEADERS = ("X-Correlation-ID", "X-Request-ID")


def error_body(
    error_type: str,
    code: str,
    message: str,
    correlation_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """The JSON body every failed request returns"""
    error: Dict[str, Any] = {"type": error_type, "code": code, "message": message}
    if correlation_id:
        error["correlation_id"] = correlation_id
    if details:
        error["details"] = details
    return {"error": error}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Correlation ID and timing for every request"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = next(
            (request.headers[h] for h in CORRELATION_HEADERS if request.headers.get(h)),
            None,
        ) or uuid.uuid4().hex
        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started
        duration_ms = round(elapsed * 1000, 2)

        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time"] = str(duration_ms)

        context = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        if elapsed > SLOW_REQUEST_SECONDS:
            logger.warning(
                f"Slow request from {RequestMetadata.from_connection(request).address}",
                extra=context,
            )
        else:
            logger.info(f"{request.method} {request.url.path} {response.status_code}", extra=context)
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Translate application exceptions into JSON error responses"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", None)
        try:
            return await call_next(request)
        except BubbleMapException as e:
            # Client mistakes are routine; only server-side failures are errors
            level = logger.error if e.status_code >= 500 else logger.info
            level(
                f"Rejected request: {e.message}",
                extra={
                    "error_type": type(e).__name__,
                    "error_code": e.error_code,
                    "path": request.url.path,
                },
            )
            return JSONResponse(
                status_code=e.status_code,
                content=error_body(
                    type(e).__name__, e.error_code, e.message, correlation_id, e.details
                ),
            )
        except Exception as e:
            logger.exception(
                f"Unhandled error on {request.method} {request.url.path}",
                extra={"error_type": type(e).__name__, "path": request.url.path},
            )
            return JSONResponse(
                status_code=500,
                content=error_body(
                    "InternalServerError",
                    "INTERNAL_ERROR",
                    "An unexpected error occurred",
                    correlation_id,
                ),
            )
