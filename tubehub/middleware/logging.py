"""
Request/response logging middleware.
"""
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from tubehub.core.logging import (
    generate_request_id,
    set_request_id,
    log_event
)

# Polled by load balancers; only errors are logged for these
QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to track request IDs and log all requests/responses."""

    async def dispatch(self, request: Request, call_next):
        """Process each request and log it."""
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)

        start_time = time.time()
        is_quiet = request.url.path in QUIET_PATHS

        if not is_quiet:
            log_event(
                level="INFO",
                logger="tubehub.middleware.logging",
                function="dispatch",
                operation="http_request",
                event="request_received",
                message=f"Request received: {request.method} {request.url.path}",
                context={
                    "method": request.method,
                    "path": request.url.path,
                    "query_params": dict(request.query_params),
                    "client_host": request.client.host if request.client else None,
                    "user_agent": request.headers.get("user-agent"),
                    "content_type": request.headers.get("content-type"),
                    "content_length": request.headers.get("content-length"),
                }
            )

        try:
            response = await call_next(request)

            duration = time.time() - start_time

            if not is_quiet:
                log_event(
                    level="INFO",
                    logger="tubehub.middleware.logging",
                    function="dispatch",
                    operation="http_request",
                    event="response_sent",
                    message=f"Response sent: {request.method} {request.url.path}",
                    context={
                        "status_code": response.status_code,
                        "duration_seconds": duration,
                    }
                )

            response.headers["X-Request-ID"] = request_id

            return response

        except Exception as e:
            duration = time.time() - start_time

            log_event(
                level="ERROR",
                logger="tubehub.middleware.logging",
                function="dispatch",
                operation="http_request",
                event="request_error",
                message=f"Request error: {request.method} {request.url.path}",
                context={
                    "duration_seconds": duration,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=e
            )
            raise
