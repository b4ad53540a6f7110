"""
Error handling middleware that converts exceptions to HTTP responses.
"""
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from tubehub.core.exceptions import AuthException, TubeHubException, UnauthenticatedException, ValidationException
import logging

logger = logging.getLogger(__name__)


def error_response(e: TubeHubException) -> JSONResponse:
    """Build the JSON body for an application exception."""
    if isinstance(e, (AuthException, UnauthenticatedException)):
        # Never disclose why authentication failed
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    content = {
        "error": e.message,
        "status_code": e.status_code
    }
    if isinstance(e, ValidationException):
        content["field"] = e.field
    return JSONResponse(status_code=e.status_code, content=content)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware to convert exceptions to appropriate HTTP responses."""

    async def dispatch(self, request: Request, call_next):
        """Process each request and handle exceptions."""
        try:
            response = await call_next(request)
            return response

        except TubeHubException as e:
            logger.warning(
                f"Application error: {e.message}",
                extra={
                    "context": {
                        "status_code": e.status_code,
                        "path": request.url.path,
                        "method": request.method
                    }
                }
            )
            return error_response(e)

        except Exception as e:
            logger.error(
                f"Unexpected error: {str(e)}",
                exc_info=True,
                extra={
                    "context": {
                        "path": request.url.path,
                        "method": request.method
                    }
                }
            )

            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "status_code": 500
                }
            )
