"""
Custom exception classes for the TubeHub application.
These exceptions provide meaningful error messages and HTTP status codes.
"""


class TubeHubException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationException(TubeHubException):
    """Raised when upload metadata or an action payload fails validation."""

    def __init__(self, field: str, message: str):
        super().__init__(
            message=message,
            status_code=400  # Bad Request
        )
        self.field = field


class AuthException(TubeHubException):
    """Raised when a webhook callback cannot be authenticated.

    The message is internal only; the HTTP layer always answers with a
    generic body.
    """

    def __init__(self, reason: str = "invalid signature"):
        super().__init__(
            message=f"Webhook authentication failed: {reason}",
            status_code=401
        )
        self.reason = reason


class UnauthenticatedException(TubeHubException):
    """Raised when a user-facing action is called without a current user."""

    def __init__(self):
        super().__init__(
            message="Unauthenticated request",
            status_code=401
        )


class DecodeException(TubeHubException):
    """Raised when a webhook payload does not match the expected shape."""

    def __init__(self, message: str):
        super().__init__(
            message=f"Malformed payload: {message}",
            status_code=400
        )


class UpstreamException(TubeHubException):
    """Raised when a call to the transcoding provider or storage fails."""

    def __init__(self, provider: str, operation: str, error: str):
        super().__init__(
            message=f"Upstream '{provider}' error during {operation}: {error}",
            status_code=502  # Bad Gateway
        )
        self.provider = provider
        self.operation = operation
        self.error = error


class NotFoundException(TubeHubException):
    """Raised when a record lookup misses."""

    def __init__(self, resource: str, key: str):
        super().__init__(
            message=f"{resource} not found: {key}",
            status_code=404
        )
        self.resource = resource
        self.key = key


class ConflictException(TubeHubException):
    """Raised when an operation was already applied (idempotency guard)."""

    def __init__(self, resource: str, key: str):
        super().__init__(
            message=f"{resource} already processed: {key}",
            status_code=409  # Conflict
        )
        self.resource = resource
        self.key = key
