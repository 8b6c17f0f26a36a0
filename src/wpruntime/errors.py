"""Error handling module for wp-runtime.

This module defines error codes, exception classes, and response models.

Error Response Format:
{
    "error": {
        "code": "BINARY_MISSING",
        "message": "Missing WordPress binaries: php, mysqld"
    }
}

Usage:
    from wpruntime.errors import BinaryMissingError, StartupTimeoutError

    # Raise with default message
    raise StartupTimeoutError()

    # Raise with custom message
    raise StartupTimeoutError("MySQL failed to start within 60 seconds on port 3306")
"""

from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes."""

    BINARY_MISSING = "BINARY_MISSING"
    PORT_EXHAUSTION = "PORT_EXHAUSTION"
    INITIALIZATION_FAILURE = "INITIALIZATION_FAILURE"
    SUPERUSER_REFUSED = "SUPERUSER_REFUSED"
    STARTUP_TIMEOUT = "STARTUP_TIMEOUT"
    DATABASE_CREATION_FAILURE = "DATABASE_CREATION_FAILURE"
    AUTH_ADJUSTMENT_FAILURE = "AUTH_ADJUSTMENT_FAILURE"
    SHUTDOWN_TIMEOUT = "SHUTDOWN_TIMEOUT"
    APP_NOT_FOUND = "APP_NOT_FOUND"
    INSTANCE_NOT_RUNNING = "INSTANCE_NOT_RUNNING"
    COMMAND_FAILED = "COMMAND_FAILED"


class ErrorDetail(BaseModel):
    """Error detail containing code and message."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error response format."""

    error: ErrorDetail


class WPRuntimeError(Exception):
    """Base exception for wp-runtime.

    All runtime-specific exceptions inherit from this class.
    This enables centralized exception handling in FastAPI.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
        status_code: HTTP status code to return
    """

    def __init__(self, code: ErrorCode, message: str, status_code: int) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(
            error=ErrorDetail(code=self.code.value, message=self.message)
        )


class BinaryMissingError(WPRuntimeError):
    """503 Service Unavailable - Required executables could not be located."""

    def __init__(self, missing: Iterable[str], message: str | None = None) -> None:
        self.missing = list(missing)
        if message is None:
            message = (
                f"Missing WordPress binaries: {', '.join(self.missing)}. "
                "Please ensure WordPress runtime is installed."
            )
        super().__init__(ErrorCode.BINARY_MISSING, message, 503)


class PortExhaustionError(WPRuntimeError):
    """503 Service Unavailable - No free port within the attempt budget."""

    def __init__(self, message: str = "Failed to find an available port") -> None:
        super().__init__(ErrorCode.PORT_EXHAUSTION, message, 503)


class InitializationError(WPRuntimeError):
    """500 Internal Server Error - One-time data directory setup failed."""

    def __init__(self, message: str = "MySQL initialization failed") -> None:
        super().__init__(ErrorCode.INITIALIZATION_FAILURE, message, 500)


class SuperuserRefusedError(WPRuntimeError):
    """500 Internal Server Error - Server version refuses to run as superuser."""

    def __init__(
        self,
        message: str = "MySQL 9.x on macOS cannot run as root. Please run as a normal user.",
    ) -> None:
        super().__init__(ErrorCode.SUPERUSER_REFUSED, message, 500)


class StartupTimeoutError(WPRuntimeError):
    """504 Gateway Timeout - A process did not become ready in time."""

    def __init__(self, message: str = "Process did not become ready in time") -> None:
        super().__init__(ErrorCode.STARTUP_TIMEOUT, message, 504)


class DatabaseCreationError(WPRuntimeError):
    """500 Internal Server Error - Target database could not be created."""

    def __init__(self, message: str = "Failed to create WordPress database") -> None:
        super().__init__(ErrorCode.DATABASE_CREATION_FAILURE, message, 500)


class AuthAdjustmentError(WPRuntimeError):
    """Authentication method could not be adjusted.

    Never surfaced to callers: start() logs it and proceeds.
    """

    def __init__(self, message: str = "Failed to adjust MySQL authentication") -> None:
        super().__init__(ErrorCode.AUTH_ADJUSTMENT_FAILURE, message, 500)


class ShutdownTimeoutError(WPRuntimeError):
    """Graceful stop did not finish in time.

    Handled inside stop() by escalating to a forceful kill.
    """

    def __init__(self, message: str = "Graceful shutdown timed out") -> None:
        super().__init__(ErrorCode.SHUTDOWN_TIMEOUT, message, 500)


class AppNotFoundError(WPRuntimeError):
    """404 Not Found - App is not known to the registry."""

    def __init__(self, message: str = "App not found") -> None:
        super().__init__(ErrorCode.APP_NOT_FOUND, message, 404)


class InstanceNotRunningError(WPRuntimeError):
    """409 Conflict - Operation needs a running instance."""

    def __init__(self, message: str = "WordPress is not running for this app") -> None:
        super().__init__(ErrorCode.INSTANCE_NOT_RUNNING, message, 409)


class CommandFailedError(WPRuntimeError):
    """500 Internal Server Error - A relayed command could not be executed."""

    def __init__(self, message: str = "Command execution failed") -> None:
        super().__init__(ErrorCode.COMMAND_FAILED, message, 500)
