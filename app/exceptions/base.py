# ruff: noqa: D107
"""Base exception classes."""

from typing import Any

from fastapi import HTTPException


class BaseAppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={"message": message, "error_code": error_code, "details": details},
        )

    def __str__(self) -> str:
        return self.message


class NotFoundError(BaseAppException):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        message: str = "Resource not found",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message=message, status_code=404, error_code="NOT_FOUND", details=details)


class PermissionDeniedError(BaseAppException):
    """Exception raised when the actor lacks the required membership or role."""

    def __init__(
        self,
        message: str = "Permission denied",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED",
            details=details,
        )


class InvalidArgumentError(BaseAppException):
    """Exception raised for malformed or missing fields and disallowed enum values."""

    def __init__(
        self,
        message: str = "Invalid argument",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            status_code=400,
            error_code="INVALID_ARGUMENT",
            details=details,
        )


class InvalidStateError(BaseAppException):
    """Exception raised when an operation is not allowed in the resource's current state."""

    def __init__(
        self,
        message: str = "Operation not allowed in the current state",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            status_code=409,
            error_code="INVALID_STATE",
            details=details,
        )


class ConflictError(BaseAppException):
    """Exception raised when a resource already exists."""

    def __init__(
        self,
        message: str = "Resource already exists",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message=message, status_code=409, error_code="CONFLICT", details=details)


class UpstreamUnavailableError(BaseAppException):
    """Exception raised when the realtime transport cannot deliver."""

    def __init__(
        self,
        message: str = "Realtime transport unavailable",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            status_code=503,
            error_code="UPSTREAM_UNAVAILABLE",
            details=details,
        )


class PersistenceError(BaseAppException):
    """Exception raised when the database rejects a write. Never carries driver details."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message=message, status_code=500, error_code="INTERNAL_ERROR")
