"""Structured error codes and exception classes for the bucketview HTTP API."""

from __future__ import annotations

__all__ = ["ErrorCode", "BucketViewError", "ErrorResponse", "ERROR_STATUS_MAP"]

from enum import Enum

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    INVALID_REQUEST = "INVALID_REQUEST"
    OAUTH_PROVIDER_ERROR = "OAUTH_PROVIDER_ERROR"
    INVALID_STATE = "INVALID_STATE"
    TOKEN_EXCHANGE_FAILED = "TOKEN_EXCHANGE_FAILED"
    AUTH_FAILED = "AUTH_FAILED"
    DOMAIN_RESTRICTED = "DOMAIN_RESTRICTED"
    NO_SESSION = "NO_SESSION"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    OBJECT_NOT_FOUND = "OBJECT_NOT_FOUND"
    ENDPOINT_NOT_FOUND = "ENDPOINT_NOT_FOUND"
    CONTENT_TOO_LARGE = "CONTENT_TOO_LARGE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PARTIAL_FAILURE = "PARTIAL_FAILURE"
    STORE_ERROR = "STORE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Map ErrorCode → default HTTP status code
ERROR_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.OAUTH_PROVIDER_ERROR: 400,
    ErrorCode.INVALID_STATE: 401,
    ErrorCode.TOKEN_EXCHANGE_FAILED: 401,
    ErrorCode.AUTH_FAILED: 401,
    ErrorCode.DOMAIN_RESTRICTED: 403,
    ErrorCode.NO_SESSION: 401,
    ErrorCode.SESSION_NOT_FOUND: 401,
    ErrorCode.SESSION_EXPIRED: 401,
    ErrorCode.OBJECT_NOT_FOUND: 404,
    ErrorCode.ENDPOINT_NOT_FOUND: 404,
    ErrorCode.CONTENT_TOO_LARGE: 413,
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.PARTIAL_FAILURE: 500,
    ErrorCode.STORE_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


class BucketViewError(Exception):
    """Structured application error that maps to a JSON error response."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details: dict = details or {}
        self.status_code: int = status_code if status_code is not None else ERROR_STATUS_MAP.get(code, 500)


class ErrorResponse(BaseModel):
    """Serialisable envelope for all error responses.

    ``error`` is always the human-readable message; ``code`` and ``details``
    give clients something stable to branch on.
    """

    error: str
    code: str = ErrorCode.INTERNAL_ERROR.value
    details: dict = Field(default_factory=dict)

    @classmethod
    def from_error(cls, exc: BucketViewError) -> "ErrorResponse":
        return cls(error=exc.message, code=exc.code.value, details=exc.details)

    @classmethod
    def internal(cls, message: str = "An unexpected error occurred") -> "ErrorResponse":
        return cls(error=message, code=ErrorCode.INTERNAL_ERROR.value)
