"""Object storage error types.

Backends translate their native failures into these so the HTTP layer can map
them onto the error envelope without knowing which backend is configured.
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for object storage operations.

    Attributes:
        message: Human-readable error message.
        key: Object key associated with the operation (if applicable).
    """

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.key = key

    def __str__(self) -> str:
        if self.key:
            return f"{self.message} key={self.key}"
        return self.message


class ObjectNotFoundError(ObjectStorageError):
    """Raised when an object does not exist in the bucket."""

    def __init__(self, message: str = "Object not found", *, key: str | None = None) -> None:
        super().__init__(message, key=key)


class StorageBackendError(ObjectStorageError):
    """Raised when the backend itself fails (network, credentials, throttling)."""

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        key: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, key=key)
        self.cause = cause
