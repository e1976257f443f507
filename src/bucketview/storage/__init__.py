"""Object storage backends for bucketview."""

from __future__ import annotations

from typing import TYPE_CHECKING

from bucketview.storage.errors import ObjectNotFoundError, ObjectStorageError, StorageBackendError
from bucketview.storage.memory_store import MemoryObjectStore
from bucketview.storage.models import ListPage, ObjectInfo, StoredObject
from bucketview.storage.object_store import ObjectStore

if TYPE_CHECKING:
    from bucketview.config import StorageConfig

__all__ = [
    "ListPage",
    "MemoryObjectStore",
    "ObjectInfo",
    "ObjectNotFoundError",
    "ObjectStorageError",
    "ObjectStore",
    "StorageBackendError",
    "StoredObject",
    "create_object_store",
]


def create_object_store(config: "StorageConfig") -> ObjectStore:
    """Build the configured object store backend."""
    backend = config.backend.lower()
    if backend == "memory":
        return MemoryObjectStore(page_size=config.page_size)
    if backend == "s3":
        # pulls in boto3
        from bucketview.storage.s3_store import S3ObjectStore

        return S3ObjectStore(
            config.bucket,
            endpoint_url=config.endpoint_url,
            region=config.region,
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            page_size=config.page_size,
            executor_max_workers=config.executor_max_workers,
        )
    raise ValueError(f"Unknown storage backend: {config.backend!r}")
