"""Object store interface definition.

Provides the ObjectStore base class that all storage backends must implement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from bucketview.storage.models import ListPage, ObjectInfo, StoredObject

DEFAULT_PAGE_SIZE = 1000


class ObjectStore(ABC):
    """Flat key → blob store with prefix/delimiter listing.

    List-after-write is only eventually consistent on real backends; point
    get/put/delete on a single key are strongly consistent.

    Implementations:
    - MemoryObjectStore: in-process dict (dev/test)
    - S3ObjectStore: any S3-compatible bucket (AWS S3, Cloudflare R2, MinIO)
    """

    page_size: int = DEFAULT_PAGE_SIZE

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for logs (e.g. "memory", "s3")."""
        ...

    @abstractmethod
    async def list_page(
        self,
        prefix: str = "",
        *,
        delimiter: str | None = None,
        continuation_token: str | None = None,
        max_keys: int | None = None,
    ) -> ListPage:
        """Return one page of keys starting with ``prefix``.

        With a delimiter, keys containing the delimiter after the prefix are
        rolled up into ``common_prefixes`` (each ending with the delimiter).
        ``next_token`` is set when more results remain.
        """
        ...

    @abstractmethod
    async def head(self, key: str) -> ObjectInfo:
        """Return metadata without the body.

        Raises:
            ObjectNotFoundError: If the key does not exist.
            StorageBackendError: If the backend cannot complete the request.
        """
        ...

    @abstractmethod
    async def get(self, key: str) -> StoredObject:
        """Return body and metadata.

        Raises:
            ObjectNotFoundError: If the key does not exist.
            StorageBackendError: If the backend cannot complete the request.
        """
        ...

    @abstractmethod
    async def put(
        self,
        key: str,
        body: bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ObjectInfo:
        """Create or overwrite an object.

        Raises:
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete an object. Deleting an absent key is not an error.

        Raises:
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...

    async def close(self) -> None:
        """Release backend resources. No-op unless the backend holds any."""
        return None

    async def iter_pages(
        self, prefix: str = "", *, delimiter: str | None = None
    ) -> AsyncIterator[ListPage]:
        """Yield every page of a listing, following continuation tokens."""
        token: str | None = None
        while True:
            page = await self.list_page(
                prefix,
                delimiter=delimiter,
                continuation_token=token,
                max_keys=self.page_size,
            )
            yield page
            if not page.next_token:
                return
            token = page.next_token

    async def iter_objects(self, prefix: str = "") -> AsyncIterator[ObjectInfo]:
        """Yield every object under ``prefix`` (no delimiter), one page at a time."""
        async for page in self.iter_pages(prefix):
            for obj in page.objects:
                yield obj
