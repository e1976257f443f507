"""In-memory object store for development and tests.

Mirrors S3 ``ListObjectsV2`` semantics closely enough for the namespace layer:
lexicographic key order, delimiter roll-up into common prefixes, and paging
where each common prefix counts as one key towards ``max_keys``.
"""

from __future__ import annotations

import bisect
import hashlib
from datetime import datetime, timezone

from bucketview.storage.errors import ObjectNotFoundError
from bucketview.storage.models import ListPage, ObjectInfo, StoredObject
from bucketview.storage.object_store import DEFAULT_PAGE_SIZE, ObjectStore


class MemoryObjectStore(ObjectStore):
    """Dict-backed object store. Not shared between processes."""

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self.page_size = page_size
        self._keys: list[str] = []  # kept sorted
        self._objects: dict[str, StoredObject] = {}

    @property
    def backend_name(self) -> str:
        return "memory"

    async def list_page(
        self,
        prefix: str = "",
        *,
        delimiter: str | None = None,
        continuation_token: str | None = None,
        max_keys: int | None = None,
    ) -> ListPage:
        limit = max_keys or self.page_size
        start = bisect.bisect_left(self._keys, prefix)
        if continuation_token:
            start = max(start, bisect.bisect_right(self._keys, continuation_token))

        objects: list[ObjectInfo] = []
        prefixes: list[str] = []
        last_emitted: str | None = None
        i = start
        while i < len(self._keys):
            key = self._keys[i]
            if not key.startswith(prefix):
                break
            if len(objects) + len(prefixes) >= limit:
                return ListPage(objects=objects, common_prefixes=prefixes, next_token=last_emitted)

            rest = key[len(prefix):]
            if delimiter and delimiter in rest:
                common = prefix + rest[: rest.index(delimiter) + len(delimiter)]
                prefixes.append(common)
                # Skip every key rolled up into this prefix; the token is the
                # greatest key sharing it so the next page resumes after them.
                j = i
                while j + 1 < len(self._keys) and self._keys[j + 1].startswith(common):
                    j += 1
                last_emitted = self._keys[j]
                i = j + 1
                continue

            objects.append(self._objects[key].info)
            last_emitted = key
            i += 1

        return ListPage(objects=objects, common_prefixes=prefixes, next_token=None)

    async def head(self, key: str) -> ObjectInfo:
        return (await self.get(key)).info

    async def get(self, key: str) -> StoredObject:
        obj = self._objects.get(key)
        if obj is None:
            raise ObjectNotFoundError(key=key)
        return obj

    async def put(
        self,
        key: str,
        body: bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ObjectInfo:
        info = ObjectInfo(
            key=key,
            size=len(body),
            last_modified=datetime.now(timezone.utc),
            content_type=content_type,
            etag=hashlib.md5(body).hexdigest(),
            custom_metadata=dict(metadata or {}),
        )
        if key not in self._objects:
            bisect.insort(self._keys, key)
        self._objects[key] = StoredObject(info=info, body=bytes(body))
        return info

    async def delete(self, key: str) -> None:
        if self._objects.pop(key, None) is None:
            return
        idx = bisect.bisect_left(self._keys, key)
        del self._keys[idx]

    def keys(self) -> list[str]:
        """Snapshot of every stored key in order."""
        return list(self._keys)
