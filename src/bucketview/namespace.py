"""Folder semantics over a flat object store.

A folder is any key prefix ending in the separator. Folders exist implicitly
as long as some key lives under them; a zero-length marker object is only
needed to keep an otherwise empty folder visible. Listings are computed from a
delimiter listing at read time, so nothing here is cached.

Rename and delete walk the subtree key by key. They are not atomic: a failure
part-way leaves some keys moved or deleted, and the returned BatchReport says
which.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from bucketview.errors import BucketViewError, ErrorCode
from bucketview.storage.errors import ObjectNotFoundError
from bucketview.storage.object_store import ObjectStore

logger = logging.getLogger("bucketview.namespace")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


# --- Models ---


class FolderEntry(BaseModel):
    name: str
    path: str
    is_folder: bool = True


class FileEntry(BaseModel):
    name: str
    path: str
    size: int = 0
    last_modified: datetime | None = None
    content_type: str = DEFAULT_CONTENT_TYPE
    is_folder: bool = False


class Listing(BaseModel):
    """Immediate children of one folder."""
    prefix: str
    folders: list[FolderEntry] = Field(default_factory=list)
    files: list[FileEntry] = Field(default_factory=list)
    parent_folder: str | None = None

    def to_response(self) -> dict:
        """JSON shape served to the browser (camelCase)."""
        return {
            "prefix": self.prefix,
            "folders": [
                {"name": f.name, "path": f.path, "isFolder": True} for f in self.folders
            ],
            "files": [
                {
                    "name": f.name,
                    "path": f.path,
                    "size": f.size,
                    "lastModified": f.last_modified.isoformat() if f.last_modified else None,
                    "isFolder": False,
                    "contentType": f.content_type,
                }
                for f in self.files
            ],
            "parentFolder": self.parent_folder,
        }


class KeyFailure(BaseModel):
    key: str
    error: str


class BatchReport(BaseModel):
    """Outcome of a subtree rename or delete."""
    path: str
    new_path: str | None = None
    succeeded: list[str] = Field(default_factory=list)
    failed: list[KeyFailure] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed

    def to_response(self) -> dict:
        if self.new_path is not None:
            body: dict = {"oldPath": self.path, "newPath": self.new_path}
        else:
            body = {"deleted": self.complete, "path": self.path}
        body["processed"] = len(self.succeeded)
        if self.failed:
            body["failed"] = [f.model_dump() for f in self.failed]
        return body

    def raise_for_failures(self) -> None:
        """Raise PARTIAL_FAILURE carrying this report when any key failed."""
        if self.failed:
            raise BucketViewError(
                ErrorCode.PARTIAL_FAILURE,
                f"{len(self.failed)} of {len(self.succeeded) + len(self.failed)} objects failed",
                details=self.to_response(),
            )


# --- Manager ---


class NamespaceManager:
    """Maps folder operations onto keys in an ObjectStore."""

    def __init__(
        self,
        store: ObjectStore,
        separator: str = "/",
        max_concurrency: int = 8,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not separator:
            raise ValueError("separator must be non-empty")
        self.store = store
        self.separator = separator
        self.max_concurrency = max(1, max_concurrency)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # --- Path helpers ---

    def normalize(self, path: str) -> str:
        """Terminate a non-empty path with the separator."""
        if path and not path.endswith(self.separator):
            return path + self.separator
        return path

    def parent_of(self, path: str) -> str | None:
        """Parent folder of ``path``; ``None`` at the root, ``""`` for top-level folders."""
        if not path or path == self.separator:
            return None
        trimmed = path[: -len(self.separator)] if path.endswith(self.separator) else path
        idx = trimmed.rfind(self.separator)
        if idx < 0:
            return ""
        return trimmed[:idx]

    # --- Read ---

    async def list(self, prefix: str = "") -> Listing:
        """List the immediate children of ``prefix`` across every store page."""
        prefix = self.normalize(prefix)
        listing = Listing(prefix=prefix, parent_folder=self.parent_of(prefix))

        untyped: list[FileEntry] = []
        async for page in self.store.iter_pages(prefix, delimiter=self.separator):
            for common in page.common_prefixes:
                name = common[len(prefix):]
                if name.endswith(self.separator):
                    name = name[: -len(self.separator)]
                listing.folders.append(FolderEntry(name=name, path=common))
            for obj in page.objects:
                if obj.key == prefix:
                    # marker of the folder being listed
                    continue
                entry = FileEntry(
                    name=obj.key[len(prefix):],
                    path=obj.key,
                    size=obj.size,
                    last_modified=obj.last_modified,
                    content_type=obj.content_type or DEFAULT_CONTENT_TYPE,
                )
                listing.files.append(entry)
                if obj.content_type is None:
                    untyped.append(entry)

        await self._fill_content_types(untyped)
        return listing

    async def _fill_content_types(self, entries: list[FileEntry]) -> None:
        """HEAD files whose listing carried no content type (S3 ListObjectsV2 never does)."""
        for start in range(0, len(entries), self.max_concurrency):
            batch = entries[start:start + self.max_concurrency]
            types = await asyncio.gather(*(self._content_type_of(e.path) for e in batch))
            for entry, content_type in zip(batch, types):
                if content_type:
                    entry.content_type = content_type

    async def _content_type_of(self, key: str) -> str | None:
        try:
            return (await self.store.head(key)).content_type
        except ObjectNotFoundError:
            # deleted since it was listed
            return None

    async def iter_keys(self, prefix: str) -> AsyncIterator[str]:
        """Yield every key under ``prefix``, one store page at a time."""
        async for obj in self.store.iter_objects(prefix):
            yield obj.key

    # --- Write ---

    async def create_folder(self, path: str) -> dict:
        """Write the empty-folder marker. Idempotent."""
        path = self.normalize(path)
        if not path:
            raise BucketViewError(ErrorCode.INVALID_REQUEST, "Path is required")
        await self.store.put(
            path,
            b"",
            metadata={"isFolder": "true", "createdAt": self._clock().isoformat()},
        )
        logger.info("namespace: created folder %s", path)
        return {"path": path}

    async def rename_folder(self, old_path: str, new_path: str) -> BatchReport:
        """Move every key under ``old_path`` to the same relative key under ``new_path``.

        Each key is written at its new location before the original is
        deleted, so a failure never loses data; it may leave a copy in both
        places.
        """
        old_path = self.normalize(old_path)
        new_path = self.normalize(new_path)
        if not old_path or not new_path:
            raise BucketViewError(ErrorCode.INVALID_REQUEST, "Both oldPath and newPath are required")
        if old_path == new_path:
            raise BucketViewError(ErrorCode.INVALID_REQUEST, "oldPath and newPath are the same")
        if new_path.startswith(old_path):
            raise BucketViewError(
                ErrorCode.INVALID_REQUEST, "Cannot move a folder inside itself",
                details={"oldPath": old_path, "newPath": new_path},
            )

        async def move(key: str) -> None:
            obj = await self.store.get(key)
            await self.store.put(
                new_path + key[len(old_path):],
                obj.body,
                content_type=obj.info.content_type,
                metadata=obj.info.custom_metadata,
            )
            await self.store.delete(key)

        report = BatchReport(path=old_path, new_path=new_path)
        await self._for_each_key(old_path, move, report)
        logger.info(
            "namespace: renamed %s -> %s (%d moved, %d failed)",
            old_path, new_path, len(report.succeeded), len(report.failed),
        )
        return report

    async def delete_folder(self, path: str) -> BatchReport:
        """Delete every key under ``path``, including its marker."""
        path = self.normalize(path)
        if not path:
            raise BucketViewError(ErrorCode.INVALID_REQUEST, "Path is required")

        report = BatchReport(path=path)
        await self._for_each_key(path, self.store.delete, report)
        logger.info(
            "namespace: deleted %s (%d removed, %d failed)",
            path, len(report.succeeded), len(report.failed),
        )
        return report

    async def _for_each_key(
        self,
        prefix: str,
        op: Callable[[str], Awaitable[None]],
        report: BatchReport,
    ) -> None:
        """Apply ``op`` to every key under ``prefix``, ``max_concurrency`` keys at a time.

        Keys are enumerated lazily; a batch finishes before the next page of
        keys is consumed. Failures are recorded per key and do not stop the walk.
        """
        # Processed keys always sort before the continuation token, so
        # mutating the prefix while paging it skips nothing.
        batch: list[str] = []

        async def run(keys: list[str]) -> None:
            results = await asyncio.gather(*(op(k) for k in keys), return_exceptions=True)
            for key, result in zip(keys, results):
                if isinstance(result, BaseException):
                    if isinstance(result, asyncio.CancelledError):
                        raise result
                    logger.warning("namespace: %s failed: %s", key, result)
                    report.failed.append(KeyFailure(key=key, error=str(result)))
                else:
                    report.succeeded.append(key)

        async for key in self.iter_keys(prefix):
            batch.append(key)
            if len(batch) >= self.max_concurrency:
                await run(batch)
                batch = []
        if batch:
            await run(batch)
