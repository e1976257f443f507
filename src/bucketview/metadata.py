"""Object metadata: read, merge-update, and linear search."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from bucketview.errors import BucketViewError, ErrorCode
from bucketview.storage.models import ObjectInfo
from bucketview.storage.object_store import ObjectStore

logger = logging.getLogger("bucketview.metadata")


def _lookup(metadata: dict[str, str], name: str) -> str:
    """Case-insensitive metadata lookup; S3 lower-cases user metadata keys."""
    if name in metadata:
        return metadata[name]
    lowered = name.lower()
    for key, value in metadata.items():
        if key.lower() == lowered:
            return value
    return ""


def _split_tags(raw: str) -> list[str]:
    return [t.strip().lower() for t in raw.split(",") if t.strip()]


def _parse_date(raw: str, field: str) -> datetime:
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise BucketViewError(
            ErrorCode.INVALID_REQUEST, f"Invalid {field}: {raw!r}", details={"field": field}
        )
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class MetadataService:
    """Reads and rewrites object metadata through the ObjectStore."""

    def __init__(self, store: ObjectStore, separator: str = "/", max_concurrency: int = 8) -> None:
        self.store = store
        self.separator = separator
        self.max_concurrency = max(1, max_concurrency)

    async def get(self, key: str) -> dict[str, Any]:
        if not key:
            raise BucketViewError(ErrorCode.INVALID_REQUEST, "Object key is required")
        info = await self.store.head(key)
        return {
            "key": key,
            "size": info.size,
            "uploaded": _iso(info.last_modified),
            "httpMetadata": {"contentType": info.content_type} if info.content_type else {},
            "customMetadata": info.custom_metadata,
        }

    async def update(
        self,
        key: str,
        http_metadata: dict[str, Any] | None = None,
        custom_metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Rewrite the object with its current body and merged metadata."""
        if not key:
            raise BucketViewError(ErrorCode.INVALID_REQUEST, "Object key is required")
        if not http_metadata and not custom_metadata:
            raise BucketViewError(ErrorCode.INVALID_REQUEST, "Metadata is required")

        obj = await self.store.get(key)
        merged_http: dict[str, Any] = {}
        if obj.info.content_type:
            merged_http["contentType"] = obj.info.content_type
        merged_http.update(http_metadata or {})
        merged_custom = {**obj.info.custom_metadata, **{k: str(v) for k, v in (custom_metadata or {}).items()}}

        await self.store.put(
            key,
            obj.body,
            content_type=merged_http.get("contentType"),
            metadata=merged_custom,
        )
        logger.info("metadata: updated %s", key)
        return {"key": key, "httpMetadata": merged_http, "customMetadata": merged_custom}

    async def search(
        self,
        tags: str | None = None,
        description: str | None = None,
        type: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        prefix: str | None = None,
    ) -> dict[str, Any]:
        """Scan every object under ``prefix`` and keep those matching all filters.

        Listings carry no custom metadata, so each candidate is HEADed;
        ``max_concurrency`` HEADs run at a time.
        """
        search_tags = _split_tags(tags) if tags else []
        lower_desc = description.lower() if description else ""
        lower_type = type.lower() if type else ""
        start = _parse_date(date_from, "dateFrom") if date_from else None
        end = _parse_date(date_to, "dateTo") if date_to else None

        def matches(info: ObjectInfo) -> bool:
            meta = info.custom_metadata
            if search_tags:
                object_tags = _split_tags(_lookup(meta, "tags"))
                if not any(t in object_tags for t in search_tags):
                    return False
            if lower_desc and lower_desc not in _lookup(meta, "description").lower():
                return False
            if lower_type and lower_type not in (info.content_type or "").lower():
                return False
            if start or end:
                uploaded = info.last_modified
                if uploaded is None:
                    return False
                if uploaded.tzinfo is None:
                    uploaded = uploaded.replace(tzinfo=timezone.utc)
                if start and uploaded < start:
                    return False
                if end and uploaded > end:
                    return False
            return True

        results: list[dict[str, Any]] = []

        async def check(batch: list[ObjectInfo]) -> None:
            heads = await asyncio.gather(*(self.store.head(o.key) for o in batch))
            for listed, info in zip(batch, heads):
                if matches(info):
                    results.append({
                        "key": listed.key,
                        "size": listed.size,
                        "uploaded": _iso(info.last_modified),
                        "contentType": info.content_type,
                        "metadata": info.custom_metadata,
                    })

        batch: list[ObjectInfo] = []
        async for obj in self.store.iter_objects(prefix or ""):
            # folder markers
            if obj.key.endswith(self.separator) and obj.size == 0:
                continue
            batch.append(obj)
            if len(batch) >= self.max_concurrency:
                await check(batch)
                batch = []
        if batch:
            await check(batch)

        return {"count": len(results), "results": results}
