"""Validated single-request uploads into the bucket."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

from bucketview.config import StorageConfig, UploadConfig
from bucketview.errors import BucketViewError, ErrorCode
from bucketview.storage.object_store import ObjectStore

logger = logging.getLogger("bucketview.upload")

_WHITESPACE = re.compile(r"\s+")
_UNSAFE_CHARS = re.compile(r"[^\w\-.]")


def sanitize_filename(filename: str) -> str:
    """Spaces to underscores, strip anything outside ``[\\w\\-.]``, never a dotfile."""
    sanitized = _WHITESPACE.sub("_", filename)
    sanitized = _UNSAFE_CHARS.sub("", sanitized)
    if sanitized.startswith("."):
        sanitized = "file_" + sanitized
    return sanitized


class UploadService:
    def __init__(
        self,
        store: ObjectStore,
        upload: UploadConfig,
        storage: StorageConfig,
        separator: str = "/",
    ) -> None:
        self.store = store
        self._upload = upload
        self._public_domain = storage.public_domain
        self.separator = separator

    async def upload(
        self,
        filename: str,
        body: bytes,
        content_type: str,
        path: str = "",
        *,
        uploaded_by: str | None = None,
        description: str | None = None,
        tags: str | None = None,
    ) -> dict[str, Any]:
        if not filename:
            raise BucketViewError(ErrorCode.INVALID_REQUEST, "No file provided")
        if len(body) > self._upload.max_bytes:
            limit_mb = self._upload.max_bytes // (1024 * 1024)
            raise BucketViewError(
                ErrorCode.CONTENT_TOO_LARGE,
                f"File size exceeds the limit of {limit_mb}MB",
                details={"size": len(body), "max_bytes": self._upload.max_bytes},
            )
        if content_type not in self._upload.allowed_types:
            raise BucketViewError(
                ErrorCode.INVALID_REQUEST, "File type not allowed", details={"type": content_type}
            )

        safe_name = sanitize_filename(filename)
        if not safe_name:
            raise BucketViewError(ErrorCode.INVALID_REQUEST, "Invalid file name")
        if path and not path.endswith(self.separator):
            path += self.separator
        key = path + safe_name

        metadata = {
            "originalFilename": filename,
            "uploadedAt": datetime.now(timezone.utc).isoformat(),
        }
        if uploaded_by:
            metadata["uploadedBy"] = uploaded_by
        if description is not None:
            metadata["description"] = description
        if tags is not None:
            metadata["tags"] = tags

        await self.store.put(key, body, content_type=content_type, metadata=metadata)
        logger.info("upload: stored %s (%d bytes, %s)", key, len(body), content_type)
        return {
            "success": True,
            "path": key,
            "size": len(body),
            "type": content_type,
            "url": f"https://{self._public_domain}/{key}",
        }
