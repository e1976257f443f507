"""Object storage data models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ObjectInfo(BaseModel):
    """Metadata for one object as reported by a listing or a HEAD.

    Listings from S3-compatible stores carry no content type or custom
    metadata; those fields are only reliable after ``head()``/``get()``.
    """

    key: str
    size: int = 0
    last_modified: datetime | None = None
    content_type: str | None = None
    etag: str | None = None
    custom_metadata: dict[str, str] = Field(default_factory=dict)


class StoredObject(BaseModel):
    """An object with its metadata and full body."""

    info: ObjectInfo
    body: bytes


class ListPage(BaseModel):
    """One page of a (possibly delimited) prefix listing."""

    objects: list[ObjectInfo] = Field(default_factory=list)
    common_prefixes: list[str] = Field(default_factory=list)
    next_token: str | None = None

    @property
    def truncated(self) -> bool:
        return self.next_token is not None
