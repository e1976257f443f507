"""Tests for validated uploads (upload.py)."""

from __future__ import annotations

import pytest

from bucketview.config import StorageConfig, UploadConfig
from bucketview.errors import BucketViewError, ErrorCode
from bucketview.upload import UploadService, sanitize_filename


@pytest.fixture
def uploads(store) -> UploadService:
    return UploadService(store, UploadConfig(max_bytes=1024), StorageConfig(public_domain="files.example.com"))


@pytest.mark.parametrize("raw,expected", [
    ("my photo.png", "my_photo.png"),
    ("a  b\tc.txt", "a_b_c.txt"),
    ("we!rd#na$me.pdf", "werdname.pdf"),
    (".env", "file_.env"),
    ("../../etc/passwd", "file_....etcpasswd"),
    ("résumé.pdf", "résumé.pdf"),
])
def test_sanitize_filename(raw, expected):
    assert sanitize_filename(raw) == expected


@pytest.mark.asyncio
async def test_upload_stores_object_with_metadata(store, uploads):
    result = await uploads.upload(
        "cat pic.png", b"PNGDATA", "image/png", "photos",
        uploaded_by="alice@example.com", description="a cat", tags="cats,pets",
    )
    assert result == {
        "success": True,
        "path": "photos/cat_pic.png",
        "size": 7,
        "type": "image/png",
        "url": "https://files.example.com/photos/cat_pic.png",
    }
    obj = await store.get("photos/cat_pic.png")
    assert obj.body == b"PNGDATA"
    assert obj.info.content_type == "image/png"
    meta = obj.info.custom_metadata
    assert meta["originalFilename"] == "cat pic.png"
    assert meta["uploadedBy"] == "alice@example.com"
    assert meta["description"] == "a cat"
    assert meta["tags"] == "cats,pets"
    assert meta["uploadedAt"]


@pytest.mark.asyncio
async def test_upload_to_root(store, uploads):
    result = await uploads.upload("notes.txt", b"hi", "text/plain")
    assert result["path"] == "notes.txt"
    assert "description" not in (await store.head("notes.txt")).custom_metadata


@pytest.mark.asyncio
async def test_upload_too_large(store, uploads):
    with pytest.raises(BucketViewError) as exc_info:
        await uploads.upload("big.txt", b"x" * 1025, "text/plain")
    assert exc_info.value.code == ErrorCode.CONTENT_TOO_LARGE
    assert exc_info.value.status_code == 413
    assert store.keys() == []


@pytest.mark.asyncio
async def test_upload_exactly_at_limit(uploads):
    result = await uploads.upload("edge.txt", b"x" * 1024, "text/plain")
    assert result["size"] == 1024


@pytest.mark.asyncio
async def test_upload_disallowed_type(store, uploads):
    with pytest.raises(BucketViewError) as exc_info:
        await uploads.upload("run.sh", b"#!/bin/sh", "application/x-sh")
    assert exc_info.value.code == ErrorCode.INVALID_REQUEST
    assert exc_info.value.message == "File type not allowed"


@pytest.mark.asyncio
async def test_upload_name_that_sanitizes_to_nothing(uploads):
    with pytest.raises(BucketViewError):
        await uploads.upload("!!!", b"x", "text/plain")
