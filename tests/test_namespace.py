"""Tests for folder semantics over the flat object store (namespace.py)."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from bucketview.errors import BucketViewError, ErrorCode
from bucketview.namespace import NamespaceManager
from bucketview.storage.errors import StorageBackendError
from bucketview.storage.memory_store import MemoryObjectStore


async def _seed(store: MemoryObjectStore, *keys: str) -> None:
    for key in keys:
        await store.put(key, f"body of {key}".encode(), content_type="text/plain", metadata={"tags": "x"})


class FlakyStore(MemoryObjectStore):
    """Memory store whose writes or deletes fail for chosen keys."""

    def __init__(self, fail_put: set[str] = frozenset(), fail_delete: set[str] = frozenset(), **kwargs) -> None:
        super().__init__(**kwargs)
        self.fail_put = set(fail_put)
        self.fail_delete = set(fail_delete)

    async def put(self, key, body, *, content_type=None, metadata=None):
        if key in self.fail_put:
            raise StorageBackendError("write refused", key=key)
        return await super().put(key, body, content_type=content_type, metadata=metadata)

    async def delete(self, key):
        if key in self.fail_delete:
            raise StorageBackendError("delete refused", key=key)
        return await super().delete(key)


# --- Tests: path helpers ---

@pytest.mark.parametrize("path,expected", [
    ("", ""),
    ("docs", "docs/"),
    ("docs/", "docs/"),
    ("a/b", "a/b/"),
])
def test_normalize(namespace, path, expected):
    assert namespace.normalize(path) == expected


@pytest.mark.parametrize("path,expected", [
    ("", None),
    ("/", None),
    ("docs/", ""),
    ("docs", ""),
    ("a/b/", "a"),
    ("a/b/c", "a/b"),
])
def test_parent_of(namespace, path, expected):
    assert namespace.parent_of(path) == expected


# --- Tests: list ---

@pytest.mark.asyncio
async def test_docs_scenario(store, namespace):
    await _seed(store, "docs/a.txt", "docs/img/x.png", "readme.md")

    root = await namespace.list("")
    assert [(f.name, f.path) for f in root.folders] == [("docs", "docs/")]
    assert [(f.name, f.path) for f in root.files] == [("readme.md", "readme.md")]
    assert root.parent_folder is None

    docs = await namespace.list("docs")
    assert docs.prefix == "docs/"
    assert [f.name for f in docs.folders] == ["img"]
    assert [f.name for f in docs.files] == ["a.txt"]
    assert docs.parent_folder == ""

    await namespace.rename_folder("docs", "archive")
    assert sorted(store.keys()) == ["archive/a.txt", "archive/img/x.png", "readme.md"]
    assert (await namespace.list("docs")).files == []

    await namespace.delete_folder("archive")
    assert store.keys() == ["readme.md"]


@pytest.mark.asyncio
async def test_list_hides_own_marker(store, namespace):
    await namespace.create_folder("empty")
    listing = await namespace.list("empty/")
    assert listing.folders == []
    assert listing.files == []


@pytest.mark.asyncio
async def test_list_defaults_content_type(store, namespace):
    await store.put("raw.bin", b"\x00")
    listing = await namespace.list("")
    assert listing.files[0].content_type == "application/octet-stream"


@pytest.mark.asyncio
async def test_list_spans_multiple_pages():
    store = MemoryObjectStore(page_size=3)
    manager = NamespaceManager(store)
    files = [f"big/file{i:02d}.txt" for i in range(10)]
    folders = [f"big/sub{i}/x" for i in range(4)]
    await _seed(store, *files, *folders)

    listing = await manager.list("big")
    assert len(listing.files) == 10
    assert [f.name for f in listing.folders] == ["sub0", "sub1", "sub2", "sub3"]


@pytest.mark.asyncio
async def test_listings_partition_every_key(store, namespace):
    keys = ["a.txt", "x/1", "x/2", "x/y/3", "x/y/z/4", "w/5", "x/y/"]
    await _seed(store, *keys)

    files: list[str] = []
    folders: list[str] = []

    async def walk(prefix: str) -> None:
        listing = await namespace.list(prefix)
        files.extend(f.path for f in listing.files)
        for folder in listing.folders:
            folders.append(folder.path)
            await walk(folder.path)

    await walk("")
    # every non-marker key appears exactly once as a file
    assert sorted(files) == sorted(k for k in keys if not k.endswith("/"))
    assert len(files) == len(set(files))
    # the marker is represented by its folder, not as a file
    assert "x/y/" in folders
    assert sorted(folders) == ["w/", "x/", "x/y/", "x/y/z/"]


@pytest.mark.asyncio
async def test_to_response_shape(store, namespace):
    await _seed(store, "docs/a.txt", "docs/img/x.png")
    body = (await namespace.list("docs")).to_response()
    assert body["prefix"] == "docs/"
    assert body["parentFolder"] == ""
    assert body["folders"] == [{"name": "img", "path": "docs/img/", "isFolder": True}]
    file_entry = body["files"][0]
    assert file_entry["name"] == "a.txt"
    assert file_entry["path"] == "docs/a.txt"
    assert file_entry["isFolder"] is False
    assert file_entry["contentType"] == "text/plain"
    assert file_entry["lastModified"]


# --- Tests: create_folder ---

@pytest.mark.asyncio
async def test_create_folder_writes_marker(store):
    fixed = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    manager = NamespaceManager(store, clock=lambda: fixed)
    result = await manager.create_folder("photos/2024")
    assert result == {"path": "photos/2024/"}

    marker = await store.get("photos/2024/")
    assert marker.body == b""
    assert marker.info.custom_metadata == {"isFolder": "true", "createdAt": fixed.isoformat()}

    parent = await manager.list("photos")
    assert [f.name for f in parent.folders] == ["2024"]


@pytest.mark.asyncio
async def test_create_folder_is_idempotent(store, namespace):
    await namespace.create_folder("a")
    await namespace.create_folder("a/")
    assert store.keys() == ["a/"]


@pytest.mark.asyncio
async def test_create_folder_rejects_empty_path(namespace):
    with pytest.raises(BucketViewError) as exc_info:
        await namespace.create_folder("")
    assert exc_info.value.code == ErrorCode.INVALID_REQUEST


# --- Tests: rename_folder ---

@pytest.mark.asyncio
async def test_rename_preserves_body_type_and_metadata(store, namespace):
    await store.put("src/deep/pic.png", b"PNG", content_type="image/png", metadata={"description": "cat"})
    await namespace.create_folder("src/empty")

    report = await namespace.rename_folder("src", "dst")
    assert report.complete
    assert sorted(report.succeeded) == ["src/deep/pic.png", "src/empty/"]

    moved = await store.get("dst/deep/pic.png")
    assert moved.body == b"PNG"
    assert moved.info.content_type == "image/png"
    assert moved.info.custom_metadata == {"description": "cat"}
    assert (await store.get("dst/empty/")).info.custom_metadata["isFolder"] == "true"
    assert [k for k in store.keys() if k.startswith("src/")] == []


@pytest.mark.asyncio
async def test_rename_more_keys_than_concurrency():
    store = MemoryObjectStore(page_size=4)
    manager = NamespaceManager(store, max_concurrency=3)
    keys = [f"old/{i:02d}" for i in range(11)]
    await _seed(store, *keys)
    report = await manager.rename_folder("old", "new")
    assert len(report.succeeded) == 11
    assert store.keys() == [f"new/{i:02d}" for i in range(11)]


@pytest.mark.asyncio
@pytest.mark.parametrize("old,new", [("", "x"), ("x", ""), ("a", "a/"), ("a", "a/b"), ("a/", "a/b/c")])
async def test_rename_rejects_invalid_paths(store, namespace, old, new):
    await _seed(store, "a/file")
    with pytest.raises(BucketViewError) as exc_info:
        await namespace.rename_folder(old, new)
    assert exc_info.value.code == ErrorCode.INVALID_REQUEST
    assert store.keys() == ["a/file"]


@pytest.mark.asyncio
async def test_rename_sibling_with_shared_prefix_is_allowed(store, namespace):
    await _seed(store, "a/file")
    report = await namespace.rename_folder("a", "ab")
    assert report.complete
    assert store.keys() == ["ab/file"]


@pytest.mark.asyncio
async def test_rename_failed_write_keeps_original():
    store = FlakyStore(fail_put={"new/2"})
    await _seed(store, "old/1", "old/2", "old/3")
    report = await NamespaceManager(store).rename_folder("old", "new")

    assert not report.complete
    assert [f.key for f in report.failed] == ["old/2"]
    assert "write refused" in report.failed[0].error
    assert sorted(report.succeeded) == ["old/1", "old/3"]
    # original of the failed key survives; nothing rolled back
    assert sorted(store.keys()) == ["new/1", "new/3", "old/2"]


@pytest.mark.asyncio
async def test_rename_failed_delete_leaves_both_copies():
    store = FlakyStore(fail_delete={"old/1"})
    await _seed(store, "old/1")
    report = await NamespaceManager(store).rename_folder("old", "new")
    assert [f.key for f in report.failed] == ["old/1"]
    assert sorted(store.keys()) == ["new/1", "old/1"]


@pytest.mark.asyncio
async def test_rename_missing_folder_is_empty_report(namespace):
    report = await namespace.rename_folder("ghost", "new")
    assert report.complete
    assert report.succeeded == []


# --- Tests: delete_folder ---

@pytest.mark.asyncio
async def test_delete_folder_removes_subtree_only(store, namespace):
    await _seed(store, "p/1", "p/q/2", "p/", "pq/3", "other")
    report = await namespace.delete_folder("p")
    assert report.complete
    assert sorted(report.succeeded) == ["p/", "p/1", "p/q/2"]
    assert store.keys() == ["other", "pq/3"]
    listing = await namespace.list("p")
    assert listing.files == [] and listing.folders == []


@pytest.mark.asyncio
async def test_delete_folder_collects_failures():
    store = FlakyStore(fail_delete={"p/2"})
    await _seed(store, "p/1", "p/2")
    report = await NamespaceManager(store).delete_folder("p")
    assert not report.complete
    assert report.to_response()["deleted"] is False
    with pytest.raises(BucketViewError) as exc_info:
        report.raise_for_failures()
    assert exc_info.value.code == ErrorCode.PARTIAL_FAILURE
    assert exc_info.value.status_code == 500
    assert exc_info.value.details["failed"][0]["key"] == "p/2"


@pytest.mark.asyncio
async def test_delete_folder_rejects_empty_path(store, namespace):
    await _seed(store, "keep")
    with pytest.raises(BucketViewError):
        await namespace.delete_folder("")
    assert store.keys() == ["keep"]


@pytest.mark.asyncio
async def test_iter_keys_is_lazy_over_pages():
    store = MemoryObjectStore(page_size=2)
    await _seed(store, "k/1", "k/2", "k/3")
    manager = NamespaceManager(store)
    keys = [k async for k in manager.iter_keys("k/")]
    assert keys == ["k/1", "k/2", "k/3"]


@pytest.mark.asyncio
async def test_nested_rename_empties_parent_folder_list(store, namespace):
    await store.put("docs/readme.txt", b"x" * 10, content_type="text/plain")
    await store.put("docs/img/photo.jpg", b"j" * 500, content_type="image/jpeg")

    docs = await namespace.list("docs/")
    assert [(f.name, f.path) for f in docs.folders] == [("img", "docs/img/")]
    assert [(f.name, f.size) for f in docs.files] == [("readme.txt", 10)]

    report = await namespace.rename_folder("docs/img/", "assets/img/")
    assert report.complete

    docs = await namespace.list("docs/")
    assert docs.folders == []
    assert [(f.name, f.size) for f in docs.files] == [("readme.txt", 10)]

    img = await namespace.list("assets/img/")
    assert [(f.name, f.size, f.content_type) for f in img.files] == [("photo.jpg", 500, "image/jpeg")]
    assert img.parent_folder == "assets"


async def _walk(namespace: NamespaceManager, root: str) -> set[tuple[str, int, str]]:
    """(path relative to root, size, content type) of every file below root, via list()."""
    root = namespace.normalize(root)
    found: set[tuple[str, int, str]] = set()
    pending = [root]
    while pending:
        listing = await namespace.list(pending.pop())
        pending.extend(f.path for f in listing.folders)
        found.update((f.path[len(root):], f.size, f.content_type) for f in listing.files)
    return found


@pytest.mark.asyncio
async def test_rename_preserves_tree_as_seen_by_list(store, namespace):
    await store.put("a/one.txt", b"1", content_type="text/plain")
    await store.put("a/sub/two.png", b"22", content_type="image/png")
    await store.put("a/sub/deeper/three.pdf", b"333", content_type="application/pdf")
    await store.put("a/raw.bin", b"4444")
    before = await _walk(namespace, "a")

    await namespace.rename_folder("a", "b")

    assert await _walk(namespace, "b") == before
    assert await _walk(namespace, "a") == set()
    assert ("sub/deeper/three.pdf", 3, "application/pdf") in before
