"""S3-compatible object store (AWS S3, Cloudflare R2, MinIO).

boto3 is synchronous, so every call is pushed onto a dedicated thread pool
and awaited from the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from bucketview.storage.errors import ObjectNotFoundError, StorageBackendError
from bucketview.storage.models import ListPage, ObjectInfo, StoredObject
from bucketview.storage.object_store import DEFAULT_PAGE_SIZE, ObjectStore

logger = logging.getLogger("bucketview.storage.s3")

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class S3ObjectStore(ObjectStore):
    """Object store over the S3 API."""

    def __init__(
        self,
        bucket: str,
        *,
        endpoint_url: str | None = None,
        region: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        executor_max_workers: int = 8,
        client: Any = None,
    ) -> None:
        self.bucket = bucket
        self.page_size = page_size
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )
        self._executor = ThreadPoolExecutor(max_workers=executor_max_workers)

    @property
    def backend_name(self) -> str:
        return "s3"

    async def _call(self, fn: Callable[..., Any], key: str | None = None, **kwargs: Any) -> Any:
        """Run a boto3 call on the executor and translate its errors."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, lambda: fn(**kwargs))
        except ClientError as exc:
            error = exc.response.get("Error", {})
            code = str(error.get("Code", ""))
            if code in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(key=key) from exc
            raise StorageBackendError(
                f"S3 {code or 'error'}: {error.get('Message', exc)}", key=key, cause=exc
            ) from exc
        except BotoCoreError as exc:
            raise StorageBackendError(str(exc), key=key, cause=exc) from exc

    async def list_page(
        self,
        prefix: str = "",
        *,
        delimiter: str | None = None,
        continuation_token: str | None = None,
        max_keys: int | None = None,
    ) -> ListPage:
        params: dict[str, Any] = {
            "Bucket": self.bucket,
            "Prefix": prefix,
            "MaxKeys": max_keys or self.page_size,
        }
        if delimiter:
            params["Delimiter"] = delimiter
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        resp = await self._call(self._client.list_objects_v2, **params)
        objects = [
            ObjectInfo(
                key=item["Key"],
                size=item.get("Size", 0),
                last_modified=item.get("LastModified"),
                etag=(item.get("ETag") or "").strip('"') or None,
            )
            for item in resp.get("Contents", [])
        ]
        prefixes = [p["Prefix"] for p in resp.get("CommonPrefixes", [])]
        next_token = resp.get("NextContinuationToken") if resp.get("IsTruncated") else None
        return ListPage(objects=objects, common_prefixes=prefixes, next_token=next_token)

    async def head(self, key: str) -> ObjectInfo:
        resp = await self._call(self._client.head_object, key=key, Bucket=self.bucket, Key=key)
        return self._info_from_response(key, resp)

    async def get(self, key: str) -> StoredObject:
        def _get_body() -> tuple[dict, bytes]:
            resp = self._client.get_object(Bucket=self.bucket, Key=key)
            return resp, resp["Body"].read()

        resp, body = await self._call(_get_body, key=key)
        return StoredObject(info=self._info_from_response(key, resp), body=body)

    async def put(
        self,
        key: str,
        body: bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ObjectInfo:
        params: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": body,
            "Metadata": dict(metadata or {}),
        }
        if content_type:
            params["ContentType"] = content_type
        resp = await self._call(self._client.put_object, key=key, **params)
        logger.debug("s3: put %s (%d bytes)", key, len(body))
        return ObjectInfo(
            key=key,
            size=len(body),
            content_type=content_type,
            etag=(resp.get("ETag") or "").strip('"') or None,
            custom_metadata=dict(metadata or {}),
        )

    async def delete(self, key: str) -> None:
        # S3 DeleteObject succeeds for absent keys
        await self._call(self._client.delete_object, key=key, Bucket=self.bucket, Key=key)

    async def close(self) -> None:
        self._executor.shutdown(wait=False)

    @staticmethod
    def _info_from_response(key: str, resp: dict) -> ObjectInfo:
        return ObjectInfo(
            key=key,
            size=resp.get("ContentLength", 0),
            last_modified=resp.get("LastModified"),
            content_type=resp.get("ContentType"),
            etag=(resp.get("ETag") or "").strip('"') or None,
            custom_metadata=dict(resp.get("Metadata") or {}),
        )
