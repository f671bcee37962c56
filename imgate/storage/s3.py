from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from aioaws.core import RequestError
from aioaws.s3 import S3Client, S3Config
from httpx import AsyncClient, HTTPError, Response

from imgate.errors import RangeNotSatisfiable, StoreError
from imgate.storage import (
    ByteRange,
    Conditions,
    ListPage,
    ObjectEntry,
    StorageBackend,
    StoredObject,
    paginate,
)

logger = logging.getLogger(__name__)


def _metadata(key: str, response: Response, size: int) -> StoredObject:
    last_modified = response.headers.get("Last-Modified")
    return StoredObject(
        key=key,
        size=size,
        content_type=response.headers.get("Content-Type", "application/octet-stream"),
        etag=response.headers.get("ETag", "").strip('"'),
        last_modified=(
            parsedate_to_datetime(last_modified) if last_modified else datetime.now(timezone.utc)
        ),
    )


def _parse_content_range(value: str) -> tuple[ByteRange | None, int]:
    # "bytes 0-99/200" or "bytes */200"
    bounds, total = value.split(" ", 1)[1].split("/")
    if bounds == "*":
        return None, int(total)
    start, end = bounds.split("-")
    return ByteRange(offset=int(start), end=int(end)), int(total)


@dataclass
class S3Storage(StorageBackend):
    client: AsyncClient
    bucket: str
    access_key_id: str
    access_key_secret: str
    region: str
    endpoint: str | None

    @classmethod
    @asynccontextmanager
    async def connect(
        cls,
        bucket: str,
        access_key_id: str,
        access_key_secret: str,
        region: str,
        endpoint: str | None = None,
    ) -> AsyncIterator[S3Storage]:
        async with AsyncClient() as client:
            try:
                yield cls(client, bucket, access_key_id, access_key_secret, region, endpoint)
            finally:
                await client.aclose()

    def _get_client(self) -> S3Client:
        return S3Client(
            self.client,
            S3Config(
                aws_access_key=self.access_key_id,
                aws_secret_key=self.access_key_secret,
                aws_region=self.region,
                aws_s3_bucket=self.bucket,
                aws_host=self.endpoint,
            ),
        )

    async def put(self, key: str, body: bytes, content_type: str | None = None) -> ObjectEntry:
        client = self._get_client()
        try:
            await client.upload(key, body, content_type=content_type)
        except (RequestError, HTTPError) as e:
            logger.warning("put %s failed: %s", key, e)
            raise StoreError(f"put {key} failed") from e
        return ObjectEntry(key=key, size=len(body))

    async def get(
        self,
        key: str,
        range: ByteRange | None = None,
        conditions: Conditions | None = None,
    ) -> StoredObject | None:
        client = self._get_client()
        url = client.signed_download_url(key, method="GET")
        headers = conditions.to_headers() if conditions is not None else {}
        if range is not None:
            headers["Range"] = f"bytes={range.offset}-{'' if range.end is None else range.end}"
        try:
            response = await self.client.get(url, headers=headers)
        except HTTPError as e:
            raise StoreError(f"get {key} failed") from e
        if response.status_code == 404:
            return None
        if response.status_code in (304, 412):
            # preconditions failed, hand back metadata only
            return await self.head(key)
        if response.status_code == 416:
            _, total = _parse_content_range(response.headers.get("Content-Range", "bytes */0"))
            raise RangeNotSatisfiable(total)
        if response.status_code not in (200, 206):
            raise StoreError(f"get {key} failed with status {response.status_code}")
        honored = None
        total = len(response.content)
        resp_range = response.headers.get("Content-Range")
        if response.status_code == 206 and resp_range:
            honored, total = _parse_content_range(resp_range)
        obj = _metadata(key, response, total)
        obj.body = response.content
        obj.range = honored
        return obj

    async def head(self, key: str) -> StoredObject | None:
        client = self._get_client()
        url = client.signed_download_url(key, method="HEAD")
        try:
            response = await self.client.head(url)
        except HTTPError as e:
            raise StoreError(f"head {key} failed") from e
        if response.status_code == 404:
            return None
        if response.is_error:
            raise StoreError(f"head {key} failed with status {response.status_code}")
        return _metadata(key, response, int(response.headers["Content-Length"]))

    async def delete(self, key: str) -> None:
        client = self._get_client()
        try:
            await client.delete(key)
        except (RequestError, HTTPError) as e:
            raise StoreError(f"delete {key} failed") from e

    async def list(
        self,
        prefix: str | None = None,
        delimiter: str | None = None,
        cursor: str | None = None,
        limit: int = 1000,
    ) -> ListPage:
        client = self._get_client()
        # TODO: push delimiter and start-after down into ListObjectsV2 instead of
        # walking every key under the prefix
        try:
            entries = [
                ObjectEntry(key=obj.key, size=obj.size)
                async for obj in client.list(prefix=prefix)
            ]
        except (RequestError, HTTPError) as e:
            raise StoreError("list failed") from e
        return paginate(entries, prefix, delimiter, cursor, limit)
