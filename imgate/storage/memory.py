from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from hashlib import md5

from imgate.storage import (
    ByteRange,
    Conditions,
    ListPage,
    ObjectEntry,
    StorageBackend,
    StoredObject,
    paginate,
)


@dataclass
class Object:
    body: bytes
    content_type: str
    etag: str
    last_modified: datetime


@dataclass
class InMemoryBackend(StorageBackend):
    storage: dict[str, Object] = field(default_factory=dict)

    async def put(self, key: str, body: bytes, content_type: str | None = None) -> ObjectEntry:
        self.storage[key] = Object(
            body=body,
            content_type=content_type or "application/octet-stream",
            etag=md5(body).hexdigest(),
            last_modified=datetime.now(timezone.utc),
        )
        return ObjectEntry(key=key, size=len(body))

    async def head(self, key: str) -> StoredObject | None:
        obj = self.storage.get(key)
        if obj is None:
            return None
        return StoredObject(
            key=key,
            size=len(obj.body),
            content_type=obj.content_type,
            etag=obj.etag,
            last_modified=obj.last_modified,
        )

    async def get(
        self,
        key: str,
        range: ByteRange | None = None,
        conditions: Conditions | None = None,
    ) -> StoredObject | None:
        meta = await self.head(key)
        if meta is None:
            return None
        if conditions is not None and not conditions.passes(meta.etag, meta.last_modified):
            return meta
        data = self.storage[key].body
        if range is None:
            return replace(meta, body=data)
        range = range.resolve(meta.size)
        return replace(meta, body=data[range.offset : range.end + 1], range=range)

    async def delete(self, key: str) -> None:
        self.storage.pop(key, None)

    async def list(
        self,
        prefix: str | None = None,
        delimiter: str | None = None,
        cursor: str | None = None,
        limit: int = 1000,
    ) -> ListPage:
        entries = [ObjectEntry(key=key, size=len(obj.body)) for key, obj in self.storage.items()]
        return paginate(entries, prefix, delimiter, cursor, limit)
