from dataclasses import dataclass, field
from email.utils import format_datetime

from imgate.errors import NotFound
from imgate.ranges import parse_range
from imgate.storage import Conditions, StorageBackend, StoredObject


@dataclass
class ServeResult:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None


def object_headers(obj: StoredObject, cache_control: str | None = None) -> dict[str, str]:
    headers = {
        "Content-Type": obj.content_type,
        "ETag": f'"{obj.etag}"',
        "Last-Modified": format_datetime(obj.last_modified, usegmt=True),
        "Accept-Ranges": "bytes",
    }
    if cache_control:
        headers["Cache-Control"] = cache_control
    return headers


async def serve_object(
    fs: StorageBackend,
    key: str,
    range_header: str | None = None,
    conditions: Conditions | None = None,
    cache_control: str | None = None,
) -> ServeResult:
    """Resolve `key` to a 200, 206 or 304 response.

    The store decides whether conditions and ranges are honored, a range
    only applies when a body comes back.
    """
    range = parse_range(range_header)
    obj = await fs.get(key, range=range, conditions=conditions)
    if obj is None:
        raise NotFound(f"{key} not found")
    headers = object_headers(obj, cache_control)
    if obj.body is None:
        return ServeResult(status=304, headers=headers)
    if obj.range is not None:
        headers["Content-Range"] = obj.range.content_range(obj.size)
        return ServeResult(status=206, headers=headers, body=obj.body)
    return ServeResult(status=200, headers=headers, body=obj.body)


async def head_object(fs: StorageBackend, key: str, cache_control: str | None = None) -> ServeResult:
    obj = await fs.head(key)
    if obj is None:
        raise NotFound(f"{key} not found")
    headers = object_headers(obj, cache_control)
    headers["Content-Length"] = str(obj.size)
    return ServeResult(status=200, headers=headers)
