import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable, Mapping, Protocol

from imgate.errors import RangeNotSatisfiable


@dataclass(frozen=True)
class ByteRange:
    offset: int
    end: int | None = None

    def resolve(self, size: int) -> "ByteRange":
        """Clamp an open or oversized range to an object of `size` bytes."""
        if self.offset >= size:
            raise RangeNotSatisfiable(size)
        end = size - 1 if self.end is None else min(self.end, size - 1)
        return ByteRange(offset=self.offset, end=end)

    def content_range(self, size: int) -> str:
        return f"bytes {self.offset}-{self.end}/{size}"


def _etags(value: str) -> list[str]:
    tags = []
    for tag in value.split(","):
        tag = tag.strip()
        if tag.startswith("W/"):
            tag = tag[2:]
        tags.append(tag.strip('"'))
    return tags


def _http_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Conditions:
    if_match: str | None = None
    if_none_match: str | None = None
    if_modified_since: str | None = None
    if_unmodified_since: str | None = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "Conditions":
        return cls(
            if_match=headers.get("if-match"),
            if_none_match=headers.get("if-none-match"),
            if_modified_since=headers.get("if-modified-since"),
            if_unmodified_since=headers.get("if-unmodified-since"),
        )

    def to_headers(self) -> dict[str, str]:
        headers = {
            "If-Match": self.if_match,
            "If-None-Match": self.if_none_match,
            "If-Modified-Since": self.if_modified_since,
            "If-Unmodified-Since": self.if_unmodified_since,
        }
        return {name: value for name, value in headers.items() if value}

    def passes(self, etag: str, last_modified: datetime) -> bool:
        """Whether a body should be returned for an object with this etag and mtime.

        A failed precondition of any kind means "return metadata only".
        """
        # HTTP dates have one second resolution
        mtime = last_modified.replace(microsecond=0)
        if self.if_match:
            tags = _etags(self.if_match)
            if "*" not in tags and etag not in tags:
                return False
        else:
            since = _http_date(self.if_unmodified_since)
            if since is not None and mtime > since:
                return False
        if self.if_none_match:
            tags = _etags(self.if_none_match)
            if "*" in tags or etag in tags:
                return False
        else:
            since = _http_date(self.if_modified_since)
            if since is not None and mtime <= since:
                return False
        return True


@dataclass
class StoredObject:
    key: str
    size: int
    content_type: str
    etag: str
    last_modified: datetime
    body: bytes | None = None
    # the range actually honored, resolved against size
    range: ByteRange | None = None


@dataclass
class ObjectEntry:
    key: str
    size: int


@dataclass
class ListPage:
    items: list[ObjectEntry] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)
    cursor: str | None = None

    @property
    def truncated(self) -> bool:
        return self.cursor is not None


def encode_cursor(marker: str) -> str:
    return base64.urlsafe_b64encode(marker.encode()).decode()


def decode_cursor(cursor: str | None) -> str:
    if not cursor:
        return ""
    try:
        return base64.urlsafe_b64decode(cursor.encode()).decode()
    except (binascii.Error, UnicodeDecodeError):
        # an unreadable cursor restarts the listing
        return ""


def paginate(
    entries: Iterable[ObjectEntry],
    prefix: str | None,
    delimiter: str | None,
    cursor: str | None,
    limit: int,
) -> ListPage:
    """Cut one page out of a flat listing.

    Keys sharing a common prefix up to `delimiter` collapse into a single
    entry of `prefixes`; objects and prefixes both count towards `limit`.
    The cursor names the last key or prefix returned.
    """
    prefix = prefix or ""
    start_after = decode_cursor(cursor)
    page = ListPage()
    last = None
    for entry in sorted(entries, key=lambda e: e.key):
        if not entry.key.startswith(prefix) or entry.key <= start_after:
            continue
        common = None
        if delimiter:
            rest = entry.key[len(prefix) :]
            idx = rest.find(delimiter)
            if idx >= 0:
                common = prefix + rest[: idx + len(delimiter)]
                if common == start_after or common in page.prefixes:
                    continue
        if len(page.items) + len(page.prefixes) >= limit:
            page.cursor = encode_cursor(last)
            break
        if common is not None:
            page.prefixes.append(common)
            last = common
        else:
            page.items.append(entry)
            last = entry.key
    return page


class StorageBackend(Protocol):
    async def put(self, key: str, body: bytes, content_type: str | None = None) -> ObjectEntry: ...

    async def get(
        self,
        key: str,
        range: ByteRange | None = None,
        conditions: Conditions | None = None,
    ) -> StoredObject | None: ...

    async def head(self, key: str) -> StoredObject | None: ...

    async def delete(self, key: str) -> None: ...

    async def list(
        self,
        prefix: str | None = None,
        delimiter: str | None = None,
        cursor: str | None = None,
        limit: int = 1000,
    ) -> ListPage: ...
