from datetime import timedelta
from email.utils import format_datetime

import pytest

from imgate.storage import ByteRange, Conditions, ObjectEntry, decode_cursor, paginate
from imgate.storage.memory import InMemoryBackend


@pytest.mark.anyio
async def test_get_range(fs: InMemoryBackend) -> None:
    await fs.put("a.png", bytes(range(200)), content_type="image/png")
    obj = await fs.get("a.png", range=ByteRange(offset=10, end=19))
    assert obj is not None
    assert obj.body == bytes(range(10, 20))
    assert obj.size == 200
    assert obj.range == ByteRange(offset=10, end=19)
    assert obj.content_type == "image/png"


@pytest.mark.anyio
async def test_get_missing(fs: InMemoryBackend) -> None:
    assert await fs.get("nope") is None
    assert await fs.head("nope") is None


@pytest.mark.anyio
async def test_if_none_match(fs: InMemoryBackend) -> None:
    await fs.put("a.png", b"data")
    meta = await fs.head("a.png")
    assert meta is not None
    obj = await fs.get("a.png", conditions=Conditions(if_none_match=f'"{meta.etag}"'))
    assert obj is not None and obj.body is None
    obj = await fs.get("a.png", conditions=Conditions(if_none_match='"other"'))
    assert obj is not None and obj.body == b"data"


@pytest.mark.anyio
async def test_if_modified_since(fs: InMemoryBackend) -> None:
    await fs.put("a.png", b"data")
    meta = await fs.head("a.png")
    assert meta is not None
    later = format_datetime(meta.last_modified + timedelta(minutes=1), usegmt=True)
    earlier = format_datetime(meta.last_modified - timedelta(minutes=1), usegmt=True)
    obj = await fs.get("a.png", conditions=Conditions(if_modified_since=later))
    assert obj is not None and obj.body is None
    obj = await fs.get("a.png", conditions=Conditions(if_modified_since=earlier))
    assert obj is not None and obj.body == b"data"


@pytest.mark.anyio
async def test_if_match_mismatch_returns_metadata_only(fs: InMemoryBackend) -> None:
    await fs.put("a.png", b"data")
    obj = await fs.get("a.png", range=ByteRange(offset=0, end=1), conditions=Conditions(if_match='"x"'))
    assert obj is not None
    assert obj.body is None
    assert obj.range is None


@pytest.mark.anyio
async def test_delete_missing_is_noop(fs: InMemoryBackend) -> None:
    await fs.delete("nope")


def entries(*keys: str) -> list[ObjectEntry]:
    return [ObjectEntry(key=key, size=1) for key in keys]


def test_paginate_groups_by_delimiter() -> None:
    page = paginate(entries("b.png", "png/1.png", "png/2.png", "jpg/1.jpg"), None, "/", None, 10)
    assert [e.key for e in page.items] == ["b.png"]
    assert page.prefixes == ["jpg/", "png/"]
    assert not page.truncated
    assert page.cursor is None


def test_paginate_prefix_without_grouping() -> None:
    page = paginate(entries("png/", "png/1.png", "png/sub/2.png", "jpg/1.jpg"), "png/", None, None, 10)
    assert [e.key for e in page.items] == ["png/", "png/1.png", "png/sub/2.png"]
    assert page.prefixes == []


def test_paginate_walks_every_key_once() -> None:
    keys = ["a.png", "b/1.png", "b/2.png", "c.png", "d/1.png", "e.png"]
    seen: list[str] = []
    cursor = None
    pages = 0
    while True:
        page = paginate(entries(*keys), None, "/", cursor, 2)
        pages += 1
        seen += [e.key for e in page.items] + page.prefixes
        assert page.truncated == (page.cursor is not None)
        if not page.truncated:
            break
        cursor = page.cursor
    assert seen == ["a.png", "b/", "c.png", "d/", "e.png"]
    assert pages == 3


def test_paginate_exact_fit_is_not_truncated() -> None:
    page = paginate(entries("a", "b"), None, "/", None, 2)
    assert len(page.items) == 2
    assert not page.truncated


def test_bad_cursor_restarts() -> None:
    assert decode_cursor("%%%") == ""
