import re
from dataclasses import dataclass, field

import anyio
import pytest

from imgate.config import Config
from imgate.errors import StoreError
from imgate.storage import ObjectEntry
from imgate.storage.memory import InMemoryBackend
from imgate.upload import UploadItem, object_key, upload_items


def item(content_type: str | None, filename: str, body: bytes = b"\x89PNG") -> UploadItem:
    return UploadItem(content_type=content_type, body=body, size=len(body), filename=filename)


@dataclass
class SlowBackend(InMemoryBackend):
    """The leading digit of a body is its delay in 20ms steps."""

    completed: list[bytes] = field(default_factory=list)

    async def put(self, key: str, body: bytes, content_type: str | None = None) -> ObjectEntry:
        await anyio.sleep(int(body[:1]) * 0.02)
        self.completed.append(body)
        return await super().put(key, body, content_type)


class FlakyBackend(InMemoryBackend):
    async def put(self, key: str, body: bytes, content_type: str | None = None) -> ObjectEntry:
        if body == b"boom":
            raise StoreError("bucket unavailable")
        if body == b"crash":
            raise RuntimeError("unexpected backend failure")
        return await super().put(key, body, content_type)


def test_object_key_shape() -> None:
    key = object_key("png", now=1_700_000_000.123)
    assert re.fullmatch(r"png/1700000000123-[0-9a-f]{12}\.png", key)


def test_object_keys_differ_within_a_millisecond() -> None:
    keys = {object_key("jpg", now=1.0) for _ in range(100)}
    assert len(keys) == 100


@pytest.mark.anyio
async def test_partial_batch(fs: InMemoryBackend, config: Config) -> None:
    result = await upload_items(
        fs,
        [
            item("image/png", "one.png", b"first"),
            item("text/plain", "notes.txt"),
            item("image/jpeg", "two.jpg", b"second"),
        ],
        config,
    )
    assert [ref.filename for ref in result.accepted] == ["one.png", "two.jpg"]
    assert result.errors == ["text/plain not supported."]
    first, second = result.accepted
    assert first.key.startswith("png/") and first.key.endswith(".png")
    assert second.key.startswith("jpg/")
    assert first.size == 5
    assert first.url == f"/rest/{first.key}"
    assert first.external_url == f"https://img.example.com/{first.key}"
    stored = await fs.get(second.key)
    assert stored is not None
    assert stored.body == b"second"
    assert stored.content_type == "image/jpeg"


@pytest.mark.anyio
async def test_store_failure_is_per_item(config: Config) -> None:
    fs = FlakyBackend()
    result = await upload_items(
        fs,
        [item("image/png", "a.png"), item("image/png", "b.png", b"boom"), item("image/gif", "c.gif")],
        config,
    )
    assert [ref.filename for ref in result.accepted] == ["a.png", "c.gif"]
    assert result.errors == ["b.png: upload failed."]
    assert len(fs.storage) == 2


@pytest.mark.anyio
async def test_missing_content_type_rejected(fs: InMemoryBackend, config: Config) -> None:
    result = await upload_items(fs, [item(None, "mystery")], config)
    assert result.accepted == []
    assert result.errors == ["unknown type not supported."]


@pytest.mark.anyio
async def test_oversize_rejected(fs: InMemoryBackend) -> None:
    config = Config(max_upload_bytes=3)
    result = await upload_items(fs, [item("image/png", "big.png", b"12345")], config)
    assert result.accepted == []
    assert result.errors == ["big.png: exceeds 3 bytes."]
    assert fs.storage == {}


@pytest.mark.anyio
async def test_unexpected_backend_error_is_per_item(config: Config) -> None:
    result = await upload_items(
        FlakyBackend(),
        [item("image/png", "a.png"), item("image/png", "b.png", b"crash"), item("image/png", "c.png")],
        config,
    )
    assert [ref.filename for ref in result.accepted] == ["a.png", "c.png"]
    assert result.errors == ["b.png: upload failed."]


@pytest.mark.anyio
async def test_order_survives_out_of_order_completion(config: Config) -> None:
    fs = SlowBackend()
    result = await upload_items(
        fs,
        [
            item("image/png", "first.png", b"5-first"),
            item("text/plain", "a.txt", b"4"),
            item("image/png", "second.png", b"3-second"),
            item("text/html", "b.html", b"2"),
            item("image/png", "third.png", b"0-third"),
        ],
        config,
    )
    assert [ref.filename for ref in result.accepted] == ["first.png", "second.png", "third.png"]
    assert result.errors == ["text/plain not supported.", "text/html not supported."]
    assert fs.completed == [b"0-third", b"3-second", b"5-first"]
