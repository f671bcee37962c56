import logging
import secrets
from dataclasses import dataclass
from time import time
from typing import Sequence

import anyio

from imgate.config import Config
from imgate.listing import object_item
from imgate.schemas import ObjectRef, UploadResult
from imgate.storage import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class UploadItem:
    content_type: str | None
    body: bytes
    size: int
    filename: str | None = None


def object_key(extension: str, now: float | None = None) -> str:
    """`<ext>/<unix ms>-<random>.<ext>`; the random part keeps same-millisecond uploads apart."""
    millis = int((time() if now is None else now) * 1000)
    return f"{extension}/{millis}-{secrets.token_hex(6)}.{extension}"


async def _upload_one(fs: StorageBackend, item: UploadItem, config: Config) -> ObjectRef | str:
    extension = config.allowed_types.get(item.content_type or "")
    if extension is None:
        logger.info("rejected upload %s of type %s", item.filename, item.content_type)
        return f"{item.content_type or 'unknown type'} not supported."
    if config.max_upload_bytes and item.size > config.max_upload_bytes:
        return f"{item.filename}: exceeds {config.max_upload_bytes} bytes."
    key = object_key(extension)
    try:
        entry = await fs.put(key, item.body, content_type=item.content_type)
    except Exception:
        logger.exception("upload of %s to %s failed", item.filename, key)
        return f"{item.filename}: upload failed."
    listed = object_item(entry.key, entry.size, config)
    return ObjectRef(
        **listed.model_dump(),
        content_type=item.content_type,
        filename=item.filename,
    )


async def upload_items(fs: StorageBackend, items: Sequence[UploadItem], config: Config) -> UploadResult:
    """Store every accepted item; one bad item never fails the batch."""
    results: list[ObjectRef | str | None] = [None] * len(items)

    async def run(index: int, item: UploadItem) -> None:
        results[index] = await _upload_one(fs, item, config)

    async with anyio.create_task_group() as tg:
        for index, item in enumerate(items):
            tg.start_soon(run, index, item)

    result = UploadResult()
    for outcome in results:
        if isinstance(outcome, ObjectRef):
            result.accepted.append(outcome)
        elif outcome is not None:
            result.errors.append(outcome)
    return result
