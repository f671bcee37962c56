from imgate.config import Config
from imgate.schemas import ListResult, ObjectItem
from imgate.storage import StorageBackend

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
GROUPING_DELIMITER = "/"


def clamp_limit(limit: int | None) -> int:
    if not limit or limit <= 0:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def object_item(key: str, size: int, config: Config) -> ObjectItem:
    return ObjectItem(
        key=key,
        size=size,
        url=f"{config.url_prefix}/{key}",
        external_url=f"{config.public_base_url}/{key}",
    )


async def list_objects(
    fs: StorageBackend,
    config: Config,
    delimiter: str | None = None,
    cursor: str | None = None,
    limit: int | None = None,
) -> ListResult:
    """List one page of objects.

    `/` groups keys into folders. Any other delimiter is taken as a
    literal key prefix to browse under, without grouping.
    """
    delimiter = delimiter or GROUPING_DELIMITER
    if delimiter == GROUPING_DELIMITER:
        prefix, group_by = None, GROUPING_DELIMITER
    else:
        prefix, group_by = delimiter, None
    page = await fs.list(
        prefix=prefix,
        delimiter=group_by,
        cursor=cursor or None,
        limit=clamp_limit(limit),
    )
    return ListResult(
        items=[object_item(entry.key, entry.size, config) for entry in page.items],
        prefixes=page.prefixes,
        cursor=page.cursor,
        truncated=page.truncated,
    )
