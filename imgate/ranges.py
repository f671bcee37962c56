import re

from imgate.storage import ByteRange

_RANGE_RE = re.compile(r"^bytes=(\d+)-(\d*)$")


def parse_range(header: str | None) -> ByteRange | None:
    """Parse a single `bytes=<start>-[<end>]` range.

    Anything else (other units, suffix ranges, multiple ranges, an end
    before the start, garbage) means the whole object is served, so it
    comes back as `None` rather than an error.
    """
    if not header:
        return None
    m = _RANGE_RE.match(header.strip().replace(" ", ""))
    if m is None:
        return None
    start = int(m.group(1))
    end = int(m.group(2)) if m.group(2) else None
    if end is not None and end < start:
        return None
    return ByteRange(offset=start, end=end)
