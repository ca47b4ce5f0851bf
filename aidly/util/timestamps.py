from datetime import datetime, timezone
from typing import Optional
import re

_DATE_LIKE = re.compile(
    r"^\d{4}-\d{2}-\d{2}([ T]\d{2}:\d{2}(:\d{2}(\.\d+)?)?)?(Z|[+-]\d{2}:?\d{2})?$"
)

def utc_now() -> datetime:
    """Current UTC time as a naive datetime (the database stores naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)

def looks_like_timestamp(value: str) -> bool:
    return bool(_DATE_LIKE.match(value.strip()))

def parse_timestamp(ts: Optional[str]) -> Optional[datetime]:
    """Parse an ISO8601 timestamp (e.g. '2024-10-02T14:05:16.123-0400').

    The offset, if any, is kept as given. Returns None when unparseable.
    """
    if not ts:
        return None
    ts = ts.strip()
    if ts.endswith("Z"):
        ts = ts[:-1] + "+00:00"
    # Normalize offsets like -0400 -> -04:00 for fromisoformat
    if len(ts) >= 5 and (ts[-5] in ['+', '-']) and ts[-3] != ':' and ts[-4:].isdigit():
        ts = ts[:-5] + ts[-5:-2] + ":" + ts[-2:]
    try:
        return datetime.fromisoformat(ts)
    except ValueError:
        pass
    # Try without fractional seconds
    head, sep, tail = ts.partition("T")
    if not sep:
        head, sep, tail = ts.partition(" ")
    if sep and "." in tail:
        clock, rest = tail.split(".", 1)
        offset = ""
        for i, ch in enumerate(rest):
            if ch in ['+', '-']:
                offset = rest[i:]
                break
        try:
            return datetime.fromisoformat(head + "T" + clock + offset)
        except ValueError:
            return None
    return None
