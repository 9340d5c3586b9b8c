import re
from datetime import datetime, timezone
from urllib.parse import quote

# Characters left unescaped by JavaScript's encodeURIComponent, which browsers expect
# in the filename parameter of a Content-Disposition header.
_URI_COMPONENT_SAFE = "-_.!~*'()"

# Crate IDs are opaque, but restrict them to URL/path-safe characters so they can
# never escape the blob directory.
CRATE_ID_PATTERN = re.compile(r'[A-Za-z0-9_-]{1,128}')


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def content_disposition(title: str) -> str:
    """Build an ``inline`` Content-Disposition header value for *title*.

    Examples:
        "report.pdf" -> 'inline; filename="report.pdf"'
        "my notes.txt" -> 'inline; filename="my%20notes.txt"'
    """
    return f'inline; filename="{quote(title or "", safe=_URI_COMPONENT_SAFE)}"'


def format_time(seconds: int) -> str:
    """Format seconds into human-readable time string"""
    seconds = max(0, int(seconds))
    d, r = divmod(seconds, 86400)
    h, r = divmod(r, 3600)
    m, s = divmod(r, 60)
    return f"{d} days, {h} hours, {m} minutes, {s} seconds"
