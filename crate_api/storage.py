"""
Blob store for crate content.

Each crate's bytes live in a single file at <files dir>/<crate id>/content.
The directory is resolved at call time so tests and deployments can point
``database.FILES_DIR`` elsewhere.
"""

import logging

from . import database as db
from .errors import ContentUnavailable
from .models import Crate
from .utils import CRATE_ID_PATTERN

logger = logging.getLogger(__name__)

CONTENT_FILE = "content"


def _content_path(crate_id: str):
    # Crate IDs become directory names, so refuse anything path-like.
    if not CRATE_ID_PATTERN.fullmatch(crate_id):
        raise ValueError(f"Invalid crate ID: {crate_id!r}")
    return db.FILES_DIR / crate_id / CONTENT_FILE


def write_content(crate_id: str, data: bytes) -> int:
    """Store *data* as the content of *crate_id*. Returns the number of bytes written."""
    path = _content_path(crate_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return len(data)


async def get_crate_content(crate_id: str) -> tuple[bytes, Crate]:
    """Read the content of a crate together with a fresh copy of its metadata record.

    Raises ``ContentUnavailable`` if the blob is missing or the record vanished
    since the caller last looked it up.
    """
    path = _content_path(crate_id)
    try:
        buffer = path.read_bytes()
    except FileNotFoundError:
        raise ContentUnavailable(crate_id, "blob not found")

    crate = await db.get_crate_metadata(crate_id)
    if crate is None:
        raise ContentUnavailable(crate_id, "metadata record vanished")

    logger.debug("Read %d bytes for crate %s", len(buffer), crate_id)
    return buffer, crate
