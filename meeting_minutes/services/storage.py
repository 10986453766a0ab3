import asyncio
import os
import time
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from meeting_minutes.core.config import MAX_UPLOAD_BYTES, UPLOAD_DIR
from meeting_minutes.services.validation import too_large_error

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


def generate_upload_filename(original_filename: Optional[str] = None) -> str:
    """
    Unique on-disk name for one upload

    Examples:
        >>> generate_upload_filename("meeting.webm")  # doctest: +SKIP
        '1739538123456-3f9c0a1b2d4e.webm'
    """
    ext = os.path.splitext(original_filename or "")[1].lower()
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}{ext}"


def delete_upload(path: str) -> bool:
    """
    Delete a temporary upload

    Failures are logged, never raised, so they cannot mask the error
    that is already being reported for the request.

    Returns:
        True if the file is gone afterwards
    """
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning("upload_cleanup_failed", path=path, error=str(e))
        return False


@contextmanager
def temporary_upload(
    original_filename: Optional[str] = None,
    directory: Optional[str] = None,
) -> Iterator[str]:
    """
    Reserve a fresh path under the upload directory and delete whatever
    is written there when the block exits, however it exits.
    """
    directory = directory or UPLOAD_DIR
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, generate_upload_filename(original_filename))
    try:
        yield path
    finally:
        delete_upload(path)


async def save_upload(stream, path: str, max_bytes: int = MAX_UPLOAD_BYTES) -> int:
    """
    Copy an uploaded file to `path` chunk by chunk.

    Stops with a ValidationError as soon as more than `max_bytes` have
    been received. The caller owns `path` and deletes it. Disk writes run
    in a worker thread so the event loop keeps serving other requests.

    Returns:
        Number of bytes written
    """
    written = 0
    out = await asyncio.to_thread(open, path, "wb")
    try:
        while True:
            chunk = await stream.read(CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > max_bytes:
                raise too_large_error(max_bytes)
            await asyncio.to_thread(out.write, chunk)
    finally:
        out.close()
    return written


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


async def read_upload(path: str) -> bytes:
    return await asyncio.to_thread(_read_file, path)
