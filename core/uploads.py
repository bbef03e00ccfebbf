"""
Upload intake: image allow-list and temporary staging.

An incoming file is checked against the allow-list by extension and
declared content type, then streamed into a temporary file. The staged
file is deleted exactly once when the staging context exits, whatever
happened inside it.
"""

import asyncio
import os
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional, Protocol

from core.config import Settings
from core.errors import InvalidUpload
from core.logging import get_logger


logger = get_logger(__name__)

ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})
ALLOWED_CONTENT_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
})
CHUNK_SIZE = 64 * 1024


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


class _BytesReader:
    def __init__(self, data: bytes):
        self._data = data
        self._offset = 0

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data) - self._offset
        chunk = self._data[self._offset:self._offset + size]
        self._offset += len(chunk)
        return chunk


@dataclass
class IncomingFile:
    """A file supplied with a create/update request."""
    filename: str
    content_type: Optional[str]
    stream: AsyncReadable

    @classmethod
    def from_bytes(
        cls,
        filename: str,
        content_type: Optional[str],
        data: bytes,
    ) -> "IncomingFile":
        return cls(filename=filename, content_type=content_type, stream=_BytesReader(data))


@dataclass
class StagedUpload:
    """A validated upload sitting in a temporary file."""
    path: Path
    original_name: str
    content_type: Optional[str]
    size: int

    async def read_bytes(self) -> bytes:
        return await asyncio.to_thread(self.path.read_bytes)


def validate_image_type(incoming: IncomingFile) -> None:
    """Reject anything that is not an allow-listed image by extension and declared type."""
    extension = Path(incoming.filename or "").suffix.lower()
    content_type = (incoming.content_type or "").lower()

    if extension not in ALLOWED_EXTENSIONS or content_type not in ALLOWED_CONTENT_TYPES:
        raise InvalidUpload("Only image files are allowed!")


@asynccontextmanager
async def stage_upload(incoming: IncomingFile, settings: Settings) -> AsyncIterator[StagedUpload]:
    """
    Validate and stage an upload in a temporary file.

    The size limit is enforced while streaming, so an oversized upload is
    rejected after staging has begun; the temporary file is removed in
    that case too.

    Usage:
        async with stage_upload(incoming, settings) as staged:
            data = await staged.read_bytes()
            ...
        # staged.path no longer exists here
    """
    validate_image_type(incoming)

    staging_dir = settings.upload_staging_dir
    if staging_dir:
        Path(staging_dir).mkdir(parents=True, exist_ok=True)

    fd, raw_path = tempfile.mkstemp(
        prefix="upload-",
        suffix=Path(incoming.filename).suffix.lower(),
        dir=staging_dir,
    )
    path = Path(raw_path)

    try:
        with os.fdopen(fd, "wb") as handle:
            size = await _copy_limited(incoming.stream, handle, settings.max_upload_bytes)

        logger.debug("Upload staged", path=str(path), size=size, name=incoming.filename)
        yield StagedUpload(
            path=path,
            original_name=Path(incoming.filename).name,
            content_type=incoming.content_type,
            size=size,
        )
    finally:
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            logger.warning("Failed to remove staged upload", path=str(path), error=str(e))
        else:
            logger.debug("Staged upload removed", path=str(path))


async def _copy_limited(stream: AsyncReadable, handle, limit: int) -> int:
    size = 0
    while True:
        chunk = await stream.read(CHUNK_SIZE)
        if not chunk:
            return size
        size += len(chunk)
        if size > limit:
            raise InvalidUpload(f"File too large: maximum size is {limit} bytes")
        await asyncio.to_thread(handle.write, chunk)
