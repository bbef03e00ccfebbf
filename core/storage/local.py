"""
Local filesystem image storage.

Files are written into a managed upload directory that the HTTP layer
serves statically, and are referenced as "<url_prefix>/<generated-name>".
"""

import asyncio
import random
import time
from pathlib import Path

from core.errors import StorageFailure
from core.logging import get_logger
from core.storage.base import BlobStorage


logger = get_logger(__name__)


class LocalBlobStorage(BlobStorage):
    """Stores blobs as files under a single directory."""

    name = "local"

    def __init__(self, upload_dir: str | Path, url_prefix: str = "/uploads"):
        self._upload_dir = Path(upload_dir)
        self._url_prefix = url_prefix.rstrip("/")

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    async def store(self, data: bytes, name_hint: str) -> str:
        file_name = self._generate_name(name_hint)
        target = self._upload_dir / file_name

        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as e:
            raise StorageFailure(f"Failed to write {target}: {e}") from e

        reference = f"{self._url_prefix}/{file_name}"
        logger.info("Image stored locally", reference=reference, size=len(data))
        return reference

    async def remove(self, reference: str) -> None:
        target = self._resolve(reference)

        try:
            await asyncio.to_thread(target.unlink)
        except OSError as e:
            raise StorageFailure(f"Failed to delete {target}: {e}") from e

        logger.info("Local image deleted", reference=reference)

    def owns(self, reference: str) -> bool:
        return reference.startswith(f"{self._url_prefix}/")

    def _resolve(self, reference: str) -> Path:
        if not self.owns(reference):
            raise StorageFailure(f"Not a local image reference: {reference}")

        file_name = reference[len(self._url_prefix) + 1:]
        if not file_name or "/" in file_name or "\\" in file_name or file_name in (".", ".."):
            raise StorageFailure(f"Invalid local image reference: {reference}")

        return self._upload_dir / file_name

    def _write(self, target: Path, data: bytes) -> None:
        self._upload_dir.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    @staticmethod
    def _generate_name(name_hint: str) -> str:
        # <epoch-ms>-<random><ext>
        suffix = Path(name_hint).suffix.lower()
        return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}{suffix}"
