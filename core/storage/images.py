"""
Image store: picks a blob backend per call and absorbs its failures.

Selection happens on every store/remove, so S3 can be configured or
fixed at runtime. Removal routes by reference format, never by the
current configuration alone.
"""

from typing import Callable, Optional

from core.config import Settings
from core.errors import StorageFailure
from core.logging import get_logger
from core.results import Outcome
from core.storage.base import BlobStorage, StorageResult
from core.storage.factory import (
    create_remote_storage,
    is_remote_configured,
    remote_config_key,
)
from core.storage.s3 import is_remote_reference


logger = get_logger(__name__)


class ImageStore:
    """
    Front for the local and remote blob backends.

    store() and remove() never raise: every backend error comes back as
    a FAILED_ABSORBED StorageResult carrying the StorageFailure.
    """

    def __init__(
        self,
        settings: Settings,
        local: BlobStorage,
        remote_factory: Callable[[Settings], BlobStorage] = create_remote_storage,
    ):
        """
        Initialize the image store.

        Args:
            settings: Application settings, re-read on every call
            local: Local filesystem backend
            remote_factory: Builds the remote backend from settings
        """
        self._settings = settings
        self._local = local
        self._remote_factory = remote_factory
        self._remote: Optional[BlobStorage] = None
        self._remote_key: Optional[tuple] = None

    @property
    def remote_configured(self) -> bool:
        return is_remote_configured(self._settings)

    async def store(self, data: bytes, name_hint: str) -> StorageResult:
        """Store bytes on S3 when configured, else on local disk."""
        if not self.remote_configured:
            return await self._attempt_store(self._local, data, name_hint)

        try:
            remote = self._get_remote()
        except Exception as e:
            result = self._absorbed("store", "s3", name_hint, e)
        else:
            result = await self._attempt_store(remote, data, name_hint)

        if result.applied or not self._settings.local_fallback_on_remote_failure:
            return result

        logger.info("Falling back to local image storage", name=name_hint)
        return await self._attempt_store(self._local, data, name_hint)

    async def remove(self, reference: str) -> StorageResult:
        """Best-effort removal of a blob by the backend that produced it."""
        if self._local.owns(reference):
            backend = self._local
        elif is_remote_reference(reference):
            if not self.remote_configured:
                logger.warning(
                    "S3 not configured, remote image left in place",
                    reference=reference,
                )
                return StorageResult(Outcome.SKIPPED_UNCONFIGURED, backend="s3")
            try:
                backend = self._get_remote()
            except Exception as e:
                return self._absorbed("remove", "s3", reference, e)
        else:
            return self._absorbed(
                "remove",
                None,
                reference,
                StorageFailure(f"Unrecognized image reference: {reference}"),
            )

        try:
            await backend.remove(reference)
        except Exception as e:
            return self._absorbed("remove", backend.name, reference, e)

        return StorageResult(Outcome.APPLIED, backend=backend.name)

    async def _attempt_store(
        self,
        backend: BlobStorage,
        data: bytes,
        name_hint: str,
    ) -> StorageResult:
        try:
            reference = await backend.store(data, name_hint)
        except Exception as e:
            return self._absorbed("store", backend.name, name_hint, e)

        return StorageResult(Outcome.APPLIED, reference=reference, backend=backend.name)

    def _get_remote(self) -> BlobStorage:
        key = remote_config_key(self._settings)
        if self._remote is None or self._remote_key != key:
            self._remote = self._remote_factory(self._settings)
            self._remote_key = key
        return self._remote

    @staticmethod
    def _absorbed(
        operation: str,
        backend: Optional[str],
        target: str,
        error: Exception,
    ) -> StorageResult:
        if isinstance(error, StorageFailure):
            failure = error
        else:
            failure = StorageFailure(f"{operation} failed: {error}")
            failure.__cause__ = error

        logger.error(
            "Image storage operation failed",
            operation=operation,
            backend=backend,
            target=target,
            error_type=type(error).__name__,
            error=str(error),
        )
        return StorageResult(Outcome.FAILED_ABSORBED, backend=backend, error=failure)
