"""
Image storage layer.

Provides pluggable blob backends for product images:
- Local filesystem (default)
- Amazon S3 (when credentials, region and bucket are configured)

ImageStore selects the backend per call and absorbs backend failures.
"""

from core.storage.base import BlobStorage, StorageResult
from core.storage.factory import (
    create_local_storage,
    create_remote_storage,
    is_remote_configured,
)
from core.storage.images import ImageStore
from core.storage.local import LocalBlobStorage
from core.storage.s3 import S3BlobStorage

__all__ = [
    # Abstract interfaces
    "BlobStorage",
    "StorageResult",
    # Backends
    "ImageStore",
    "LocalBlobStorage",
    "S3BlobStorage",
    # Factory functions
    "create_local_storage",
    "create_remote_storage",
    "is_remote_configured",
]
