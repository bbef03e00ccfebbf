"""
Storage factory for creating image storage backend instances.

This module provides the remote/local selection predicate and factory
functions that build backends from configuration.
"""

from typing import TYPE_CHECKING

from core.logging import get_logger
from core.storage.local import LocalBlobStorage
from core.storage.s3 import S3BlobStorage


if TYPE_CHECKING:
    from core.config import Settings


logger = get_logger(__name__)


def is_remote_configured(settings: "Settings") -> bool:
    """
    Check whether S3 credentials, region and bucket are all present.

    Pure and cheap: callers evaluate it on every operation so a corrected
    configuration takes effect without a restart.
    """
    return bool(
        settings.aws_access_key_id
        and settings.aws_secret_access_key
        and settings.aws_region
        and settings.s3_bucket_name
    )


def remote_config_key(settings: "Settings") -> tuple:
    """Identity of the remote configuration, used to reuse a built client."""
    return (
        settings.aws_access_key_id,
        settings.aws_secret_access_key,
        settings.aws_region,
        settings.s3_bucket_name,
        settings.s3_key_prefix,
        settings.s3_public_read,
    )


def create_local_storage(settings: "Settings") -> LocalBlobStorage:
    """
    Create the local filesystem backend.

    Args:
        settings: Application settings

    Returns:
        Backend writing into settings.upload_dir
    """
    return LocalBlobStorage(
        upload_dir=settings.upload_dir,
        url_prefix=settings.upload_url_prefix,
    )


def create_remote_storage(settings: "Settings") -> S3BlobStorage:
    """
    Create the S3 backend.

    Args:
        settings: Application settings, must satisfy is_remote_configured()

    Returns:
        Configured S3 backend
    """
    if not is_remote_configured(settings):
        raise ValueError("S3 storage is not fully configured")

    logger.info(
        "Creating S3 image storage",
        bucket=settings.s3_bucket_name,
        region=settings.aws_region,
    )
    return S3BlobStorage(
        bucket=settings.s3_bucket_name,
        region=settings.aws_region,
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key,
        key_prefix=settings.s3_key_prefix,
        public_read=settings.s3_public_read,
    )
