"""
Amazon S3 image storage.

boto3 is synchronous, so client calls run in a worker thread.
Objects are uploaded under "<prefix>/<epoch-ms>-<original-name>" and
referenced by their public virtual-hosted-style URL.
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from core.errors import StorageFailure
from core.logging import get_logger
from core.storage.base import BlobStorage


logger = get_logger(__name__)

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def is_remote_reference(reference: str) -> bool:
    """Check whether a reference is an object store URL."""
    return reference.startswith(("https://", "http://"))


def content_type_for(file_name: str) -> str:
    """Infer a content type from the file extension."""
    return CONTENT_TYPES.get(Path(file_name).suffix.lower(), DEFAULT_CONTENT_TYPE)


class S3BlobStorage(BlobStorage):
    """
    S3-backed blob storage.

    Usage:
        storage = S3BlobStorage(
            bucket="my-bucket",
            region="eu-west-1",
            access_key_id="...",
            secret_access_key="...",
        )
        url = await storage.store(data, "photo.png")
        await storage.remove(url)
    """

    name = "s3"

    def __init__(
        self,
        bucket: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        key_prefix: str = "products",
        public_read: bool = True,
        client: Optional[Any] = None,
    ):
        """
        Initialize S3 storage.

        Args:
            bucket: Target bucket name
            region: AWS region of the bucket
            access_key_id: AWS access key id
            secret_access_key: AWS secret access key
            key_prefix: Namespace for object keys
            public_read: Upload objects with the public-read ACL
            client: Optional pre-built S3 client (defaults to a boto3 client)
        """
        self._bucket = bucket
        self._region = region
        self._key_prefix = key_prefix.strip("/")
        self._public_read = public_read
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    @property
    def base_url(self) -> str:
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com"

    async def store(self, data: bytes, name_hint: str) -> str:
        original_name = Path(name_hint).name
        key = f"{self._key_prefix}/{int(time.time() * 1000)}-{original_name}"

        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type_for(original_name),
        }
        if self._public_read:
            params["ACL"] = "public-read"

        try:
            await asyncio.to_thread(self._client.put_object, **params)
        except (BotoCoreError, ClientError) as e:
            raise StorageFailure(f"Failed to upload to S3: {e}") from e

        url = f"{self.base_url}/{key}"
        logger.info("Image uploaded to S3", reference=url, size=len(data))
        return url

    async def remove(self, reference: str) -> None:
        key = self._key_from_url(reference)

        try:
            await asyncio.to_thread(
                self._client.delete_object,
                Bucket=self._bucket,
                Key=key,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageFailure(f"Failed to delete {key} from S3: {e}") from e

        logger.info("Image deleted from S3", key=key)

    def owns(self, reference: str) -> bool:
        return is_remote_reference(reference)

    def _key_from_url(self, reference: str) -> str:
        # https://<bucket>.s3.<region>.amazonaws.com/<key>
        parts = reference.split(".amazonaws.com/", 1)
        if len(parts) < 2 or not parts[1]:
            raise StorageFailure(f"Invalid S3 URL format: {reference}")
        return parts[1]
