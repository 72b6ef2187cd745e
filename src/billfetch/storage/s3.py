"""S3/R2 storage for invoice files using boto3."""

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import StorageError
from .base import RemoteStorage

logger = logging.getLogger(__name__)

_MISSING_CODES = ("404", "NoSuchKey", "NotFound")


class S3Storage(RemoteStorage):
    """S3-compatible storage (supports Cloudflare R2).

    Folders are key prefixes. A zero-byte "<prefix>/" marker object is
    written when a folder is created so empty folders stay visible.
    """

    def __init__(
        self,
        endpoint_url: str,
        bucket_name: str,
        access_key_id: str,
        secret_access_key: str,
    ):
        """Initialize S3 storage.

        Args:
            endpoint_url: S3 endpoint URL (for R2: https://<account>.r2.cloudflarestorage.com)
            bucket_name: S3 bucket name
            access_key_id: AWS access key ID
            secret_access_key: AWS secret access key
        """
        self.bucket_name = bucket_name
        self.s3_client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )
        logger.info(f"S3 storage initialized for bucket: {bucket_name}")

    def object_exists(self, key: str) -> bool:
        """Check if object exists in S3."""
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] in _MISSING_CODES:
                return False
            logger.error(f"Error checking object existence: {e}")
            raise StorageError(f"Unable to check {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Unable to check {key}: {e}") from e

    def _put(self, key: str, data: bytes, content_type: str):
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error uploading {key}: {e}")
            raise StorageError(f"Unable to upload {key}: {e}") from e

    def ensure_folder(self, parent_id: str, name: str) -> str:
        folder_id = f"{parent_id.rstrip('/')}/{name}"
        marker = f"{folder_id}/"

        if not self.object_exists(marker):
            self._put(marker, b"", "application/x-directory")
            logger.info(f"Created folder: {folder_id}")

        return folder_id

    def exists(self, folder_id: str, name: str) -> bool:
        return self.object_exists(f"{folder_id}/{name}")

    def upload(
        self,
        folder_id: str,
        name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        key = f"{folder_id}/{name}"
        self._put(key, data, content_type)
        logger.debug(f"Uploaded file: {key} ({len(data)} bytes)")
        return key
