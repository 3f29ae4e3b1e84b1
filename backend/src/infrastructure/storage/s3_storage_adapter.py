"""S3 Storage Adapter - Implementation of AttachmentStoragePort using boto3.

Stores application attachments in AWS S3, MinIO and other S3-compatible
services. Keys are chosen by the caller and are always scoped by user id.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import hashlib
import logging
from typing import Optional

import boto3
from botocore.exceptions import ClientError, NoCredentialsError

from domain.attachments.ports import (
    AttachmentStoragePort,
    StorageError,
    StoredAttachment,
)
from .storage_config import StorageConfig

logger = logging.getLogger(__name__)


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


class S3AttachmentStorage(AttachmentStoragePort):
    """S3-compatible attachment storage using boto3.

    Example:
        storage = S3AttachmentStorage.from_config(build_storage_config(settings))
        storage.upload(
            f"{user_id}/inbound-attachments/{message_id}/0-cv.pdf",
            content,
            "application/pdf",
        )
    """

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key: str,
        secret_key: str,
        bucket_name: str,
        region: str = "eu-central-1",
    ):
        """Initialize S3 attachment storage.

        Args:
            endpoint_url: S3 endpoint URL (None for AWS S3, URL for MinIO)
            access_key: S3 access key ID
            secret_key: S3 secret access key
            bucket_name: S3 bucket name
            region: AWS region

        Raises:
            StorageError: If S3 client initialization fails
        """
        try:
            self.s3_client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
            )
        except NoCredentialsError as e:
            raise StorageError(f"Invalid S3 credentials: {e}")
        except Exception as e:
            raise StorageError(f"Failed to initialize S3 client: {e}")

        self.bucket_name = bucket_name
        self.region = region
        logger.info(
            f"Initialized S3 attachment storage: bucket={bucket_name}, "
            f"endpoint={endpoint_url or 'AWS S3'}, region={region}"
        )

    @classmethod
    def from_config(cls, config: StorageConfig) -> "S3AttachmentStorage":
        return cls(
            endpoint_url=config.endpoint_url,
            access_key=config.access_key,
            secret_key=config.secret_key,
            bucket_name=config.bucket_name,
            region=config.region,
        )

    def upload(self, storage_key: str, content: bytes, mime_type: str) -> StoredAttachment:
        """Store attachment content under the given key.

        Raises:
            StorageError: If the upload fails
            ValueError: If content is empty
        """
        if not content:
            raise ValueError("Cannot store empty attachment")

        sha256_hex = hashlib.sha256(content).hexdigest()
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=storage_key,
                Body=content,
                ContentType=mime_type,
                Metadata={"sha256": sha256_hex},
            )
        except ClientError as e:
            logger.error(
                f"S3 upload failed: storage_key={storage_key}, error={_error_code(e)}"
            )
            raise StorageError(f"Failed to upload attachment: {_error_code(e)}")

        logger.info(
            f"Uploaded attachment: storage_key={storage_key}, "
            f"size={len(content)}, mime_type={mime_type}"
        )
        return StoredAttachment(
            storage_key=storage_key,
            sha256=sha256_hex,
            size_bytes=len(content),
            mime_type=mime_type,
        )

    def download(self, storage_key: str) -> bytes:
        """Load attachment content.

        Raises:
            FileNotFoundError: If the key does not exist
            StorageError: If retrieval fails
        """
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=storage_key)
            return response["Body"].read()
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in ("NoSuchKey", "404"):
                logger.warning(f"Attachment not found: storage_key={storage_key}")
                raise FileNotFoundError(f"Attachment not found: {storage_key}")
            logger.error(f"S3 retrieval failed: storage_key={storage_key}, error={error_code}")
            raise StorageError(f"Failed to retrieve attachment: {error_code}")

    def delete(self, storage_key: str) -> None:
        """Delete an object. S3 answers success for keys that do not exist.

        Raises:
            StorageError: If the deletion fails
        """
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=storage_key)
        except ClientError as e:
            error_code = _error_code(e)
            logger.error(f"S3 delete failed: storage_key={storage_key}, error={error_code}")
            raise StorageError(f"Failed to delete attachment: {error_code}")

        logger.info(f"Attachment deleted: storage_key={storage_key}")

    def file_exists(self, storage_key: str) -> bool:
        """Check if an object exists (HEAD request)."""
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=storage_key)
            return True
        except ClientError as e:
            error_code = _error_code(e)
            if error_code not in ("404", "NoSuchKey"):
                logger.warning(
                    f"Error checking attachment existence: storage_key={storage_key}, "
                    f"error={error_code}"
                )
            return False

    def check_health(self) -> None:
        """Verify that the configured bucket is reachable.

        Raises:
            StorageError: If the bucket does not exist or cannot be reached
        """
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            error_code = _error_code(e)
            if error_code == "404":
                raise StorageError(f"Bucket '{self.bucket_name}' does not exist")
            raise StorageError(f"Failed to verify bucket: {error_code}")
