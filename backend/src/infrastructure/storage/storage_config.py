"""Storage configuration for S3-compatible object storage.

Supports both MinIO (development) and AWS S3 (production) with the same
interface. Values come from the application Settings.
"""

from dataclasses import dataclass
from typing import Optional

from config import Settings


@dataclass
class StorageConfig:
    """Configuration for S3-compatible object storage.

    Attributes:
        endpoint_url: S3 endpoint URL (e.g., 'http://localhost:9000' for MinIO,
                      None for AWS S3 which uses default regional endpoints)
        access_key: S3 access key ID
        secret_key: S3 secret access key
        bucket_name: Bucket holding application attachments
        region: AWS region
    """
    endpoint_url: Optional[str]
    access_key: str
    secret_key: str
    bucket_name: str
    region: str = "eu-central-1"


def build_storage_config(settings: Settings) -> StorageConfig:
    """Build and validate storage configuration from settings.

    Raises:
        ValueError: If the configuration is invalid
    """
    config = StorageConfig(
        endpoint_url=settings.S3_ENDPOINT_URL or None,
        access_key=settings.S3_ACCESS_KEY_ID,
        secret_key=settings.S3_SECRET_ACCESS_KEY,
        bucket_name=settings.S3_BUCKET_NAME,
        region=settings.S3_REGION,
    )
    validate_storage_config(config)
    return config


def validate_storage_config(config: StorageConfig) -> None:
    """Validate storage configuration.

    Raises:
        ValueError: If configuration is invalid
    """
    if not config.access_key or not config.secret_key:
        raise ValueError("Storage credentials are required (S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY)")

    if not config.bucket_name:
        raise ValueError("Storage bucket_name is required")

    if config.endpoint_url:
        if not config.endpoint_url.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid endpoint_url: {config.endpoint_url}. "
                "Must start with http:// or https://"
            )
    elif not config.region:
        raise ValueError("AWS region is required when S3_ENDPOINT_URL is not set")
