"""
Object storage integration for shared files.

Talks to MinIO (or any S3-compatible backend) via boto3.
Includes mock mode for local development without a running MinIO.
"""

from .client import (
    DeletionError,
    DownloadError,
    InitializationError,
    ListError,
    MockStorageGateway,
    ObjectStorageGateway,
    StorageConfig,
    StorageError,
    StorageGateway,
    UploadError,
    URLGenerationError,
    create_storage_gateway,
)

__all__ = [
    "DeletionError",
    "DownloadError",
    "InitializationError",
    "ListError",
    "MockStorageGateway",
    "ObjectStorageGateway",
    "StorageConfig",
    "StorageError",
    "StorageGateway",
    "UploadError",
    "URLGenerationError",
    "create_storage_gateway",
]
