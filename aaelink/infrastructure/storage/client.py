"""
Object storage gateway for shared files.

Wraps MinIO through the S3-compatible API so the rest of the backend
never touches SDK calling conventions. Every backend failure is logged
with full detail here and re-raised as a coarse, typed StorageError whose
message is safe to show a caller; the original exception stays available
as __cause__ for diagnostics.

Mock mode keeps objects in memory, enabling API testing without a
running MinIO.
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ...core.files.models import (
    DEFAULT_URL_EXPIRY_SECONDS,
    UPLOAD_RESULT_URL_EXPIRY_SECONDS,
    SignedURLPair,
    StoredObject,
    UploadResult,
)

logger = logging.getLogger(__name__)

# Error codes S3/MinIO use for a missing bucket on HEAD
_MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}
_MISSING_KEY_CODES = {"404", "NoSuchKey", "NotFound"}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class StorageError(Exception):
    """
    Raised when a storage operation fails.

    `kind` says which gateway operation failed; the message is generic on
    purpose. Backend detail (status codes, error types) lives only in the
    chained __cause__ and the server log.
    """
    kind = "storage"
    default_message = "Storage operation failed"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InitializationError(StorageError):
    kind = "initialization"
    default_message = "Bucket initialization failed"


class UploadError(StorageError):
    kind = "upload"
    default_message = "File upload failed"


class DeletionError(StorageError):
    kind = "deletion"
    default_message = "File deletion failed"


class URLGenerationError(StorageError):
    kind = "url_generation"
    default_message = "Failed to generate file URL"


class DownloadError(StorageError):
    kind = "download"
    default_message = "File download failed"

    def __init__(self, message: Optional[str] = None, not_found: bool = False) -> None:
        super().__init__(message)
        self.not_found = not_found


class ListError(StorageError):
    kind = "list"
    default_message = "Failed to list files"


# ---------------------------------------------------------------------------
# Configuration and protocol
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StorageConfig:
    """
    Connection settings for MinIO/S3.

    Built once at startup from Settings and shared by reference;
    frozen because nothing should change it mid-process.
    """
    endpoint: str
    port: int
    use_ssl: bool
    access_key: str
    secret_key: str
    bucket_name: str
    region: str = "us-east-1"  # Buckets are always created here

    @property
    def endpoint_url(self) -> str:
        scheme = "https" if self.use_ssl else "http"
        return f"{scheme}://{self.endpoint}:{self.port}"


class StorageGateway(Protocol):
    """
    Protocol for object storage operations.

    Routes depend on this, so tests can hand them the in-memory gateway.
    """

    async def ensure_bucket(self) -> None:
        """Create the configured bucket if it doesn't exist."""
        ...

    async def upload_file(
        self,
        data: bytes,
        key: str,
        content_type: str,
    ) -> UploadResult:
        """Store data under key and return a 24h download URL."""
        ...

    async def delete_file(self, key: str) -> None:
        """Remove an object."""
        ...

    async def get_file_url(
        self,
        key: str,
        expires_in: int = DEFAULT_URL_EXPIRY_SECONDS,
    ) -> str:
        """Sign a download URL. Does not check the object exists."""
        ...

    async def generate_upload_url(
        self,
        key: str,
        content_type: str,
        expires_in: int = DEFAULT_URL_EXPIRY_SECONDS,
    ) -> SignedURLPair:
        """Sign a PUT URL and a matching GET URL with the same expiry."""
        ...

    async def download_file(self, key: str) -> StoredObject:
        """Fetch an object's bytes and content type."""
        ...

    async def list_files(self, prefix: str = "", limit: int = 100) -> list[str]:
        """List keys under a prefix."""
        ...

    async def health_check(self) -> bool:
        """Return True if the bucket is reachable."""
        ...


# ---------------------------------------------------------------------------
# MinIO / S3 gateway
# ---------------------------------------------------------------------------

class ObjectStorageGateway:
    """
    MinIO object storage gateway.

    Uses boto3 because MinIO speaks the S3 API. boto3 is synchronous, so
    every backend call runs in a worker thread via asyncio.to_thread; the
    event loop stays free while we wait on the network.

    No retries and no timeouts beyond botocore's defaults: each operation
    is a single attempt.
    """

    def __init__(self, config: StorageConfig, s3_client=None) -> None:
        self._config = config

        if s3_client is None:
            # Path-style addressing keeps signed URLs under endpoint_url,
            # which is what MinIO expects
            boto_config = Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
            )
            s3_client = boto3.client(
                "s3",
                endpoint_url=config.endpoint_url,
                aws_access_key_id=config.access_key,
                aws_secret_access_key=config.secret_key,
                region_name=config.region,
                config=boto_config,
            )

        self._s3_client = s3_client

        logger.info(
            "Initialized MinIO storage gateway",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    async def ensure_bucket(self) -> None:
        """
        Make sure the configured bucket exists.

        HEAD first; only a not-found answer leads to a create. Calling this
        again once the bucket exists does nothing. Anything else going
        wrong (bad credentials, MinIO down) raises InitializationError.
        """
        bucket = self._config.bucket_name

        try:
            await asyncio.to_thread(self._s3_client.head_bucket, Bucket=bucket)
            logger.debug("Bucket exists", extra={"bucket": bucket})
            return
        except ClientError as e:
            if _error_code(e) not in _MISSING_BUCKET_CODES:
                logger.error(
                    "Failed to check bucket",
                    extra={"bucket": bucket, "error": str(e)}
                )
                raise InitializationError() from e
        except BotoCoreError as e:
            logger.error(
                "Failed to check bucket",
                extra={"bucket": bucket, "error": str(e)}
            )
            raise InitializationError() from e

        create_params = {"Bucket": bucket}
        if self._config.region != "us-east-1":
            create_params["CreateBucketConfiguration"] = {
                "LocationConstraint": self._config.region,
            }

        try:
            await asyncio.to_thread(self._s3_client.create_bucket, **create_params)
        except ClientError as e:
            # Another worker won the create race; the bucket is ours either way.
            # BucketAlreadyExists means someone else owns the name and still fails.
            if _error_code(e) == "BucketAlreadyOwnedByYou":
                logger.info("Bucket already created", extra={"bucket": bucket})
                return
            logger.error(
                "Failed to create bucket",
                extra={"bucket": bucket, "error": str(e)}
            )
            raise InitializationError() from e
        except BotoCoreError as e:
            logger.error(
                "Failed to create bucket",
                extra={"bucket": bucket, "error": str(e)}
            )
            raise InitializationError() from e

        logger.info("Created bucket", extra={"bucket": bucket})

    async def upload_file(
        self,
        data: bytes,
        key: str,
        content_type: str,
    ) -> UploadResult:
        """
        Upload data and sign a 24-hour download URL for it.

        The put must finish before we sign; if the put fails we never
        hand out a URL for data that isn't there.
        """
        try:
            response = await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=self._config.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
            url = await self._presign(
                "get_object", key, UPLOAD_RESULT_URL_EXPIRY_SECONDS
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to upload file",
                extra={"key": key, "error": str(e)}
            )
            raise UploadError() from e

        etag = response.get("ETag", "").strip('"')

        logger.info(
            "Uploaded file",
            extra={
                "key": key,
                "content_type": content_type,
                "size_bytes": len(data),
            }
        )

        return UploadResult(url=url, etag=etag)

    async def delete_file(self, key: str) -> None:
        """
        Remove an object.

        S3 treats deleting a missing key as success, so deleting twice
        does not raise. Any backend failure raises DeletionError, with
        no distinction between causes.
        """
        try:
            await asyncio.to_thread(
                self._s3_client.delete_object,
                Bucket=self._config.bucket_name,
                Key=key,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to delete file",
                extra={"key": key, "error": str(e)}
            )
            raise DeletionError() from e

        logger.info("Deleted file", extra={"key": key})

    async def get_file_url(
        self,
        key: str,
        expires_in: int = DEFAULT_URL_EXPIRY_SECONDS,
    ) -> str:
        """
        Generate a temporary download URL.

        Signing happens locally and never checks that the key exists;
        fetching a URL for a missing key gets a 404 from MinIO. Expiry is
        enforced by MinIO's signature check, not by us.
        """
        try:
            return await self._presign("get_object", key, expires_in)
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to generate file URL",
                extra={"key": key, "error": str(e)}
            )
            raise URLGenerationError() from e

    async def generate_upload_url(
        self,
        key: str,
        content_type: str,
        expires_in: int = DEFAULT_URL_EXPIRY_SECONDS,
    ) -> SignedURLPair:
        """
        Sign a PUT URL for a direct client upload, plus the GET URL for
        reading it back. Both share the same expiry.
        """
        try:
            upload_url = await self._presign(
                "put_object", key, expires_in, ContentType=content_type
            )
            download_url = await self._presign("get_object", key, expires_in)
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to generate upload URL",
                extra={"key": key, "error": str(e)}
            )
            raise URLGenerationError("Failed to generate upload URL") from e

        return SignedURLPair(
            upload_url=upload_url,
            download_url=download_url,
            expires_in=expires_in,
        )

    async def download_file(self, key: str) -> StoredObject:
        """Fetch an object from MinIO."""
        try:
            response = await asyncio.to_thread(
                self._s3_client.get_object,
                Bucket=self._config.bucket_name,
                Key=key,
            )
            data = await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            logger.error(
                "Failed to download file",
                extra={"key": key, "error": str(e)}
            )
            raise DownloadError(
                not_found=_error_code(e) in _MISSING_KEY_CODES
            ) from e
        except BotoCoreError as e:
            logger.error(
                "Failed to download file",
                extra={"key": key, "error": str(e)}
            )
            raise DownloadError() from e

        return StoredObject(
            key=key,
            content_type=response.get("ContentType", "application/octet-stream"),
            data=data,
        )

    async def list_files(self, prefix: str = "", limit: int = 100) -> list[str]:
        """List up to `limit` keys under a prefix."""
        try:
            response = await asyncio.to_thread(
                self._s3_client.list_objects_v2,
                Bucket=self._config.bucket_name,
                Prefix=prefix,
                MaxKeys=limit,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to list files",
                extra={"prefix": prefix, "error": str(e)}
            )
            raise ListError() from e

        return [obj["Key"] for obj in response.get("Contents", [])]

    async def health_check(self) -> bool:
        """Cheap reachability probe for readiness checks. Never raises."""
        try:
            await asyncio.to_thread(
                self._s3_client.head_bucket, Bucket=self._config.bucket_name
            )
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Storage health check failed",
                extra={"bucket": self._config.bucket_name, "error": str(e)}
            )
            return False

    async def _presign(self, client_method: str, key: str, expires_in: int, **params) -> str:
        return await asyncio.to_thread(
            self._s3_client.generate_presigned_url,
            client_method,
            Params={"Bucket": self._config.bucket_name, "Key": key, **params},
            ExpiresIn=expires_in,
        )


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageGateway:
    """
    In-memory storage for local development.

    Behaves like MinIO where it matters to callers: signing never checks
    existence and deleting a missing key succeeds. URLs are mock URIs.

    Not suitable for production, but perfect for development and testing.
    """

    def __init__(self, bucket_name: str = "aaelink-files") -> None:
        self.bucket_name = bucket_name
        self._bucket_created = False
        self._objects: dict[str, StoredObject] = {}
        logger.info("Initialized mock storage gateway (in-memory)")

    async def ensure_bucket(self) -> None:
        if not self._bucket_created:
            self._bucket_created = True
            logger.info("Created mock bucket", extra={"bucket": self.bucket_name})

    async def upload_file(
        self,
        data: bytes,
        key: str,
        content_type: str,
    ) -> UploadResult:
        """Store object in memory."""
        self._objects[key] = StoredObject(key=key, content_type=content_type, data=data)

        logger.debug(
            "Stored file in mock storage",
            extra={"key": key, "size_bytes": len(data)}
        )

        return UploadResult(
            url=self._url(key, UPLOAD_RESULT_URL_EXPIRY_SECONDS),
            etag=hashlib.md5(data).hexdigest(),
        )

    async def delete_file(self, key: str) -> None:
        self._objects.pop(key, None)

    async def get_file_url(
        self,
        key: str,
        expires_in: int = DEFAULT_URL_EXPIRY_SECONDS,
    ) -> str:
        return self._url(key, expires_in)

    async def generate_upload_url(
        self,
        key: str,
        content_type: str,
        expires_in: int = DEFAULT_URL_EXPIRY_SECONDS,
    ) -> SignedURLPair:
        return SignedURLPair(
            upload_url=f"{self._url(key, expires_in)}&method=PUT",
            download_url=self._url(key, expires_in),
            expires_in=expires_in,
        )

    async def download_file(self, key: str) -> StoredObject:
        """Retrieve object from memory."""
        if key not in self._objects:
            raise DownloadError(not_found=True)

        return self._objects[key]

    async def list_files(self, prefix: str = "", limit: int = 100) -> list[str]:
        keys = sorted(k for k in self._objects if k.startswith(prefix))
        return keys[:limit]

    async def health_check(self) -> bool:
        return self._bucket_created

    def _url(self, key: str, expires_in: int) -> str:
        return f"mock://{self.bucket_name}/{key}?expires={expires_in}"


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

async def create_storage_gateway(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageGateway:
    """
    Create a ready-to-use storage gateway.

    The bucket check is awaited here rather than kicked off in the
    background, so a broken MinIO setup fails startup with
    InitializationError instead of surfacing later on the first upload.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return the in-memory gateway

    Returns:
        StorageGateway implementation (MinIO or Mock)
    """
    if mock_mode:
        bucket_name = config.bucket_name if config else "aaelink-files"
        gateway: StorageGateway = MockStorageGateway(bucket_name=bucket_name)
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")
        gateway = ObjectStorageGateway(config)

    await gateway.ensure_bucket()

    return gateway
