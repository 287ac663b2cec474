"""
Domain models for shared files.

These models describe what the rest of the backend gets back from object
storage. They have no dependency on boto3 or FastAPI, so the API layer and
tests can build them directly.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


# Presigned URL lifetimes, in seconds
DEFAULT_URL_EXPIRY_SECONDS = 3600
UPLOAD_RESULT_URL_EXPIRY_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class StoredObject:
    """
    An object as it sits in the bucket.

    Content type is the only metadata we model. Keys are opaque strings;
    callers are responsible for making them unique.
    """
    key: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class UploadResult:
    """Result of uploading through the gateway."""
    url: str   # Signed download URL, valid for 24 hours
    etag: str  # Opaque integrity tag from the backend


@dataclass(frozen=True)
class SignedURLPair:
    """
    Upload/download URLs for a direct-to-storage upload.

    The client PUTs to upload_url, then anyone holding download_url can
    GET the same object until both expire.
    """
    upload_url: str
    download_url: str
    expires_in: int = DEFAULT_URL_EXPIRY_SECONDS


def build_object_key(
    user_id: str,
    filename: str,
    now: Optional[datetime] = None,
) -> str:
    """
    Build a per-user object key: {user_id}/{timestamp_ms}-{filename}

    The millisecond timestamp keeps repeated uploads of the same
    filename from overwriting each other. The user id must be a single
    path segment, and slashes in the filename are flattened, so every key
    sits exactly one level below the user's folder.
    """
    if not user_id:
        raise ValueError("user_id is required")
    if "/" in user_id or "\\" in user_id:
        raise ValueError("user_id must not contain path separators")
    if not filename:
        raise ValueError("filename is required")

    now = now or datetime.now(timezone.utc)
    timestamp_ms = int(now.timestamp() * 1000)
    safe_name = filename.replace("/", "_").replace("\\", "_")

    return f"{user_id}/{timestamp_ms}-{safe_name}"
