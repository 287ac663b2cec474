"""
File sharing API endpoints.

Two upload flows are supported:
1. Through the API: POST /upload with the file as multipart form data.
   Good for small attachments.
2. Direct to storage: POST /upload-url returns a presigned PUT URL.
   The client uploads straight to MinIO, so large files never pass
   through this process.

Storage failures come back as 502 with the gateway's generic message;
backend detail stays in the server log.
"""

import logging
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Query, Response, UploadFile, status
from pydantic import BaseModel, Field

from ...core.files.models import build_object_key
from ...infrastructure.storage.client import DownloadError, StorageError
from ..dependencies import (
    AuthenticatedUser,
    CurrentUserId,
    SettingsDep,
    StorageGatewayDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class FileUploadResponse(BaseModel):
    """Response after uploading a file through the API."""
    key: str = Field(description="Storage key of the uploaded file")
    url: str = Field(description="Signed download URL, valid for 24 hours")
    etag: str = Field(description="Integrity tag returned by storage")
    size: int = Field(description="File size in bytes")
    content_type: str = Field(description="MIME type the file was stored with")


class UploadUrlRequest(BaseModel):
    """Request for a direct-to-storage upload URL."""
    filename: str = Field(min_length=1, description="Original file name")
    mime_type: str = Field(min_length=1, description="MIME type the client will upload")
    size: int = Field(ge=1, description="File size in bytes")


class UploadUrlResponse(BaseModel):
    """Presigned URLs for a direct upload."""
    key: str = Field(description="Storage key the client must upload to")
    upload_url: str = Field(description="Presigned PUT URL")
    download_url: str = Field(description="Presigned GET URL for the same key")
    expires_in: int = Field(description="Seconds until both URLs expire")


class FileUrlResponse(BaseModel):
    """A fresh download URL."""
    key: str
    url: str
    expires_in: int


class FileListResponse(BaseModel):
    """Keys stored under a prefix."""
    prefix: str
    keys: list[str]
    total: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=FileUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file",
    description="Upload a file through the API. Returns a 24-hour download URL.",
)
async def upload_file(
    api_key: AuthenticatedUser,
    user_id: CurrentUserId,
    settings: SettingsDep,
    gateway: StorageGatewayDep,
    file: UploadFile = File(..., description="File to share"),
) -> FileUploadResponse:
    """
    Store an uploaded file under the caller's folder.

    Keys look like {user_id}/{timestamp_ms}-{filename} so re-uploading
    the same name never overwrites an earlier file.
    """
    data = await file.read()

    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty",
        )

    if len(data) > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size is {settings.max_upload_size_mb}MB",
        )

    key = build_object_key(user_id, file.filename or "upload")
    content_type = file.content_type or "application/octet-stream"

    try:
        result = await gateway.upload_file(data, key, content_type)
    except StorageError as e:
        raise _storage_http_error(e) from e

    logger.info(
        "File uploaded",
        extra={"user_id": user_id, "key": key, "size_bytes": len(data)}
    )

    return FileUploadResponse(
        key=key,
        url=result.url,
        etag=result.etag,
        size=len(data),
        content_type=content_type,
    )


@router.post(
    "/upload-url",
    response_model=UploadUrlResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a direct upload URL",
    description="Returns presigned PUT and GET URLs so the client can upload straight to storage.",
)
async def get_upload_url(
    request: UploadUrlRequest,
    api_key: AuthenticatedUser,
    user_id: CurrentUserId,
    settings: SettingsDep,
    gateway: StorageGatewayDep,
) -> UploadUrlResponse:
    if request.size > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size is {settings.max_upload_size_mb}MB",
        )

    key = build_object_key(user_id, request.filename)
    expires_in = settings.upload_url_expires_in

    try:
        urls = await gateway.generate_upload_url(key, request.mime_type, expires_in)
    except StorageError as e:
        raise _storage_http_error(e) from e

    return UploadUrlResponse(
        key=key,
        upload_url=urls.upload_url,
        download_url=urls.download_url,
        expires_in=urls.expires_in,
    )


@router.get(
    "/url",
    response_model=FileUrlResponse,
    summary="Get a download URL",
    description="Signs a fresh download URL. Does not check that the file exists.",
)
async def get_file_url(
    api_key: AuthenticatedUser,
    gateway: StorageGatewayDep,
    key: str = Query(..., min_length=1, description="Storage key"),
    expires_in: int = Query(3600, ge=1, le=7 * 24 * 60 * 60, description="URL lifetime in seconds"),
) -> FileUrlResponse:
    try:
        url = await gateway.get_file_url(key, expires_in)
    except StorageError as e:
        raise _storage_http_error(e) from e

    return FileUrlResponse(key=key, url=url, expires_in=expires_in)


@router.get(
    "/content",
    summary="Download a file",
    description="Stream a file's bytes back through the API.",
    responses={404: {"description": "File not found"}},
)
async def download_file(
    api_key: AuthenticatedUser,
    gateway: StorageGatewayDep,
    key: str = Query(..., min_length=1, description="Storage key"),
) -> Response:
    try:
        stored = await gateway.download_file(key)
    except StorageError as e:
        raise _storage_http_error(e) from e

    return Response(content=stored.data, media_type=stored.content_type)


@router.get(
    "",
    response_model=FileListResponse,
    summary="List files",
    description="List keys under a prefix. Defaults to the caller's own folder.",
)
async def list_files(
    api_key: AuthenticatedUser,
    user_id: CurrentUserId,
    gateway: StorageGatewayDep,
    prefix: Optional[str] = Query(None, description="Key prefix"),
    limit: int = Query(100, ge=1, le=1000),
) -> FileListResponse:
    if prefix is None:
        prefix = f"{user_id}/"

    try:
        keys = await gateway.list_files(prefix, limit)
    except StorageError as e:
        raise _storage_http_error(e) from e

    return FileListResponse(prefix=prefix, keys=keys, total=len(keys))


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a file",
)
async def delete_file(
    api_key: AuthenticatedUser,
    user_id: CurrentUserId,
    gateway: StorageGatewayDep,
    key: str = Query(..., min_length=1, description="Storage key"),
) -> Response:
    try:
        await gateway.delete_file(key)
    except StorageError as e:
        raise _storage_http_error(e) from e

    logger.info("File deleted", extra={"user_id": user_id, "key": key})

    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _storage_http_error(error: StorageError) -> HTTPException:
    """Map a gateway error to the response the client sees."""
    if isinstance(error, DownloadError) and error.not_found:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found",
        )
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=error.message,
    )
