"""
FastAPI dependency injection.

Dependencies provide the storage gateway, the caller's identity, and
configuration to route handlers. Routes never build their own gateway:
one is created during application startup and shared through app.state,
so every request reuses the same configured client.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..infrastructure.storage.client import StorageGateway

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


def get_current_user_id(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> str:
    """
    User id from the X-User-Id header; files land in this user's folder.

    Raises 400 if the id contains a path separator, since it becomes the
    top-level folder of every key the caller writes.
    """
    user_id = x_user_id or "anonymous"
    if "/" in user_id or "\\" in user_id:
        logger.warning("Rejected user id with path separator")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id must not contain path separators",
        )
    return user_id


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_storage_gateway(request: Request) -> StorageGateway:
    """
    Provide the storage gateway created at startup.

    Raises 503 if the app was started without one (e.g. a test app that
    skipped the lifespan).
    """
    gateway = getattr(request.app.state, "storage_gateway", None)
    if gateway is None:
        logger.error("Storage gateway requested before startup completed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage is not available",
        )
    return gateway


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]
StorageGatewayDep = Annotated[StorageGateway, Depends(get_storage_gateway)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
