"""
File-sharing domain models.

Contains the value objects passed between the storage gateway and the API,
plus the object key builder.
"""

from .models import (
    SignedURLPair,
    StoredObject,
    UploadResult,
    build_object_key,
)

__all__ = [
    "SignedURLPair",
    "StoredObject",
    "UploadResult",
    "build_object_key",
]
