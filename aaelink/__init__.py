"""
AAELink - internal messaging and collaboration backend.

This package contains the file storage side of the backend:
- core: Framework-agnostic file models and key building
- infrastructure: Object storage gateway (MinIO/S3)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
