"""
Infrastructure layer - external service integrations.

- storage: Object storage gateway (MinIO, or any S3-compatible backend)

These wrappers translate between SDK calling conventions and our domain models.
"""
