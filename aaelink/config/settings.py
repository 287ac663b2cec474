"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock storage mode enables local development without a running MinIO.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..infrastructure.storage.client import StorageConfig

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "AAELink API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys accepted in the X-API-Key header."
    )

    # MinIO Configuration
    minio_endpoint: str = Field(
        default="localhost",
        description="MinIO host name, without scheme or port"
    )
    minio_port: int = Field(
        default=9000,
        description="MinIO API port"
    )
    minio_use_ssl: bool = Field(
        default=False,
        description="Talk to MinIO over HTTPS"
    )
    minio_access_key: str = Field(
        default="aaelink_admin",
        description="MinIO access key"
    )
    minio_secret_key: str = Field(
        default="aaelink_minio_2024",
        description="MinIO secret key"
    )
    minio_bucket: str = Field(
        default="aaelink-files",
        description="Bucket holding all shared files"
    )
    minio_region: str = Field(
        default="us-east-1",
        description="Region the bucket is created in"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory storage instead of MinIO. Enables local dev without object storage."
    )

    # Application Behavior
    upload_url_expires_in: int = Field(
        default=3600,
        description="Lifetime in seconds of presigned upload/download URLs handed to clients"
    )
    max_upload_size_mb: int = Field(
        default=100,
        description="Maximum size in MB of a file uploaded through the API."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:5173",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        """Accept any case, but only the standard logging level names."""
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def storage_config(self) -> StorageConfig:
        """Build the immutable storage configuration shared by the gateway."""
        return StorageConfig(
            endpoint=self.minio_endpoint,
            port=self.minio_port,
            use_ssl=self.minio_use_ssl,
            access_key=self.minio_access_key,
            secret_key=self.minio_secret_key,
            bucket_name=self.minio_bucket,
            region=self.minio_region,
        )

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        """
        missing = []

        if not self.api_keys_list:
            missing.append("API_KEYS")

        # MinIO only required if not in mock mode
        if not self.storage_mock_mode:
            if not self.minio_endpoint:
                missing.append("MINIO_ENDPOINT")
            if not self.minio_access_key:
                missing.append("MINIO_ACCESS_KEY")
            if not self.minio_secret_key:
                missing.append("MINIO_SECRET_KEY")
            if not self.minio_bucket:
                missing.append("MINIO_BUCKET")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
