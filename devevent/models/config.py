"""Configuration models for the application."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DevEventConfig(BaseSettings):
    """Main configuration for the DevEvent service."""

    # Database
    database_url: str = Field(default="", description="PostgreSQL connection string (DATABASE_URL)")
    db_pool_min_size: int = Field(default=1, ge=1)
    db_pool_size: int = Field(default=10, ge=1, description="Maximum pool size")
    db_connect_timeout: float = Field(default=5.0, gt=0, description="Seconds allowed for establishing the pool")
    db_command_timeout: float = Field(default=45.0, gt=0, description="Per-statement timeout in seconds")

    # Event lookup cache
    redis_url: Optional[str] = Field(default=None, description="Redis URL; the slug cache is disabled when unset")
    event_cache_ttl: int = Field(default=3600, ge=1, description="Seconds an event lookup stays cached")

    # Media host
    cloudinary_cloud_name: str = Field(default="")
    cloudinary_api_key: str = Field(default="")
    cloudinary_api_secret: str = Field(default="")
    cloudinary_folder: str = Field(default="DevEvent")
    media_upload_timeout: float = Field(default=30.0, gt=0)

    # HTTP Server configuration
    http_host: str = Field(default="0.0.0.0")
    http_port: int = Field(default=8000)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cloudinary_enabled(self) -> bool:
        """Whether all media host credentials are present."""
        return bool(self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret)
